# tests/test_checkout.py
import pytest

from camera_auction.errors import Forbidden, InvalidStateTransition, PaymentDeclined, ValidationFailed
from camera_auction.logic.checkout import buy_now, charge_transaction, handle_payment_event, save_payment_method
from camera_auction.logic.listings import mark_listing_sold

from conftest import utc

NOW = utc(2024, 1, 10, 12)
BUYER = "buyer@example.com"


@pytest.fixture
def buy_now_listing(make_listing):
    return make_listing(status="live", buy_now_price=400, auction_start=utc(2024, 1, 8, 1), auction_end=utc(2024, 1, 14, 23))


def test_buy_now_server_side_charge(store, payments, make_user, buy_now_listing):
    make_user(BUYER)
    delivery = {"delivery_name": "A Buyer", "delivery_postcode": "SW1A 1AA"}

    tx = buy_now(store, payments, listing_id=buy_now_listing["id"], buyer_email=BUYER, delivery=delivery, now=NOW)

    assert tx["sale_channel"] == "buy_now"
    assert tx["payment_status"] == "paid"
    assert tx["sale_price"] == 400
    assert tx["delivery_postcode"] == "SW1A 1AA"
    assert payments.requests[0].amount_minor == 40000
    assert payments.requests[0].idempotency_key == f"buy-now-{buy_now_listing['id']}-40000-{BUYER}"

    listing = store.get_document("listings", buy_now_listing["id"])
    assert (listing["status"], listing["sale_status"], listing["sold_price"]) == ("sold", "sold_buy_now", 400)

    # 같은 구매자의 재시도는 기존 거래, 다른 구매자는 409
    again = buy_now(store, payments, listing_id=buy_now_listing["id"], buyer_email=BUYER, now=NOW)
    assert again["id"] == tx["id"]
    assert len(store.list_documents("transactions", {"listing_id": buy_now_listing["id"]})) == 1

    make_user("other@example.com")
    with pytest.raises(InvalidStateTransition):
        buy_now(store, payments, listing_id=buy_now_listing["id"], buyer_email="other@example.com", now=NOW)


def test_buy_now_with_client_confirmed_intent(store, payments, buy_now_listing):
    lid = buy_now_listing["id"]
    payments.add_intent("pi_client", 40000, {"listingId": lid, "buyerEmail": BUYER})

    tx = buy_now(store, payments, listing_id=lid, buyer_email=BUYER, payment_intent_id="pi_client", now=NOW)
    assert tx["charge_id"] == "pi_client"
    assert payments.requests == []


def test_buy_now_retry_with_same_intent_returns_existing_transaction(store, payments, buy_now_listing):
    lid = buy_now_listing["id"]
    payments.add_intent("pi_client", 40000, {"listingId": lid, "buyerEmail": BUYER})
    first = buy_now(store, payments, listing_id=lid, buyer_email=BUYER, payment_intent_id="pi_client", now=NOW)
    assert store.get_document("listings", lid)["status"] == "sold"

    retried = buy_now(store, payments, listing_id=lid, buyer_email=" Buyer@Example.com ", payment_intent_id="pi_client", now=NOW)

    assert retried["id"] == first["id"]
    assert retried["payment_status"] == "paid"
    assert len(store.list_documents("transactions", {"listing_id": lid})) == 1


@pytest.mark.parametrize(
    "amount, meta, status, exc",
    [
        (40000, {"listingId": "other", "buyerEmail": BUYER}, "succeeded", ValidationFailed),
        (100, None, "succeeded", ValidationFailed),
        (40000, None, "requires_action", PaymentDeclined),
    ],
)
def test_buy_now_rejects_mismatched_intent(store, payments, buy_now_listing, amount, meta, status, exc):
    lid = buy_now_listing["id"]
    payments.add_intent("pi_x", amount, meta or {"listingId": lid, "buyerEmail": BUYER}, status=status)
    with pytest.raises(exc):
        buy_now(store, payments, listing_id=lid, buyer_email=BUYER, payment_intent_id="pi_x", now=NOW)
    assert store.list_documents("transactions") == []


def test_buy_now_guards(store, payments, make_user, make_listing, buy_now_listing):
    make_user(BUYER, with_payment=False)
    with pytest.raises(Forbidden):
        buy_now(store, payments, listing_id=buy_now_listing["id"], buyer_email="seller@example.com", now=NOW)
    with pytest.raises(ValidationFailed):
        buy_now(store, payments, listing_id=buy_now_listing["id"], buyer_email=BUYER, now=NOW)

    no_price = make_listing(status="live")
    with pytest.raises(ValidationFailed):
        buy_now(store, payments, listing_id=no_price["id"], buyer_email=BUYER, now=NOW)

    payments.next_status = "failed"
    make_user("other@example.com")
    with pytest.raises(PaymentDeclined):
        buy_now(store, payments, listing_id=buy_now_listing["id"], buyer_email="other@example.com", now=NOW)


def test_charge_manual_transaction(store, payments, make_user, make_listing):
    make_user(BUYER)
    listing = make_listing(status="queued")
    sold, tx = mark_listing_sold(store, listing["id"], buyer_email=BUYER, sale_price=300, now=NOW)
    assert sold["sale_status"] == "sold_manual"
    assert tx["payment_status"] == "unpaid"

    outcome = charge_transaction(store, payments, tx["id"], now=NOW)
    assert outcome.transaction["payment_status"] == "paid"
    assert outcome.transaction["transaction_status"] == "dispatch_pending"
    assert payments.requests[0].idempotency_key == f"charge_tx_{tx['id']}"
    assert payments.requests[0].metadata == {"transactionId": tx["id"], "type": "transaction"}

    again = charge_transaction(store, payments, tx["id"], now=NOW)
    assert again.already_paid
    assert len(payments.requests) == 1


def test_charge_declined_marks_failed(store, payments, make_user, make_listing):
    make_user(BUYER)
    _, tx = mark_listing_sold(store, make_listing(status="queued")["id"], buyer_email=BUYER, sale_price=300, now=NOW)
    payments.next_status = "failed"

    outcome = charge_transaction(store, payments, tx["id"], now=NOW)
    assert outcome.transaction["payment_status"] == "failed"
    assert outcome.transaction["payment_error"] == "Your card was declined."


def test_webhook_events_reconcile_transactions(store, make_listing, make_user):
    _, tx = mark_listing_sold(store, make_listing(status="queued")["id"], buyer_email=BUYER, sale_price=300, now=NOW)

    failed = {"type": "payment_intent.payment_failed",
              "data": {"object": {"id": "pi_w", "metadata": {"transactionId": tx["id"]},
                                  "last_payment_error": {"message": "insufficient funds"}}}}
    assert handle_payment_event(store, failed, now=NOW)["handled"] is True
    assert store.get_document("transactions", tx["id"])["payment_status"] == "failed"

    ok = {"type": "payment_intent.succeeded",
          "data": {"object": {"id": "pi_w", "metadata": {"transactionId": tx["id"]}}}}
    result = handle_payment_event(store, ok, now=NOW)
    assert result == {"type": "payment_intent.succeeded", "handled": True, "transaction_id": tx["id"]}
    doc = store.get_document("transactions", tx["id"])
    assert (doc["payment_status"], doc["charge_id"]) == ("paid", "pi_w")

    # 늦게 도착한 실패 이벤트는 paid 를 되돌리지 않음 (charge_id 로 대사)
    late = {"type": "payment_intent.payment_failed", "data": {"object": {"id": "pi_w"}}}
    handle_payment_event(store, late, now=NOW)
    assert store.get_document("transactions", tx["id"])["payment_status"] == "paid"

    assert handle_payment_event(store, {"type": "charge.refunded", "data": {"object": {}}})["handled"] is False


def test_setup_intent_saves_default_method(store, make_user):
    make_user(BUYER)
    event = {"type": "setup_intent.succeeded",
             "data": {"object": {"customer": "cus_buyer", "payment_method": "pm_new"}}}
    assert handle_payment_event(store, event, now=NOW)["handled"] is True
    user = store.list_documents("users", {"email": BUYER})[0]
    assert user["default_payment_method_id"] == "pm_new"


def test_save_payment_method(store, make_user):
    make_user(BUYER, with_payment=False)
    user = save_payment_method(store, email="Buyer@Example.com", customer_ref="cus_1", payment_method_ref="pm_1", now=NOW)
    assert (user["stripe_customer_id"], user["default_payment_method_id"]) == ("cus_1", "pm_1")
