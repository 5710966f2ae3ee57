# tests/test_relist_and_accounts.py
import pytest

from camera_auction.config import env
from camera_auction.config.time_policy import set_now_utc_for_testing
from camera_auction.errors import Forbidden, InvalidStateTransition, NotFoundError
from camera_auction.logic.accounts import delete_account
from camera_auction.logic.listings import relist_listing
from camera_auction.logic.transaction_lifecycle import TX, create_transaction

from conftest import auth, utc

SELLER = "seller@example.com"
BUYER = "buyer@example.com"


@pytest.fixture
def unsold(make_listing):
    return make_listing(
        status="not_sold", current_bid=180, bid_count=3, highest_bidder_email=BUYER,
        auction_start=utc(2024, 1, 1, 1), auction_end=utc(2024, 1, 7, 23),
    )


# -------------------------------------------------------
# 재등록
# -------------------------------------------------------
def test_relist_into_open_window_goes_live(store, unsold):
    listing = relist_listing(store, unsold["id"], actor_email=SELLER, now=utc(2024, 1, 10, 12))

    assert listing["status"] == "live"
    assert (listing["auction_start"], listing["auction_end"]) == (utc(2024, 1, 8, 1), utc(2024, 1, 14, 23))
    assert listing["current_bid"] is None
    assert listing["bid_count"] == 0
    assert listing["highest_bidder_email"] is None
    assert listing["relist_count"] == 1


def test_relist_after_window_closed_is_queued_for_next_week(store, unsold):
    listing = relist_listing(store, unsold["id"], actor_email=" Seller@Example.com", now=utc(2024, 1, 14, 23, 30))

    assert listing["status"] == "queued"
    assert (listing["auction_start"], listing["auction_end"]) == (utc(2024, 1, 15, 1), utc(2024, 1, 21, 23))


@pytest.mark.parametrize("status", ["live", "queued", "sold", "completed", "withdrawn"])
def test_relist_only_from_not_sold(store, make_listing, status):
    listing = make_listing(status=status)
    with pytest.raises(InvalidStateTransition):
        relist_listing(store, listing["id"], actor_email=SELLER, now=utc(2024, 1, 10, 12))


def test_relist_requires_seller(store, unsold):
    with pytest.raises(Forbidden):
        relist_listing(store, unsold["id"], actor_email=BUYER, now=utc(2024, 1, 10, 12))
    assert store.get_document("listings", unsold["id"])["status"] == "not_sold"


def test_relist_endpoint_notifies_seller(client, unsold, notifier):
    set_now_utc_for_testing(utc(2024, 1, 10, 12))

    assert client.post(f"/listings/{unsold['id']}/relist", headers=auth(BUYER)).status_code == 403

    r = client.post(f"/listings/{unsold['id']}/relist", headers=auth(SELLER))
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "live"
    (mail,) = notifier.to(SELLER)
    assert mail[1].startswith("Relisted:")
    assert "at your request" in mail[2]

    assert client.post(f"/listings/{unsold['id']}/relist", headers=auth(SELLER)).status_code == 409


# -------------------------------------------------------
# 회원 탈퇴
# -------------------------------------------------------
def test_delete_account_anonymises_history(store, make_user, make_listing):
    user = make_user(SELLER)
    sold = make_listing(status="sold")
    unsold = make_listing(status="not_sold")
    tx = create_transaction(store, listing=sold, buyer_email=BUYER, sale_price=300,
                            sale_channel="auction", paid=True, charge_id="pi_1", now=utc(2024, 1, 15))
    store.update_document(TX, tx["id"], {"transaction_status": "complete"})

    result = delete_account(store, email=SELLER, now=utc(2024, 2, 1))

    assert result == {"ok": True, "anonymised_listings": 2}
    with pytest.raises(NotFoundError):
        store.get_document("users", user["id"])
    for lid in (sold["id"], unsold["id"]):
        assert store.get_document("listings", lid)["seller_email"] == env.DELETED_EMAIL_PLACEHOLDER
    # 거래 기록은 그대로
    assert store.get_document(TX, tx["id"])["seller_payout"] == 264


@pytest.mark.parametrize("status", ["pending_approval", "queued", "live", "completed"])
def test_delete_account_blocked_by_active_listing(store, make_user, make_listing, status):
    user = make_user(SELLER)
    make_listing(status=status)
    with pytest.raises(InvalidStateTransition):
        delete_account(store, email=SELLER)
    assert store.get_document("users", user["id"])["email"] == SELLER


def test_delete_account_blocked_by_open_purchase(store, make_user, make_listing):
    make_user(BUYER)
    listing = make_listing(status="sold")
    create_transaction(store, listing=listing, buyer_email=BUYER, sale_price=300,
                       sale_channel="auction", paid=True, charge_id="pi_1", now=utc(2024, 1, 15))
    with pytest.raises(InvalidStateTransition):
        delete_account(store, email=BUYER)


def test_archived_transaction_does_not_block_deletion(store, make_user, make_listing):
    make_user(BUYER)
    listing = make_listing(status="sold")
    tx = create_transaction(store, listing=listing, buyer_email=BUYER, sale_price=300,
                            sale_channel="manual", paid=False, now=utc(2024, 1, 15))
    store.update_document(TX, tx["id"], {"archived": True})

    assert delete_account(store, email=BUYER)["ok"] is True


def test_delete_unknown_account(store):
    with pytest.raises(NotFoundError):
        delete_account(store, email="nobody@example.com")


def test_delete_account_endpoint(client):
    r = client.post("/auth/register", json={"email": "leaving@example.com", "password": "correct-horse-9"})
    assert r.status_code == 201, r.text
    r = client.post("/auth/login", data={"username": "leaving@example.com", "password": "correct-horse-9"})
    headers = {"Authorization": f"Bearer {r.json()['access_token']}"}

    r = client.post("/auth/delete-account", headers=headers)
    assert r.status_code == 200, r.text
    assert r.json() == {"ok": True, "anonymised_listings": 0}

    r = client.post("/auth/login", data={"username": "leaving@example.com", "password": "correct-horse-9"})
    assert r.status_code == 401
    assert client.post("/auth/delete-account", headers=headers).status_code == 404
