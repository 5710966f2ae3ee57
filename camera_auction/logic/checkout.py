# camera_auction/logic/checkout.py
# 결제 오케스트레이션: 즉시구매 / 낙찰자 자동결제 / 미결제 거래 청구 / 웹훅 대사
#
# 원칙
#   - 금액은 항상 서버에서 계산 (클라이언트 금액 불신)
#   - succeeded 만 결제 확정
#   - 같은 결제 의도는 항상 같은 idempotency key
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from camera_auction.config import project_rules as R
from camera_auction.config.time_policy import now_utc
from camera_auction.core.settlement import compute_settlement
from camera_auction.errors import (
    ConcurrentModification,
    Forbidden,
    InvalidStateTransition,
    NotFoundError,
    PaymentDeclined,
    ValidationFailed,
)
from camera_auction.logic.listings import LISTINGS, LS, listing_status
from camera_auction.logic.transaction_lifecycle import (
    TX,
    create_transaction,
    mark_failed,
    mark_paid,
    normalize_email,
    parse_payment_status,
    PaymentStatus,
)
from camera_auction.pg.client import PaymentService
from camera_auction.pg.types import ChargeRequest, ChargeResult
from camera_auction.store import DocumentStore

logger = logging.getLogger(__name__)

USERS = "users"


@dataclass
class ChargeOutcome:
    transaction: dict
    charge: Optional[ChargeResult]
    already_paid: bool = False


def _pence(pounds: int) -> int:
    return int(pounds) * 100


def find_user_by_email(store: DocumentStore, email: str) -> Optional[dict]:
    rows = store.list_documents(USERS, {"email": normalize_email(email)}, limit=1)
    return rows[0] if rows else None


def find_transaction(store: DocumentStore, **filters: Any) -> Optional[dict]:
    rows = store.list_documents(TX, filters, order_by="-created_at", limit=1)
    return rows[0] if rows else None


def _payment_refs(store: DocumentStore, email: str) -> tuple[str, str]:
    user = find_user_by_email(store, email)
    customer = (user or {}).get("stripe_customer_id")
    method = (user or {}).get("default_payment_method_id")
    if not customer or not method:
        raise ValidationFailed("No saved payment method for this account.")
    return customer, method


def save_payment_method(
    store: DocumentStore,
    *,
    email: str,
    customer_ref: str,
    payment_method_ref: str,
    now: Optional[datetime] = None,
) -> dict:
    user = find_user_by_email(store, email)
    if user is None:
        raise NotFoundError(f"user not found: {email}")
    return store.write_tolerant(
        USERS,
        user["id"],
        {
            "stripe_customer_id": customer_ref,
            "default_payment_method_id": payment_method_ref,
            "updated_at": now or now_utc(),
        },
        minimal_keys=("stripe_customer_id", "default_payment_method_id"),
    )


def _mark_listing_sold(
    store: DocumentStore,
    listing: Mapping[str, Any],
    *,
    buyer_email: str,
    price: int,
    sale_status: str,
    now: datetime,
) -> dict:
    return store.write_tolerant(
        LISTINGS,
        listing["id"],
        {
            "status": LS.SOLD.value,
            "sale_status": sale_status,
            "sold_price": price,
            "buyer_email": normalize_email(buyer_email),
            "sold_at": now,
            "updated_at": now,
        },
        minimal_keys=("status", "sale_status"),
        expected={"status": listing.get("status")},
    )


# -------------------------------------------------------------------
# 즉시구매 (Buy Now)
# -------------------------------------------------------------------
_BUY_NOW_OPEN = (LS.QUEUED, LS.LIVE)


def previous_buy_now(
    store: DocumentStore, listing_id: str, buyer_email: str, payment_intent_id: Optional[str] = None
) -> Optional[dict]:
    """같은 리스팅/구매자(/결제)로 이미 만들어진 즉시구매 거래."""
    filters = {"listing_id": listing_id, "buyer_email": normalize_email(buyer_email), "sale_channel": "buy_now"}
    if payment_intent_id:
        filters["charge_id"] = payment_intent_id
    return find_transaction(store, **filters)


def buy_now(
    store: DocumentStore,
    payments: PaymentService,
    *,
    listing_id: str,
    buyer_email: str,
    payment_intent_id: Optional[str] = None,
    delivery: Optional[Mapping[str, Any]] = None,
    now: Optional[datetime] = None,
) -> dict:
    """
    - payment_intent_id 가 있으면: 클라이언트가 확인한 결제를 검증
      (succeeded + 금액 일치 + metadata listingId/buyerEmail 일치)
    - 없으면: 저장된 결제수단으로 서버에서 바로 청구
    결제 확정 후 거래 생성(paid) → 리스팅 sold.
    """
    now = now or now_utc()
    buyer = normalize_email(buyer_email)
    listing = store.get_document(LISTINGS, listing_id)

    # 재시도: 이미 이 구매자/결제로 만든 거래가 있으면 리스팅 상태와 무관하게 그대로 리턴
    previous = previous_buy_now(store, listing_id, buyer, payment_intent_id)
    if previous is not None:
        logger.info("[buy-now] retry for listing=%s returns tx=%s", listing_id, previous["id"])
        return previous

    if listing_status(listing) not in _BUY_NOW_OPEN:
        raise InvalidStateTransition("This listing is no longer available.")
    price = int(listing.get("buy_now_price") or 0)
    if price <= 0:
        raise ValidationFailed("This listing has no buy now price.")
    if not listing.get("seller_email"):
        raise ValidationFailed("Listing has no seller.")
    if buyer == normalize_email(listing.get("seller_email")):
        raise Forbidden("Sellers cannot buy their own listing.")

    settlement = compute_settlement(price, listing_id=listing_id)
    amount_minor = _pence(settlement.buyer_total)

    if payment_intent_id:
        charge = payments.retrieve_charge(payment_intent_id)
        if not charge.succeeded:
            raise PaymentDeclined("Payment has not succeeded.", status=charge.status, charge_id=charge.charge_id)
        meta = charge.metadata or {}
        if charge.amount_minor != amount_minor:
            raise ValidationFailed("Payment amount does not match the buy now price.")
        if meta.get("listingId") != listing_id or normalize_email(meta.get("buyerEmail")) != buyer:
            raise ValidationFailed("Payment does not belong to this listing and buyer.")
    else:
        customer, method = _payment_refs(store, buyer)
        charge = payments.create_and_confirm_charge(
            ChargeRequest(
                amount_minor=amount_minor,
                currency=R.CURRENCY,
                customer_ref=customer,
                payment_method_ref=method,
                idempotency_key=f"buy-now-{listing_id}-{amount_minor}-{buyer}",
                description=f"Buy now: {listing.get('title')}",
                metadata={"listingId": listing_id, "buyerEmail": buyer, "type": "buy_now"},
            )
        )
        if not charge.succeeded:
            raise PaymentDeclined(
                charge.error_message or "Payment was not completed.",
                status=charge.status,
                charge_id=charge.charge_id,
            )

    # 같은 결제로 재시도된 요청이면 기존 거래 리턴
    existing = find_transaction(store, charge_id=charge.charge_id) if charge.charge_id else None
    if existing is not None:
        return existing

    tx = create_transaction(
        store,
        listing=listing,
        buyer_email=buyer,
        sale_price=price,
        sale_channel="buy_now",
        paid=True,
        charge_id=charge.charge_id,
        delivery=delivery,
        now=now,
    )
    try:
        _mark_listing_sold(store, listing, buyer_email=buyer, price=price, sale_status="sold_buy_now", now=now)
    except ConcurrentModification:
        # 결제는 이미 확정 → 거래는 유지하고 관리자 확인용으로만 남김
        logger.error("[buy-now] listing %s changed while charging; tx=%s needs review", listing_id, tx["id"])
    logger.info("[buy-now] listing=%s tx=%s charge=%s", listing_id, tx["id"], charge.charge_id)
    return tx


# -------------------------------------------------------------------
# 경매 낙찰자 자동결제 (스케줄러에서 호출)
# -------------------------------------------------------------------
def charge_auction_winner(
    store: DocumentStore,
    payments: PaymentService,
    listing: Mapping[str, Any],
    *,
    now: Optional[datetime] = None,
) -> Optional[ChargeOutcome]:
    """
    completed 리스팅의 낙찰자에게 청구. succeeded 일 때만 거래 생성 + sold.
    이미 거래가 있으면 리스팅만 sold 로 맞추고 그 거래를 리턴 (재실행 안전).
    """
    now = now or now_utc()
    listing_id = listing["id"]
    winner = normalize_email(listing.get("highest_bidder_email"))
    price = int(listing.get("current_bid") or 0)
    if not winner or price <= 0:
        logger.warning("[winner] listing=%s has no winning bid", listing_id)
        return None

    existing = find_transaction(store, listing_id=listing_id)
    if existing is not None and existing.get("transaction_status") != "deleted":
        if listing_status(listing) is not LS.SOLD:
            _mark_listing_sold(store, listing, buyer_email=winner, price=price, sale_status="sold_auction", now=now)
        return ChargeOutcome(transaction=existing, charge=None, already_paid=True)

    settlement = compute_settlement(price, listing_id=listing_id)
    amount_minor = _pence(settlement.buyer_total)
    customer, method = _payment_refs(store, winner)

    charge = payments.create_and_confirm_charge(
        ChargeRequest(
            amount_minor=amount_minor,
            currency=R.CURRENCY,
            customer_ref=customer,
            payment_method_ref=method,
            idempotency_key=f"winner-charge-{listing_id}-{amount_minor}",
            description=f"Auction win: {listing.get('title')}",
            metadata={"listingId": listing_id, "winnerEmail": winner, "type": "auction_winner"},
        )
    )
    if not charge.succeeded:
        raise PaymentDeclined(
            charge.error_message or f"winner charge {charge.status}",
            status=charge.status,
            charge_id=charge.charge_id,
        )

    tx = create_transaction(
        store,
        listing=listing,
        buyer_email=winner,
        sale_price=price,
        sale_channel="auction",
        paid=True,
        charge_id=charge.charge_id,
        now=now,
    )
    _mark_listing_sold(store, listing, buyer_email=winner, price=price, sale_status="sold_auction", now=now)
    return ChargeOutcome(transaction=tx, charge=charge)


# -------------------------------------------------------------------
# 미결제 거래 청구 (관리자 / cron)
# -------------------------------------------------------------------
def charge_transaction(
    store: DocumentStore,
    payments: PaymentService,
    tx_id: str,
    *,
    now: Optional[datetime] = None,
) -> ChargeOutcome:
    tx = store.get_document(TX, tx_id)
    if parse_payment_status(tx.get("payment_status")) is PaymentStatus.PAID and tx.get("charge_id"):
        return ChargeOutcome(transaction=tx, charge=None, already_paid=True)

    customer, method = _payment_refs(store, tx["buyer_email"])
    buyer_extra = int(tx.get("ancillary_fee") or 0) if tx.get("ancillary_fee_payer") == "buyer" else 0
    amount_minor = _pence(int(tx["sale_price"]) + buyer_extra)

    charge = payments.create_and_confirm_charge(
        ChargeRequest(
            amount_minor=amount_minor,
            currency=R.CURRENCY,
            customer_ref=customer,
            payment_method_ref=method,
            idempotency_key=f"charge_tx_{tx_id}",
            description=f"Purchase: {tx.get('listing_title')}",
            metadata={"transactionId": tx_id, "type": "transaction"},
        )
    )

    if charge.succeeded:
        return ChargeOutcome(transaction=mark_paid(store, tx_id, charge_id=charge.charge_id, now=now), charge=charge)

    if charge.status == "requires_action":
        # 웹훅이 transactionId / charge_id 로 마무리한다
        updated = store.write_tolerant(
            TX, tx_id, {"charge_id": charge.charge_id, "updated_at": now or now_utc()},
            minimal_keys=("charge_id",),
        )
        return ChargeOutcome(transaction=updated, charge=charge)

    updated = mark_failed(store, tx_id, error=charge.error_message or charge.error_code, now=now)
    return ChargeOutcome(transaction=updated, charge=charge)


# -------------------------------------------------------------------
# 웹훅 이벤트 대사
# -------------------------------------------------------------------
def _tx_for_intent(store: DocumentStore, intent: Mapping[str, Any]) -> Optional[dict]:
    meta = intent.get("metadata") or {}
    tx_id = meta.get("transactionId")
    if tx_id:
        try:
            return store.get_document(TX, tx_id)
        except NotFoundError:
            logger.warning("[webhook] metadata transactionId=%s not found", tx_id)
    charge_id = intent.get("id")
    if charge_id:
        return find_transaction(store, charge_id=charge_id)
    return None


def handle_payment_event(store: DocumentStore, event: Mapping[str, Any], *, now: Optional[datetime] = None) -> dict:
    """
    이벤트 payload 에서 상태를 다시 도출한다 (클라이언트 상태 불신).
    반환: {"type": ..., "handled": bool, "transaction_id": ...}
    """
    etype = event.get("type")
    obj = ((event.get("data") or {}).get("object")) or {}
    result: dict[str, Any] = {"type": etype, "handled": False, "transaction_id": None}

    if etype == "payment_intent.succeeded":
        tx = _tx_for_intent(store, obj)
        if tx is None:
            logger.info("[webhook] no transaction for intent=%s", obj.get("id"))
            return result
        try:
            updated = mark_paid(store, tx["id"], charge_id=obj.get("id"), now=now)
        except InvalidStateTransition as e:
            logger.warning("[webhook] tx=%s not updated: %s", tx["id"], e)
            return {**result, "transaction_id": tx["id"]}
        return {**result, "handled": True, "transaction_id": updated["id"]}

    if etype == "payment_intent.payment_failed":
        tx = _tx_for_intent(store, obj)
        if tx is None:
            return result
        error = (obj.get("last_payment_error") or {}).get("message")
        try:
            updated = mark_failed(store, tx["id"], error=error, now=now)
        except InvalidStateTransition as e:
            logger.warning("[webhook] tx=%s not updated: %s", tx["id"], e)
            return {**result, "transaction_id": tx["id"]}
        return {**result, "handled": True, "transaction_id": updated["id"]}

    if etype == "setup_intent.succeeded":
        customer = obj.get("customer")
        method = obj.get("payment_method")
        if not customer or not method:
            return result
        rows = store.list_documents(USERS, {"stripe_customer_id": customer}, limit=1)
        if not rows:
            logger.info("[webhook] no user for customer=%s", customer)
            return result
        store.write_tolerant(
            USERS, rows[0]["id"],
            {"default_payment_method_id": method, "updated_at": now or now_utc()},
            minimal_keys=("default_payment_method_id",),
        )
        return {**result, "handled": True}

    logger.debug("[webhook] ignoring event type=%s", etype)
    return result
