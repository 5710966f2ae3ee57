# camera_auction/logic/transaction_lifecycle.py
# 거래(Transaction) 상태머신
#
#   unpaid ─▶ dispatch_pending ─▶ dispatch_sent ─▶ complete
#     │  ▲          │                                ▲
#     ▼  │          └────────────────────────────────┘ (수령확인은 발송 전에도 가능)
#   failed
#
#   archived / deleted : 관리자 전용 side-state. 이후 어떤 전이도 불가.
#
# 모든 전이는
#   1) 최신 상태를 다시 읽고
#   2) 권한/상태 가드 확인 후
#   3) "읽은 상태 그대로일 때만" 조건부 쓰기 (store.write_tolerant(expected=...))
from __future__ import annotations

import enum
import logging
from datetime import datetime
from typing import Any, Callable, Mapping, Optional

from camera_auction.config.time_policy import now_utc
from camera_auction.core.settlement import compute_settlement
from camera_auction.errors import (
    ConcurrentModification,
    Forbidden,
    InvalidStateTransition,
    ValidationFailed,
)
from camera_auction.store import DocumentStore

logger = logging.getLogger(__name__)

TX = "transactions"


class PaymentStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    FAILED = "failed"


class TransactionStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    DISPATCH_PENDING = "dispatch_pending"
    DISPATCH_SENT = "dispatch_sent"
    RECEIPT_PENDING = "receipt_pending"
    COMPLETE = "complete"
    FAILED = "failed"
    DELETED = "deleted"


TS = TransactionStatus

# 구버전 문서에 남아 있는 느슨한 문자열 → enum
_LEGACY_TX_STATUS = {
    "": TS.UNPAID,
    "pending": TS.UNPAID,
    "pending_payment": TS.UNPAID,
    "awaiting_payment": TS.UNPAID,
    "completed": TS.COMPLETE,
    "received": TS.COMPLETE,
    "dispatched": TS.DISPATCH_SENT,
    "shipped": TS.DISPATCH_SENT,
}

_LEGACY_PAYMENT_STATUS = {
    "": PaymentStatus.UNPAID,
    "pending": PaymentStatus.UNPAID,
    "requires_action": PaymentStatus.UNPAID,
    "succeeded": PaymentStatus.PAID,
}

# 허용 전이표 (현재 → 다음)
ALLOWED_TRANSITIONS: dict[TransactionStatus, frozenset[TransactionStatus]] = {
    TS.UNPAID: frozenset({TS.DISPATCH_PENDING, TS.FAILED, TS.DELETED}),
    TS.FAILED: frozenset({TS.DISPATCH_PENDING, TS.FAILED, TS.DELETED}),
    # paid 는 mark_paid 가 만들지 않는다 (바로 dispatch_pending). 구버전 문서에만 남아 있고 발송 대기로 취급
    TS.PAID: frozenset({TS.DISPATCH_PENDING, TS.DISPATCH_SENT, TS.DELETED}),
    TS.DISPATCH_PENDING: frozenset({TS.DISPATCH_SENT, TS.COMPLETE, TS.DELETED}),
    TS.DISPATCH_SENT: frozenset({TS.COMPLETE, TS.DELETED}),
    TS.RECEIPT_PENDING: frozenset({TS.COMPLETE, TS.DELETED}),
    TS.COMPLETE: frozenset(),
    TS.DELETED: frozenset(),
}

# 스키마 관용 쓰기가 끝까지 실패할 때 남기는 최소 필드
MINIMAL_STATUS_KEYS = (
    "transaction_status",
    "payment_status",
    "seller_dispatch_status",
    "buyer_receipt_status",
    "archived",
)


# -------------------------------------------------------
# 파싱 / 가드
# -------------------------------------------------------
def parse_transaction_status(raw: Any) -> TransactionStatus:
    key = str(raw or "").strip().lower()
    if key in _LEGACY_TX_STATUS:
        return _LEGACY_TX_STATUS[key]
    try:
        return TransactionStatus(key)
    except ValueError as e:
        raise InvalidStateTransition(f"unknown transaction status: {raw!r}") from e


def parse_payment_status(raw: Any) -> PaymentStatus:
    key = str(raw or "").strip().lower()
    if key in _LEGACY_PAYMENT_STATUS:
        return _LEGACY_PAYMENT_STATUS[key]
    try:
        return PaymentStatus(key)
    except ValueError as e:
        raise InvalidStateTransition(f"unknown payment status: {raw!r}") from e


def normalize_email(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def _require_party(tx: Mapping[str, Any], field: str, actor_email: Optional[str]) -> None:
    owner = normalize_email(tx.get(field))
    actor = normalize_email(actor_email)
    if not owner or not actor or owner != actor:
        role = "seller" if field == "seller_email" else "buyer"
        raise Forbidden(f"Only the {role} can perform this action.")


def _ensure_open(tx: Mapping[str, Any]) -> TransactionStatus:
    status = parse_transaction_status(tx.get("transaction_status"))
    if status is TS.DELETED:
        raise InvalidStateTransition("Transaction has been deleted.")
    if tx.get("archived"):
        raise InvalidStateTransition("Transaction is archived.")
    return status


def _guard(current: TransactionStatus, target: TransactionStatus) -> None:
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStateTransition(f"Cannot move transaction from {current.value} to {target.value}.")


def _expected(tx: Mapping[str, Any], *keys: str) -> dict:
    return {k: tx.get(k) for k in keys}


def _write(
    store: DocumentStore,
    tx: Mapping[str, Any],
    fields: dict,
    *,
    expected_keys: tuple[str, ...] = ("transaction_status", "archived"),
    settled: Optional[Callable[[Mapping[str, Any]], bool]] = None,
) -> dict:
    """
    조건부 쓰기. 동시 요청에 밀렸을 때 재조회 결과가 이미 목표 상태(settled)면
    중복 요청으로 보고 그 상태를 그대로 돌려준다.
    """
    try:
        return store.write_tolerant(
            TX,
            tx["id"],
            fields,
            minimal_keys=MINIMAL_STATUS_KEYS,
            expected=_expected(tx, *expected_keys),
        )
    except ConcurrentModification:
        latest = store.get_document(TX, tx["id"])
        if settled is not None and settled(latest):
            logger.info("[tx] %s: concurrent duplicate resolved to %s", tx["id"], latest.get("transaction_status"))
            return latest
        raise


# -------------------------------------------------------
# 생성
# -------------------------------------------------------
def create_transaction(
    store: DocumentStore,
    *,
    listing: Mapping[str, Any],
    buyer_email: str,
    sale_price: int,
    sale_channel: str,
    paid: bool,
    charge_id: Optional[str] = None,
    delivery: Optional[Mapping[str, Any]] = None,
    now: Optional[datetime] = None,
) -> dict:
    """결제 확정(또는 미결제 수동판매) 시점에 거래를 만든다. 정산액은 여기서 고정된다."""
    now = now or now_utc()
    settlement = compute_settlement(sale_price, listing_id=listing.get("id"))

    fields = {
        "listing_id": listing["id"],
        "listing_title": listing.get("title"),
        "sale_channel": sale_channel,
        "seller_email": normalize_email(listing.get("seller_email")),
        "buyer_email": normalize_email(buyer_email),
        **settlement.as_fields(),
        "payment_status": (PaymentStatus.PAID if paid else PaymentStatus.UNPAID).value,
        "transaction_status": (TS.DISPATCH_PENDING if paid else TS.UNPAID).value,
        "charge_id": charge_id,
        "paid_at": now if paid else None,
        "archived": False,
        "created_at": now,
        "updated_at": now,
    }
    for key in ("delivery_name", "delivery_address", "delivery_postcode"):
        if delivery and delivery.get(key):
            fields[key] = delivery[key]

    return store.create_tolerant(
        TX,
        fields,
        minimal_keys=(
            "listing_id", "seller_email", "buyer_email", "sale_price", "commission_rate",
            "commission_amount", "seller_payout", "payment_status", "transaction_status", "charge_id",
        ),
    )


# -------------------------------------------------------
# 결제
# -------------------------------------------------------
def _is_paid(tx: Mapping[str, Any]) -> bool:
    return parse_payment_status(tx.get("payment_status")) is PaymentStatus.PAID


def mark_paid(
    store: DocumentStore,
    tx_id: str,
    *,
    charge_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict:
    """
    결제 확정. 동기 확인과 웹훅이 둘 다 들어올 수 있으므로 이미 paid 면 그대로 성공.
    """
    tx = store.get_document(TX, tx_id)
    status = _ensure_open(tx)
    if _is_paid(tx):
        return tx
    _guard(status, TS.DISPATCH_PENDING)

    now = now or now_utc()
    fields = {
        "payment_status": PaymentStatus.PAID.value,
        "transaction_status": TS.DISPATCH_PENDING.value,
        "paid_at": now,
        "payment_error": None,
        "updated_at": now,
    }
    if charge_id:
        fields["charge_id"] = charge_id
    return _write(
        store, tx, fields,
        expected_keys=("payment_status", "transaction_status", "archived"),
        settled=_is_paid,
    )


def mark_failed(
    store: DocumentStore,
    tx_id: str,
    *,
    error: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict:
    """결제 실패 기록. 이미 paid 인 거래는 절대 failed 로 내리지 않는다."""
    tx = store.get_document(TX, tx_id)
    status = _ensure_open(tx)
    if _is_paid(tx):
        logger.warning("[tx] %s: ignoring failure report for a paid transaction", tx_id)
        return tx
    _guard(status, TS.FAILED)

    now = now or now_utc()
    fields = {
        "payment_status": PaymentStatus.FAILED.value,
        "transaction_status": TS.FAILED.value,
        "payment_error": (error or "payment failed")[:500],
        "updated_at": now,
    }
    return _write(store, tx, fields, expected_keys=("payment_status", "transaction_status", "archived"), settled=_is_paid)


# -------------------------------------------------------
# 발송 / 수령
# -------------------------------------------------------
_DISPATCHED = (TS.DISPATCH_SENT, TS.RECEIPT_PENDING)
_AWAITING_DISPATCH = (TS.DISPATCH_PENDING, TS.PAID)
_RECEIVABLE = (TS.RECEIPT_PENDING, TS.DISPATCH_SENT, TS.DISPATCH_PENDING)


def _is_dispatched(tx: Mapping[str, Any]) -> bool:
    return parse_transaction_status(tx.get("transaction_status")) in _DISPATCHED


def _is_complete(tx: Mapping[str, Any]) -> bool:
    return parse_transaction_status(tx.get("transaction_status")) is TS.COMPLETE


def confirm_dispatch(
    store: DocumentStore,
    tx_id: str,
    *,
    actor_email: str,
    carrier: Optional[str] = None,
    tracking: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict:
    """판매자 발송 확인. 이미 발송된 거래는 그대로 돌려준다."""
    tx = store.get_document(TX, tx_id)
    _require_party(tx, "seller_email", actor_email)
    status = _ensure_open(tx)

    if status in _DISPATCHED:
        return tx
    if not _is_paid(tx):
        raise InvalidStateTransition("Payment has not been completed for this transaction.")
    if status not in _AWAITING_DISPATCH:
        raise InvalidStateTransition(f"Cannot confirm dispatch while transaction is {status.value}.")
    _guard(status, TS.DISPATCH_SENT)

    now = now or now_utc()
    fields = {
        "transaction_status": TS.DISPATCH_SENT.value,
        "seller_dispatch_status": "sent",
        "dispatched_at": now,
        "dispatch_carrier": (carrier or "").strip() or None,
        "dispatch_tracking": (tracking or "").strip() or None,
        "buyer_receipt_status": "pending",
        "updated_at": now,
    }
    return _write(store, tx, fields, settled=_is_dispatched)


def confirm_receipt(
    store: DocumentStore,
    tx_id: str,
    *,
    actor_email: str,
    now: Optional[datetime] = None,
) -> dict:
    """구매자 수령 확인 → complete + 정산 대기(payout ready)."""
    tx = store.get_document(TX, tx_id)
    _require_party(tx, "buyer_email", actor_email)
    status = _ensure_open(tx)

    if status is TS.COMPLETE:
        return tx
    if not _is_paid(tx):
        raise InvalidStateTransition("Payment has not been completed for this transaction.")
    if status not in _RECEIVABLE:
        raise InvalidStateTransition(f"Cannot confirm receipt while transaction is {status.value}.")
    _guard(status, TS.COMPLETE)

    now = now or now_utc()
    fields = {
        "transaction_status": TS.COMPLETE.value,
        "buyer_receipt_status": "confirmed",
        "received_at": now,
        "payout_status": "ready",
        "updated_at": now,
    }
    return _write(store, tx, fields, settled=_is_complete)


# -------------------------------------------------------
# 관리자: 보관 / 소프트 삭제
# -------------------------------------------------------
def _require_reason(reason: Optional[str]) -> str:
    text = (reason or "").strip()
    if not text:
        raise ValidationFailed("A reason is required.")
    return text


def archive(
    store: DocumentStore,
    tx_id: str,
    *,
    reason: str,
    actor_email: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict:
    """
    보관 플래그만 세운다. 결제상태/금액 필드는 건드리지 않음.
    """
    text = _require_reason(reason)
    tx = store.get_document(TX, tx_id)
    if parse_transaction_status(tx.get("transaction_status")) is TS.DELETED:
        raise InvalidStateTransition("Transaction has been deleted.")
    if tx.get("archived"):
        return tx

    now = now or now_utc()
    fields = {
        "archived": True,
        "archived_reason": text,
        "archived_at": now,
        "archived_by": normalize_email(actor_email) or None,
        "updated_at": now,
    }
    return _write(store, tx, fields, settled=lambda d: bool(d.get("archived")))


def soft_delete(
    store: DocumentStore,
    tx_id: str,
    *,
    reason: str,
    actor_email: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict:
    """관리자 삭제 = transaction_status deleted + 보관 플래그. payment_status 는 유지."""
    text = _require_reason(reason)
    tx = store.get_document(TX, tx_id)
    if parse_transaction_status(tx.get("transaction_status")) is TS.DELETED:
        return tx
    status = _ensure_open(tx)
    _guard(status, TS.DELETED)

    now = now or now_utc()
    fields = {
        "transaction_status": TS.DELETED.value,
        "archived": True,
        "archived_reason": text,
        "archived_at": now,
        "archived_by": normalize_email(actor_email) or None,
        "deleted_at": now,
        "updated_at": now,
    }
    return _write(
        store, tx, fields,
        settled=lambda d: parse_transaction_status(d.get("transaction_status")) is TS.DELETED,
    )


# -------------------------------------------------------
# 조회 헬퍼
# -------------------------------------------------------
def payout_eligible(tx: Mapping[str, Any]) -> bool:
    return (
        _is_complete(tx)
        and _is_paid(tx)
        and not tx.get("archived")
    )


def is_party(tx: Mapping[str, Any], email: Optional[str]) -> bool:
    actor = normalize_email(email)
    return bool(actor) and actor in (normalize_email(tx.get("seller_email")), normalize_email(tx.get("buyer_email")))
