# camera_auction/logic/listings.py
# 리스팅 제출 → 관리자 승인(주간 창에 배정) / 반려, 판매자 수정·철회·재등록, 관리자 수동 판매
from __future__ import annotations

import enum
import logging
from datetime import datetime
from typing import Any, Mapping, Optional

from camera_auction.config.time_policy import now_utc
from camera_auction.core.auction_window import compute_window, relist_window, upcoming_window
from camera_auction.core.bidding import validate_listing_prices
from camera_auction.errors import (
    Forbidden,
    InvalidStateTransition,
    ValidationFailed,
)
from camera_auction.logic.transaction_lifecycle import create_transaction, normalize_email
from camera_auction.store import DocumentStore

logger = logging.getLogger(__name__)

LISTINGS = "listings"


class ListingStatus(str, enum.Enum):
    PENDING_APPROVAL = "pending_approval"
    QUEUED = "queued"
    LIVE = "live"
    COMPLETED = "completed"  # 경매 종료 + 낙찰자 있음, 결제 대기
    SOLD = "sold"
    NOT_SOLD = "not_sold"
    WITHDRAWN = "withdrawn"
    REJECTED = "rejected"


LS = ListingStatus

EDITABLE_STATUSES = (LS.PENDING_APPROVAL, LS.QUEUED)

EDITABLE_FIELDS = (
    "title", "brand", "model", "category", "condition", "description",
    "starting_price", "reserve_price", "buy_now_price", "relist_until_sold",
)

MINIMAL_LISTING_KEYS = ("status", "auction_start", "auction_end", "current_bid", "sale_status")


def listing_status(listing: Mapping[str, Any]) -> ListingStatus:
    raw = str(listing.get("status") or "").strip().lower()
    try:
        return ListingStatus(raw)
    except ValueError as e:
        raise InvalidStateTransition(f"unknown listing status: {listing.get('status')!r}") from e


def _require_seller(listing: Mapping[str, Any], actor_email: Optional[str]) -> None:
    if not actor_email or normalize_email(listing.get("seller_email")) != normalize_email(actor_email):
        raise Forbidden("Only the seller can change this listing.")


def _update(store: DocumentStore, listing: Mapping[str, Any], fields: dict) -> dict:
    return store.write_tolerant(
        LISTINGS,
        listing["id"],
        fields,
        minimal_keys=MINIMAL_LISTING_KEYS,
        expected={"status": listing.get("status")},
    )


# -------------------------------------------------------------------
# 제출
# -------------------------------------------------------------------
def submit_listing(
    store: DocumentStore,
    *,
    seller_email: str,
    seller_name: Optional[str],
    data: Mapping[str, Any],
    now: Optional[datetime] = None,
) -> dict:
    title = (data.get("title") or "").strip()
    if not title:
        raise ValidationFailed("Title is required.")
    validate_listing_prices(data.get("starting_price"), data.get("reserve_price"), data.get("buy_now_price"))

    now = now or now_utc()
    fields = {k: data.get(k) for k in EDITABLE_FIELDS if data.get(k) is not None}
    fields.update(
        title=title,
        seller_email=normalize_email(seller_email),
        seller_name=seller_name,
        status=LS.PENDING_APPROVAL.value,
        bid_count=0,
        created_at=now,
        updated_at=now,
    )
    listing = store.create_tolerant(
        LISTINGS, fields, minimal_keys=("title", "seller_email", "status", "starting_price", "reserve_price")
    )
    logger.info("[listing] submitted id=%s seller=%s", listing["id"], listing["seller_email"])
    return listing


def edit_listing(
    store: DocumentStore,
    listing_id: str,
    *,
    actor_email: str,
    changes: Mapping[str, Any],
    now: Optional[datetime] = None,
) -> dict:
    """판매자 수정은 승인 대기/대기열(queued) 상태에서만."""
    listing = store.get_document(LISTINGS, listing_id)
    _require_seller(listing, actor_email)
    if listing_status(listing) not in EDITABLE_STATUSES:
        raise InvalidStateTransition("Only pending or queued listings can be edited.")

    fields = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS and v is not None}
    if not fields:
        return listing
    if "title" in fields and not str(fields["title"]).strip():
        raise ValidationFailed("Title is required.")

    merged = {**listing, **fields}
    validate_listing_prices(merged.get("starting_price"), merged.get("reserve_price"), merged.get("buy_now_price"))

    fields["updated_at"] = now or now_utc()
    return _update(store, listing, fields)


def withdraw_listing(
    store: DocumentStore,
    listing_id: str,
    *,
    actor_email: str,
    now: Optional[datetime] = None,
) -> dict:
    listing = store.get_document(LISTINGS, listing_id)
    _require_seller(listing, actor_email)
    status = listing_status(listing)
    if status is LS.WITHDRAWN:
        return listing
    if status not in EDITABLE_STATUSES:
        raise InvalidStateTransition("Only pending or queued listings can be withdrawn.")
    return _update(store, listing, {"status": LS.WITHDRAWN.value, "updated_at": now or now_utc()})


# -------------------------------------------------------------------
# 판매자 재등록 (유찰된 리스팅만)
# -------------------------------------------------------------------
def relist_listing(
    store: DocumentStore,
    listing_id: str,
    *,
    actor_email: str,
    now: Optional[datetime] = None,
) -> dict:
    """
    not_sold → 이번 창(아직 안 끝났으면) 또는 다음 창.
    창이 이미 열려 있으면 바로 live, 아니면 queued. 입찰 상태는 초기화.
    """
    listing = store.get_document(LISTINGS, listing_id)
    _require_seller(listing, actor_email)
    status = listing_status(listing)
    if status is not LS.NOT_SOLD:
        raise InvalidStateTransition(
            f"This listing cannot be relisted because it is {status.value}, not not_sold."
        )

    now = now or now_utc()
    start, end = relist_window(compute_window(now))
    new_status = LS.LIVE if start <= now < end else LS.QUEUED
    updated = _update(
        store, listing,
        {
            "status": new_status.value,
            "auction_start": start,
            "auction_end": end,
            "current_bid": None,
            "bid_count": 0,
            "highest_bidder_email": None,
            "relist_count": int(listing.get("relist_count") or 0) + 1,
            "updated_at": now,
        },
    )
    logger.info("[listing] relisted id=%s status=%s window=%s→%s", listing_id, new_status.value, start.isoformat(), end.isoformat())
    return updated


# -------------------------------------------------------------------
# 관리자 승인 / 반려
# -------------------------------------------------------------------
def approve_listing(
    store: DocumentStore,
    listing_id: str,
    *,
    overrides: Optional[Mapping[str, Any]] = None,
    now: Optional[datetime] = None,
) -> dict:
    """
    승인 = 다음에 열리는 주간 창(시작 전이면 이번 창, 아니면 다음 창)에 queued 로 배정.
    이미 queued 면 그대로 리턴.
    """
    listing = store.get_document(LISTINGS, listing_id)
    status = listing_status(listing)
    if status is LS.QUEUED:
        return listing
    if status is not LS.PENDING_APPROVAL:
        raise InvalidStateTransition(f"Cannot approve a listing that is {status.value}.")

    price_fields = {
        k: v for k, v in (overrides or {}).items()
        if k in ("starting_price", "reserve_price", "buy_now_price", "relist_until_sold") and v is not None
    }
    merged = {**listing, **price_fields}
    validate_listing_prices(merged.get("starting_price"), merged.get("reserve_price"), merged.get("buy_now_price"))

    now = now or now_utc()
    start, end = upcoming_window(compute_window(now))
    fields = {
        **price_fields,
        "status": LS.QUEUED.value,
        "auction_start": start,
        "auction_end": end,
        "approved_at": now,
        "rejection_reason": None,
        "updated_at": now,
    }
    updated = _update(store, listing, fields)
    logger.info("[listing] approved id=%s window=%s→%s", listing_id, start.isoformat(), end.isoformat())
    return updated


def reject_listing(
    store: DocumentStore,
    listing_id: str,
    *,
    reason: str,
    now: Optional[datetime] = None,
) -> dict:
    text = (reason or "").strip()
    if not text:
        raise ValidationFailed("A rejection reason is required.")
    listing = store.get_document(LISTINGS, listing_id)
    status = listing_status(listing)
    if status is LS.REJECTED:
        return listing
    if status not in EDITABLE_STATUSES:
        raise InvalidStateTransition(f"Cannot reject a listing that is {status.value}.")
    return _update(
        store, listing,
        {"status": LS.REJECTED.value, "rejection_reason": text, "updated_at": now or now_utc()},
    )


# -------------------------------------------------------------------
# 관리자 수동 판매 (플랫폼 밖에서 합의된 판매를 미결제 거래로 기록)
# -------------------------------------------------------------------
def mark_listing_sold(
    store: DocumentStore,
    listing_id: str,
    *,
    buyer_email: str,
    sale_price: int,
    now: Optional[datetime] = None,
) -> tuple[dict, dict]:
    listing = store.get_document(LISTINGS, listing_id)
    status = listing_status(listing)
    if status in (LS.SOLD, LS.WITHDRAWN, LS.REJECTED):
        raise InvalidStateTransition(f"Cannot mark a listing that is {status.value} as sold.")
    if not normalize_email(buyer_email):
        raise ValidationFailed("Buyer email is required.")

    now = now or now_utc()
    tx = create_transaction(
        store,
        listing=listing,
        buyer_email=buyer_email,
        sale_price=sale_price,
        sale_channel="manual",
        paid=False,
        now=now,
    )
    updated = _update(
        store, listing,
        {
            "status": LS.SOLD.value,
            "sale_status": "sold_manual",
            "sold_price": sale_price,
            "buyer_email": normalize_email(buyer_email),
            "sold_at": now,
            "updated_at": now,
        },
    )
    return updated, tx
