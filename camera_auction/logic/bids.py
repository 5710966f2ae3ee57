# camera_auction/logic/bids.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from camera_auction.config.time_policy import now_utc
from camera_auction.core.bidding import minimum_next_bid, soft_close_end
from camera_auction.errors import (
    Forbidden,
    InvalidStateTransition,
    ValidationFailed,
)
from camera_auction.logic.listings import LISTINGS, LS, listing_status
from camera_auction.logic.transaction_lifecycle import normalize_email
from camera_auction.store import DocumentStore

logger = logging.getLogger(__name__)

BIDS = "bids"


def place_bid(
    store: DocumentStore,
    listing_id: str,
    *,
    bidder_email: str,
    amount: int,
    now: Optional[datetime] = None,
) -> tuple[dict, dict]:
    """
    입찰:
      - 라이브 + 마감 전 리스팅만
      - 최소 입찰가 = (현재가 또는 시작가) + 증가폭
      - 마감 5분 이내 입찰은 마감을 now+5분으로 연장 (soft close)
      - 리스팅 갱신은 current_bid 조건부 쓰기 → 동시 입찰 시 늦은 쪽은 409
    """
    now = now or now_utc()
    listing = store.get_document(LISTINGS, listing_id)

    if listing_status(listing) is not LS.LIVE:
        raise InvalidStateTransition("This auction is not live.")
    start = listing.get("auction_start")
    end = listing.get("auction_end")
    if start is not None and now < start:
        raise InvalidStateTransition("This auction has not started yet.")
    if end is None or now >= end:
        raise InvalidStateTransition("This auction has ended.")

    bidder = normalize_email(bidder_email)
    if bidder == normalize_email(listing.get("seller_email")):
        raise Forbidden("Sellers cannot bid on their own listing.")

    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationFailed("Bid amount must be a whole number of pounds.")
    minimum = minimum_next_bid(listing.get("current_bid"), listing.get("starting_price"))
    if amount < minimum:
        raise ValidationFailed(f"Minimum bid is £{minimum}.")

    new_end = soft_close_end(now, end)
    fields = {
        "current_bid": amount,
        "highest_bidder_email": bidder,
        "bid_count": int(listing.get("bid_count") or 0) + 1,
        "auction_end": new_end,
        "updated_at": now,
    }
    updated = store.write_tolerant(
        LISTINGS,
        listing_id,
        fields,
        minimal_keys=("current_bid", "highest_bidder_email", "auction_end"),
        expected={"status": LS.LIVE.value, "current_bid": listing.get("current_bid")},
    )
    if new_end != end:
        logger.info("[bid] soft close extended listing=%s end=%s", listing_id, new_end.isoformat())

    bid = store.create_tolerant(
        BIDS,
        {"listing_id": listing_id, "bidder_email": bidder, "amount": amount, "created_at": now},
        minimal_keys=("listing_id", "bidder_email", "amount"),
    )
    return updated, bid
