# camera_auction/routers/bids.py
from __future__ import annotations

from fastapi import APIRouter, Body, Depends

from .. import schemas
from ..config.time_policy import now_utc
from ..core.bidding import minimum_next_bid
from ..logic import notifications as N
from ..logic.bids import place_bid
from ..security import Identity, get_current_identity
from ..store import DocumentStore, get_store
from ._common import translate_error

router = APIRouter(prefix="/bids", tags=["bids"])


@router.post(
    "",
    response_model=schemas.BidOut,
    summary="입찰 (최소 증가폭 + 마감 5분 soft close)",
    operation_id="Bids__Place",
)
def bids_place(
    body: schemas.BidIn = Body(...),
    identity: Identity = Depends(get_current_identity),
    store: DocumentStore = Depends(get_store),
    notifier: N.Notifier = Depends(N.get_notifier),
):
    try:
        listing, bid = place_bid(store, body.listing_id, bidder_email=identity.email, amount=body.amount, now=now_utc())
    except Exception as e:
        translate_error(e)

    N.notify_many(notifier, [
        (identity.email, *N.bid_placed_bidder(listing, body.amount)),
        (listing.get("seller_email"), *N.bid_placed_seller(listing, body.amount)),
    ])
    return {
        "listing": listing,
        "bid": bid,
        "minimum_next_bid": minimum_next_bid(listing.get("current_bid"), listing.get("starting_price")),
    }
