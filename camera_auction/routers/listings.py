# camera_auction/routers/listings.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Path, Query, status

from .. import schemas
from ..config.time_policy import now_utc
from ..logic import notifications as N
from ..logic.listings import LISTINGS, edit_listing, relist_listing, submit_listing, withdraw_listing
from ..security import Identity, get_current_identity
from ..store import DocumentStore, get_store
from ._common import translate_error

router = APIRouter(prefix="/listings", tags=["listings"])

# 비로그인 공개 목록에 노출되는 상태
PUBLIC_STATUSES = ("queued", "live", "completed", "sold", "not_sold")


# -------------------------------------------------------------------
# 리스팅 제출 (승인 대기)
# -------------------------------------------------------------------
@router.post(
    "",
    response_model=schemas.ListingOut,
    status_code=status.HTTP_201_CREATED,
    summary="리스팅 제출 (pending_approval)",
    operation_id="Listings__Submit",
)
def listings_submit(
    body: schemas.ListingCreate = Body(...),
    identity: Identity = Depends(get_current_identity),
    store: DocumentStore = Depends(get_store),
):
    try:
        return submit_listing(
            store,
            seller_email=identity.email,
            seller_name=None,
            data=body.model_dump(),
            now=now_utc(),
        )
    except Exception as e:
        translate_error(e)


@router.get(
    "",
    response_model=List[schemas.ListingOut],
    summary="리스팅 목록 (status 필터)",
    operation_id="Listings__List",
)
def listings_list(
    status_: Optional[str] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    store: DocumentStore = Depends(get_store),
):
    try:
        if status_:
            if status_ not in PUBLIC_STATUSES:
                return []
            filters = {"status": status_}
        else:
            filters = {"status": ("in", PUBLIC_STATUSES)}
        return store.list_documents(LISTINGS, filters, order_by="auction_end", limit=limit)
    except Exception as e:
        translate_error(e)


@router.get(
    "/mine",
    response_model=List[schemas.ListingOut],
    summary="내 리스팅 (모든 상태)",
    operation_id="Listings__Mine",
)
def listings_mine(
    identity: Identity = Depends(get_current_identity),
    store: DocumentStore = Depends(get_store),
):
    try:
        return store.list_documents(LISTINGS, {"seller_email": identity.email}, order_by="-created_at")
    except Exception as e:
        translate_error(e)


@router.get(
    "/{listing_id}",
    response_model=schemas.ListingOut,
    summary="리스팅 단건",
    operation_id="Listings__Get",
)
def listings_get(
    listing_id: str = Path(...),
    store: DocumentStore = Depends(get_store),
):
    try:
        return store.get_document(LISTINGS, listing_id)
    except Exception as e:
        translate_error(e)


# -------------------------------------------------------------------
# 판매자: queued 상태 수정 / 철회
# -------------------------------------------------------------------
@router.post(
    "/{listing_id}/edit-queued",
    response_model=schemas.ListingOut,
    summary="판매자 수정 (pending_approval / queued 전용)",
    operation_id="Listings__EditQueued",
)
def listings_edit_queued(
    listing_id: str = Path(...),
    body: schemas.ListingUpdate = Body(...),
    identity: Identity = Depends(get_current_identity),
    store: DocumentStore = Depends(get_store),
):
    try:
        return edit_listing(
            store,
            listing_id,
            actor_email=identity.email,
            changes=body.model_dump(exclude_unset=True),
            now=now_utc(),
        )
    except Exception as e:
        translate_error(e)


@router.post(
    "/{listing_id}/withdraw-queued",
    response_model=schemas.ListingOut,
    summary="판매자 철회 (pending_approval / queued → withdrawn)",
    operation_id="Listings__WithdrawQueued",
)
def listings_withdraw_queued(
    listing_id: str = Path(...),
    identity: Identity = Depends(get_current_identity),
    store: DocumentStore = Depends(get_store),
):
    try:
        return withdraw_listing(store, listing_id, actor_email=identity.email, now=now_utc())
    except Exception as e:
        translate_error(e)


# -------------------------------------------------------------------
# 판매자: 유찰(not_sold) 리스팅 재등록
# -------------------------------------------------------------------
@router.post(
    "/{listing_id}/relist",
    response_model=schemas.ListingOut,
    summary="판매자 재등록 (not_sold → 이번/다음 주간 창, 창이 열려 있으면 바로 live)",
    operation_id="Listings__Relist",
)
def listings_relist(
    listing_id: str = Path(...),
    identity: Identity = Depends(get_current_identity),
    store: DocumentStore = Depends(get_store),
    notifier: N.Notifier = Depends(N.get_notifier),
):
    try:
        listing = relist_listing(store, listing_id, actor_email=identity.email, now=now_utc())
    except Exception as e:
        translate_error(e)

    N.notify_safely(notifier, listing.get("seller_email"), *N.listing_relisted(listing, automatic=False))
    return listing
