# camera_auction/routers/admin.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Path, Query

from .. import schemas
from ..config import env
from ..config.time_policy import now_utc
from ..logic import notifications as N
from ..logic.checkout import charge_transaction
from ..logic.listings import LISTINGS, approve_listing, mark_listing_sold, reject_listing
from ..logic.transaction_lifecycle import TX, archive, soft_delete
from ..pg.client import PaymentService, get_payment_service
from ..security import Identity, require_admin, require_admin_or_cron
from ..store import DocumentStore, get_store
from ._common import translate_error

router = APIRouter(prefix="/admin", tags=["admin"])


# -------------------------------------------------------------------
# 리스팅 심사
# -------------------------------------------------------------------
@router.get(
    "/listings",
    response_model=List[schemas.ListingOut],
    summary="[관리자] 리스팅 목록 (기본: 승인 대기)",
    operation_id="Admin__ListListings",
)
def admin_list_listings(
    status_: str = Query("pending_approval", alias="status"),
    _admin: Identity = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    try:
        return store.list_documents(LISTINGS, {"status": status_}, order_by="created_at")
    except Exception as e:
        translate_error(e)


@router.post(
    "/listings/{listing_id}/approve",
    response_model=schemas.ListingOut,
    summary="[관리자] 승인 → 다음 주간 창에 queued",
    operation_id="Admin__ApproveListing",
)
def admin_approve_listing(
    listing_id: str = Path(...),
    body: Optional[schemas.ApproveIn] = Body(None),
    _admin: Identity = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
    notifier: N.Notifier = Depends(N.get_notifier),
):
    try:
        listing = approve_listing(
            store,
            listing_id,
            overrides=body.model_dump(exclude_unset=True) if body else None,
            now=now_utc(),
        )
    except Exception as e:
        translate_error(e)

    N.notify_safely(notifier, listing.get("seller_email"), *N.listing_approved(listing))
    return listing


@router.post(
    "/listings/{listing_id}/reject",
    response_model=schemas.ListingOut,
    summary="[관리자] 반려 (사유 필수)",
    operation_id="Admin__RejectListing",
)
def admin_reject_listing(
    listing_id: str = Path(...),
    body: schemas.ReasonIn = Body(...),
    _admin: Identity = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
    notifier: N.Notifier = Depends(N.get_notifier),
):
    try:
        listing = reject_listing(store, listing_id, reason=body.reason, now=now_utc())
    except Exception as e:
        translate_error(e)

    N.notify_safely(notifier, listing.get("seller_email"), *N.listing_rejected(listing, body.reason))
    return listing


@router.post(
    "/listings/{listing_id}/mark-sold",
    response_model=schemas.TransactionOut,
    summary="[관리자] 수동 판매 기록 (미결제 거래 생성)",
    operation_id="Admin__MarkSold",
)
def admin_mark_sold(
    listing_id: str = Path(...),
    body: schemas.MarkSoldIn = Body(...),
    _admin: Identity = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    try:
        _listing, tx = mark_listing_sold(
            store,
            listing_id,
            buyer_email=body.buyer_email,
            sale_price=body.sale_price,
            now=now_utc(),
        )
        return tx
    except Exception as e:
        translate_error(e)


# -------------------------------------------------------------------
# 거래 관리
# -------------------------------------------------------------------
@router.get(
    "/transactions",
    response_model=List[schemas.TransactionOut],
    summary="[관리자] 거래 목록",
    operation_id="Admin__ListTransactions",
)
def admin_list_transactions(
    transaction_status: Optional[str] = Query(None),
    include_archived: bool = Query(False),
    limit: int = Query(200, ge=1, le=1000),
    _admin: Identity = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    try:
        filters: dict = {}
        if transaction_status:
            filters["transaction_status"] = transaction_status
        if not include_archived:
            filters["archived"] = False
        return store.list_documents(TX, filters, order_by="-created_at", limit=limit)
    except Exception as e:
        translate_error(e)


@router.post(
    "/transactions/{tx_id}/archive",
    response_model=schemas.TransactionOut,
    summary="[관리자] 보관 (사유 필수, 금액/결제상태 불변)",
    operation_id="Admin__ArchiveTransaction",
)
def admin_archive_transaction(
    tx_id: str = Path(...),
    body: schemas.ReasonIn = Body(...),
    admin: Identity = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    try:
        return archive(store, tx_id, reason=body.reason, actor_email=admin.email, now=now_utc())
    except Exception as e:
        translate_error(e)


@router.post(
    "/transactions/{tx_id}/delete",
    response_model=schemas.TransactionOut,
    summary="[관리자] 소프트 삭제 (transaction_status=deleted)",
    operation_id="Admin__DeleteTransaction",
)
def admin_delete_transaction(
    tx_id: str = Path(...),
    body: schemas.ReasonIn = Body(...),
    admin: Identity = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    try:
        return soft_delete(store, tx_id, reason=body.reason, actor_email=admin.email, now=now_utc())
    except Exception as e:
        translate_error(e)


@router.post(
    "/transactions/{tx_id}/charge",
    response_model=schemas.ChargeOut,
    summary="[관리자/cron] 미결제 거래 청구 (멱등키 charge_tx_{id})",
    operation_id="Admin__ChargeTransaction",
)
def admin_charge_transaction(
    tx_id: str = Path(...),
    _actor: str = Depends(require_admin_or_cron),
    store: DocumentStore = Depends(get_store),
    payments: PaymentService = Depends(get_payment_service),
    notifier: N.Notifier = Depends(N.get_notifier),
):
    try:
        outcome = charge_transaction(store, payments, tx_id, now=now_utc())
    except Exception as e:
        translate_error(e)

    tx = outcome.transaction
    if outcome.charge is not None and outcome.charge.succeeded:
        N.notify_many(notifier, [
            (tx.get("buyer_email"), *N.sale_buyer(tx)),
            (tx.get("seller_email"), *N.sale_seller(tx)),
            (env.ADMIN_EMAIL, *N.sale_admin(tx)),
        ])
    return {
        "transaction": tx,
        "already_paid": outcome.already_paid,
        "charge_status": outcome.charge.status if outcome.charge else None,
    }
