# camera_auction/routers/transactions.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, Path

from .. import schemas
from ..config.time_policy import now_utc
from ..errors import Forbidden
from ..logic import notifications as N
from ..logic.transaction_lifecycle import TX, confirm_dispatch, confirm_receipt, is_party
from ..security import Identity, get_current_identity
from ..store import DocumentStore, get_store
from ._common import translate_error

router = APIRouter(prefix="/transactions", tags=["transactions"])

_VISIBLE = {"transaction_status": ("!=", "deleted")}


@router.get(
    "/mine",
    response_model=schemas.TransactionListOut,
    summary="내 거래 (구매 / 판매)",
    operation_id="Transactions__Mine",
)
def transactions_mine(
    identity: Identity = Depends(get_current_identity),
    store: DocumentStore = Depends(get_store),
):
    try:
        return {
            "purchases": store.list_documents(TX, {**_VISIBLE, "buyer_email": identity.email}, order_by="-created_at"),
            "sales": store.list_documents(TX, {**_VISIBLE, "seller_email": identity.email}, order_by="-created_at"),
        }
    except Exception as e:
        translate_error(e)


@router.get(
    "/{tx_id}",
    response_model=schemas.TransactionOut,
    summary="거래 단건 (당사자 또는 관리자)",
    operation_id="Transactions__Get",
)
def transactions_get(
    tx_id: str = Path(...),
    identity: Identity = Depends(get_current_identity),
    store: DocumentStore = Depends(get_store),
):
    try:
        tx = store.get_document(TX, tx_id)
        if not identity.is_admin and not is_party(tx, identity.email):
            raise Forbidden("Not a party to this transaction.")
        return tx
    except Exception as e:
        translate_error(e)


# -------------------------------------------------------------------
# 발송 / 수령 확인
# -------------------------------------------------------------------
@router.post(
    "/{tx_id}/confirm-dispatch",
    response_model=schemas.TransactionOut,
    summary="판매자 발송 확인 (dispatch_pending → dispatch_sent)",
    operation_id="Transactions__ConfirmDispatch",
)
def transactions_confirm_dispatch(
    tx_id: str = Path(...),
    body: Optional[schemas.DispatchIn] = Body(None),
    identity: Identity = Depends(get_current_identity),
    store: DocumentStore = Depends(get_store),
    notifier: N.Notifier = Depends(N.get_notifier),
):
    try:
        before = store.get_document(TX, tx_id).get("transaction_status")
        tx = confirm_dispatch(
            store,
            tx_id,
            actor_email=identity.email,
            carrier=body.carrier if body else None,
            tracking=body.tracking if body else None,
            now=now_utc(),
        )
    except Exception as e:
        translate_error(e)

    # 멱등 재호출(상태 변화 없음)이면 알림 생략
    if tx.get("transaction_status") != before:
        N.notify_safely(notifier, tx.get("buyer_email"), *N.dispatch_sent(tx))
    return tx


@router.post(
    "/{tx_id}/confirm-received",
    response_model=schemas.TransactionOut,
    summary="구매자 수령 확인 (→ complete, 정산 가능)",
    operation_id="Transactions__ConfirmReceived",
)
def transactions_confirm_received(
    tx_id: str = Path(...),
    identity: Identity = Depends(get_current_identity),
    store: DocumentStore = Depends(get_store),
    notifier: N.Notifier = Depends(N.get_notifier),
):
    try:
        before = store.get_document(TX, tx_id).get("transaction_status")
        tx = confirm_receipt(store, tx_id, actor_email=identity.email, now=now_utc())
    except Exception as e:
        translate_error(e)

    if tx.get("transaction_status") != before:
        N.notify_safely(notifier, tx.get("seller_email"), *N.receipt_confirmed(tx))
    return tx
