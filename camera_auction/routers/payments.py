# camera_auction/routers/payments.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Header, Request

from .. import schemas
from ..config import env
from ..config.time_policy import now_utc
from ..logic.checkout import handle_payment_event, save_payment_method
from ..pg.client import verify_webhook_signature
from ..security import Identity, get_current_identity
from ..store import DocumentStore, get_store
from ._common import translate_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post(
    "/webhook",
    summary="Stripe 웹훅 (서명 검증 후 결제 상태 대사)",
    operation_id="Payments__Webhook",
)
async def payments_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    store: DocumentStore = Depends(get_store),
):
    # 서명은 원문 바이트 기준
    raw = await request.body()
    try:
        event = verify_webhook_signature(raw, stripe_signature, env.STRIPE_WEBHOOK_SECRET)
        result = handle_payment_event(store, event, now=now_utc())
    except Exception as e:
        translate_error(e)
    logger.info("[webhook] %s", result)
    return {"received": True, **result}


@router.put(
    "/method",
    response_model=schemas.UserOut,
    summary="기본 결제수단 저장 (customer / payment_method 참조)",
    operation_id="Payments__SaveMethod",
)
def payments_save_method(
    body: schemas.PaymentMethodIn = Body(...),
    identity: Identity = Depends(get_current_identity),
    store: DocumentStore = Depends(get_store),
):
    try:
        return save_payment_method(
            store,
            email=identity.email,
            customer_ref=body.customer_ref,
            payment_method_ref=body.payment_method_ref,
            now=now_utc(),
        )
    except Exception as e:
        translate_error(e)
