# camera_auction/routers/buy_now.py
from __future__ import annotations

from fastapi import APIRouter, Body, Depends

from .. import schemas
from ..config import env
from ..config.time_policy import now_utc
from ..logic import notifications as N
from ..logic.checkout import buy_now, previous_buy_now
from ..pg.client import PaymentService, get_payment_service
from ..security import Identity, get_current_identity
from ..store import DocumentStore, get_store
from ._common import translate_error

router = APIRouter(prefix="/buy-now", tags=["buy-now"])


@router.post(
    "",
    response_model=schemas.TransactionOut,
    summary="즉시구매: 결제 확정 → 거래(paid) 생성 → 리스팅 sold",
    operation_id="BuyNow__Purchase",
)
def buy_now_purchase(
    body: schemas.BuyNowIn = Body(...),
    identity: Identity = Depends(get_current_identity),
    store: DocumentStore = Depends(get_store),
    payments: PaymentService = Depends(get_payment_service),
    notifier: N.Notifier = Depends(N.get_notifier),
):
    delivery = {
        "delivery_name": body.delivery_name,
        "delivery_address": body.delivery_address,
        "delivery_postcode": body.delivery_postcode,
    }
    try:
        prior = previous_buy_now(store, body.listing_id, identity.email, body.payment_intent_id)
        tx = buy_now(
            store,
            payments,
            listing_id=body.listing_id,
            buyer_email=identity.email,
            payment_intent_id=body.payment_intent_id,
            delivery={k: v for k, v in delivery.items() if v},
            now=now_utc(),
        )
    except Exception as e:
        translate_error(e)

    if prior is not None:
        # 재시도 응답: 알림은 처음 한 번만
        return tx
    N.notify_many(notifier, [
        (tx.get("buyer_email"), *N.sale_buyer(tx)),
        (tx.get("seller_email"), *N.sale_seller(tx)),
        (env.ADMIN_EMAIL, *N.sale_admin(tx)),
    ])
    return tx
