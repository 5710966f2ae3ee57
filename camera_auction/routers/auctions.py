# camera_auction/routers/auctions.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from .. import schemas
from ..config import project_rules as R
from ..config.time_policy import now_utc
from ..core.auction_window import compute_window, upcoming_window
from ..core.settlement import compute_settlement
from ..logic import notifications as N
from ..logic.scheduler import rollover_queued, run_auction_cycle
from ..pg.client import PaymentService, get_payment_service
from ..security import require_cron
from ..store import DocumentStore, get_store
from ._common import translate_error

router = APIRouter(prefix="/auctions", tags=["auctions"])


@router.get(
    "/window",
    response_model=schemas.WindowOut,
    summary="현재/다음 주간 경매 창 (월 01:00 → 일 23:00, Europe/London)",
    operation_id="Auctions__Window",
)
def auctions_window():
    try:
        w = compute_window(now_utc(), R.AUCTION_TIMEZONE)
        return {"timezone": R.AUCTION_TIMEZONE, **w.as_dict()}
    except Exception as e:
        translate_error(e)


@router.get(
    "/fees",
    response_model=schemas.SettlementOut,
    summary="낙찰가별 수수료/정산액 미리보기",
    operation_id="Auctions__FeePreview",
)
def auctions_fee_preview(
    sale_price: int = Query(..., description="파운드 정수"),
    listing_id: str = Query(None),
):
    try:
        s = compute_settlement(sale_price, listing_id=listing_id)
        return {
            "sale_price": s.sale_price,
            "commission_rate": s.commission_rate,
            "commission_amount": s.commission_amount,
            "fixed_fee_applied": s.fixed_fee_applied,
            "ancillary_fee": s.ancillary_fee,
            "ancillary_fee_payer": s.ancillary_fee_payer,
            "seller_payout": s.seller_payout,
        }
    except Exception as e:
        translate_error(e)


# -------------------------------------------------------------------
# 외부 스케줄러(cron) 전용
# -------------------------------------------------------------------
@router.post(
    "/run",
    response_model=schemas.CycleOut,
    summary="[cron] 경매 사이클: 시작/종료/자동재등록/낙찰자 청구 (재실행 안전)",
    operation_id="Auctions__RunCycle",
)
def auctions_run_cycle(
    _cron: str = Depends(require_cron),
    store: DocumentStore = Depends(get_store),
    payments: PaymentService = Depends(get_payment_service),
    notifier: N.Notifier = Depends(N.get_notifier),
):
    try:
        return run_auction_cycle(store, payments, notifier, now=now_utc()).as_dict()
    except Exception as e:
        translate_error(e)


@router.post(
    "/rollover",
    response_model=schemas.RolloverOut,
    summary="[cron] 창이 지난 queued 리스팅을 다음 창으로 재배정 (멱등)",
    operation_id="Auctions__Rollover",
)
def auctions_rollover(
    _cron: str = Depends(require_cron),
    store: DocumentStore = Depends(get_store),
):
    try:
        now = now_utc()
        moved = rollover_queued(store, now=now)
        start, end = upcoming_window(compute_window(now))
        return {"moved": moved, "auction_start": start, "auction_end": end}
    except Exception as e:
        translate_error(e)
