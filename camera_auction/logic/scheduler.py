# camera_auction/logic/scheduler.py
# 외부 cron 이 호출하는 경매 사이클.
#   1) queued → live      (auction_start ≤ now)
#   2) live 종료 처리      (auction_end < now): 낙찰 → completed / 자동재등록 → queued / 유찰 → not_sold
#   3) completed 낙찰자 청구 → 거래 생성 + sold
# 같은 창 안에서 여러 번 돌려도 결과가 같다 (조건부 쓰기 + 거래 중복 체크 + 멱등키).
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from camera_auction.config import env
from camera_auction.config.feature_flags import is_enabled
from camera_auction.config.time_policy import now_utc
from camera_auction.core.auction_window import compute_window, relist_window, upcoming_window
from camera_auction.core.bidding import reserve_met
from camera_auction.errors import (
    ConcurrentModification,
    PaymentDeclined,
    UpstreamUnavailable,
    ValidationFailed,
)
from camera_auction.logic import notifications as N
from camera_auction.logic.checkout import charge_auction_winner
from camera_auction.logic.listings import LISTINGS, LS, MINIMAL_LISTING_KEYS
from camera_auction.pg.client import PaymentService
from camera_auction.store import DocumentStore

logger = logging.getLogger(__name__)


@dataclass
class CycleReport:
    promoted: list[str] = field(default_factory=list)
    completed: list[str] = field(default_factory=list)
    relisted: list[str] = field(default_factory=list)
    not_sold: list[str] = field(default_factory=list)
    charged: list[str] = field(default_factory=list)
    charge_failed: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "promoted": self.promoted,
            "completed": self.completed,
            "relisted": self.relisted,
            "not_sold": self.not_sold,
            "charged": self.charged,
            "charge_failed": self.charge_failed,
        }


def _transition(store: DocumentStore, listing: dict, fields: dict) -> Optional[dict]:
    """조건부 상태 변경. 다른 실행이 먼저 처리했으면 None."""
    try:
        return store.write_tolerant(
            LISTINGS,
            listing["id"],
            fields,
            minimal_keys=MINIMAL_LISTING_KEYS,
            expected={"status": listing["status"]},
        )
    except ConcurrentModification:
        logger.info("[scheduler] listing=%s already handled by another run", listing["id"])
        return None


def promote_queued(store: DocumentStore, *, now: datetime, report: CycleReport) -> None:
    due = store.list_documents(
        LISTINGS,
        {"status": LS.QUEUED.value, "auction_start": ("<=", now)},
        order_by="auction_start",
    )
    for listing in due:
        if _transition(store, listing, {"status": LS.LIVE.value, "updated_at": now}) is not None:
            report.promoted.append(listing["id"])


def end_expired(store: DocumentStore, notifier: N.Notifier, *, now: datetime, report: CycleReport) -> None:
    expired = store.list_documents(
        LISTINGS,
        {"status": LS.LIVE.value, "auction_end": ("<", now)},
        order_by="auction_end",
    )
    window = compute_window(now)
    for listing in expired:
        lid = listing["id"]
        if listing.get("current_bid") and reserve_met(listing.get("current_bid"), listing.get("reserve_price")):
            if _transition(store, listing, {"status": LS.COMPLETED.value, "updated_at": now}) is not None:
                report.completed.append(lid)
            continue

        if listing.get("relist_until_sold") and is_enabled("AUTO_RELIST"):
            start, end = relist_window(window)
            updated = _transition(
                store, listing,
                {
                    "status": LS.QUEUED.value,
                    "auction_start": start,
                    "auction_end": end,
                    "current_bid": None,
                    "bid_count": 0,
                    "highest_bidder_email": None,
                    "relist_count": int(listing.get("relist_count") or 0) + 1,
                    "updated_at": now,
                },
            )
            if updated is not None:
                report.relisted.append(lid)
                N.notify_safely(notifier, updated.get("seller_email"), *N.listing_relisted(updated))
            continue

        if _transition(store, listing, {"status": LS.NOT_SOLD.value, "updated_at": now}) is not None:
            report.not_sold.append(lid)


def charge_winners(
    store: DocumentStore,
    payments: PaymentService,
    notifier: N.Notifier,
    *,
    now: datetime,
    report: CycleReport,
) -> None:
    for listing in store.list_documents(LISTINGS, {"status": LS.COMPLETED.value}, order_by="auction_end"):
        lid = listing["id"]
        try:
            outcome = charge_auction_winner(store, payments, listing, now=now)
        except (PaymentDeclined, ValidationFailed, UpstreamUnavailable, ConcurrentModification) as e:
            # 다음 실행에서 같은 멱등키로 재시도
            logger.warning("[scheduler] winner charge failed listing=%s: %s", lid, e)
            report.charge_failed.append(lid)
            continue
        if outcome is None:
            continue
        report.charged.append(lid)
        if not outcome.already_paid:
            tx = outcome.transaction
            N.notify_many(notifier, [
                (tx.get("buyer_email"), *N.sale_buyer(tx)),
                (tx.get("seller_email"), *N.sale_seller(tx)),
                (env.ADMIN_EMAIL, *N.sale_admin(tx)),
            ])


def run_auction_cycle(
    store: DocumentStore,
    payments: PaymentService,
    notifier: N.Notifier,
    *,
    now: Optional[datetime] = None,
) -> CycleReport:
    now = now or now_utc()
    report = CycleReport()
    promote_queued(store, now=now, report=report)
    end_expired(store, notifier, now=now, report=report)
    charge_winners(store, payments, notifier, now=now, report=report)
    logger.info("[scheduler] cycle at %s: %s", now.isoformat(), {k: len(v) for k, v in report.as_dict().items()})
    return report


def rollover_queued(store: DocumentStore, *, now: Optional[datetime] = None) -> list[str]:
    """
    창 정보가 없거나 이미 지난 queued 리스팅을 다음에 열리는 창으로 다시 찍는다.
    같은 창 안에서 재실행하면 같은 경계값이 들어가므로 멱등.
    """
    now = now or now_utc()
    start, end = upcoming_window(compute_window(now))
    moved: list[str] = []
    for listing in store.list_documents(LISTINGS, {"status": LS.QUEUED.value}):
        current_end = listing.get("auction_end")
        if current_end is not None and current_end >= now:
            continue
        if _transition(store, listing, {"auction_start": start, "auction_end": end, "updated_at": now}) is not None:
            moved.append(listing["id"])
    return moved
