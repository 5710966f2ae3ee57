# camera_auction/logic/accounts.py
# 회원 탈퇴: 진행 중인 리스팅/거래가 없을 때만.
# 끝난 리스팅은 기록으로 남기되 판매자 이메일을 대체값으로 바꾸고, 계정 문서는 삭제.
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping, Optional

from camera_auction.config import env
from camera_auction.config.time_policy import now_utc
from camera_auction.errors import InvalidStateTransition, NotFoundError
from camera_auction.logic.listings import LISTINGS, LS
from camera_auction.logic.transaction_lifecycle import TS, TX, normalize_email, parse_transaction_status
from camera_auction.store import DocumentStore

logger = logging.getLogger(__name__)

USERS = "users"

# 이 상태의 리스팅이 있으면 탈퇴 불가 (completed = 낙찰 후 결제 대기)
ACTIVE_LISTING_STATUSES = (LS.PENDING_APPROVAL, LS.QUEUED, LS.LIVE, LS.COMPLETED)
HISTORICAL_LISTING_STATUSES = (LS.SOLD, LS.NOT_SOLD, LS.WITHDRAWN, LS.REJECTED)


def _transaction_finished(tx: Mapping[str, Any]) -> bool:
    if tx.get("archived"):
        return True
    return parse_transaction_status(tx.get("transaction_status")) in (TS.COMPLETE, TS.DELETED)


def _open_transactions(store: DocumentStore, email: str) -> list[dict]:
    rows = store.list_documents(TX, {"seller_email": email}) + store.list_documents(TX, {"buyer_email": email})
    return [tx for tx in rows if not _transaction_finished(tx)]


def delete_account(store: DocumentStore, *, email: str, now: Optional[datetime] = None) -> dict:
    me = normalize_email(email)
    users = store.list_documents(USERS, {"email": me}, limit=1)
    if not users:
        raise NotFoundError("Account not found.")

    active = store.list_documents(
        LISTINGS, {"seller_email": me, "status": ("in", [s.value for s in ACTIVE_LISTING_STATUSES])}, limit=1
    )
    if active:
        raise InvalidStateTransition(
            "You still have a listing in an active state (pending approval, queued, live or awaiting payment). "
            "Wait until all auctions have finished before deleting your account."
        )
    if _open_transactions(store, me):
        raise InvalidStateTransition(
            "You have transactions still in progress. Once all sales and purchases are completed, "
            "you can delete your account."
        )

    now = now or now_utc()
    history = store.list_documents(
        LISTINGS, {"seller_email": me, "status": ("in", [s.value for s in HISTORICAL_LISTING_STATUSES])}
    )
    for listing in history:
        store.write_tolerant(
            LISTINGS,
            listing["id"],
            {"seller_email": env.DELETED_EMAIL_PLACEHOLDER, "seller_name": None, "updated_at": now},
            minimal_keys=("seller_email",),
        )

    store.delete_document(USERS, users[0]["id"])
    logger.info("[account] deleted user=%s anonymised_listings=%d", users[0]["id"], len(history))
    return {"ok": True, "anonymised_listings": len(history)}
