# camera_auction/routers/contact.py
from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Request, status

from .. import schemas
from ..config import env
from ..config import project_rules as R
from ..config.feature_flags import is_enabled
from ..logic import notifications as N
from ..logic.rate_limit import SlidingWindowLimiter
from ._common import translate_error

router = APIRouter(prefix="/contact", tags=["contact"])

# 클라이언트 IP 당 10분 5회
limiter = SlidingWindowLimiter(R.CONTACT_RATE_LIMIT, R.CONTACT_RATE_WINDOW_SECONDS)


@router.post(
    "",
    status_code=status.HTTP_202_ACCEPTED,
    summary="문의 접수 → 관리자 메일",
    operation_id="Contact__Send",
)
def contact_send(
    request: Request,
    body: schemas.ContactIn = Body(...),
    notifier: N.Notifier = Depends(N.get_notifier),
):
    if is_enabled("CONTACT_RATE_LIMIT"):
        key = request.client.host if request.client else "unknown"
        try:
            limiter.hit(key)
        except Exception as e:
            translate_error(e)

    sent = N.notify_safely(notifier, env.ADMIN_EMAIL, *N.contact_message(body.name, body.email, body.message))
    return {"ok": True, "delivered": sent}
