# camera_auction/routers/_common.py
from __future__ import annotations

import logging

from fastapi import HTTPException, status

from camera_auction.errors import (
    AuctionError,
    ConflictError,
    Forbidden,
    InvalidAmount,
    InvalidSignature,
    InvalidTimeZoneInput,
    NotFoundError,
    PaymentDeclined,
    RateLimited,
    Unauthenticated,
    UpstreamUnavailable,
    ValidationFailed,
)

logger = logging.getLogger(__name__)

# 순서 중요: 하위 클래스가 먼저
_STATUS_MAP: tuple[tuple[type, int], ...] = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (Unauthenticated, status.HTTP_401_UNAUTHORIZED),
    (Forbidden, status.HTTP_403_FORBIDDEN),
    (ConflictError, status.HTTP_409_CONFLICT),
    (InvalidAmount, status.HTTP_400_BAD_REQUEST),
    (ValidationFailed, status.HTTP_400_BAD_REQUEST),
    (InvalidTimeZoneInput, status.HTTP_400_BAD_REQUEST),
    (InvalidSignature, status.HTTP_400_BAD_REQUEST),
    (PaymentDeclined, status.HTTP_402_PAYMENT_REQUIRED),
    (RateLimited, status.HTTP_429_TOO_MANY_REQUESTS),
    (UpstreamUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def status_for(exc: AuctionError) -> int:
    for cls, code in _STATUS_MAP:
        if isinstance(exc, cls):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_detail(exc: AuctionError):
    # 402 는 클라이언트가 인증(3DS) 후 같은 결제로 재시도할 수 있게 charge id 포함
    if isinstance(exc, PaymentDeclined):
        return {"message": str(exc), "status": exc.status, "charge_id": exc.charge_id}
    return str(exc)


def error_headers(exc: AuctionError):
    if isinstance(exc, RateLimited):
        return {"Retry-After": str(exc.retry_after_seconds)}
    return None


def translate_error(exc: Exception) -> None:
    if isinstance(exc, HTTPException):
        raise exc
    if isinstance(exc, AuctionError):
        raise HTTPException(status_code=status_for(exc), detail=error_detail(exc), headers=error_headers(exc))
    logger.exception("unhandled error in route")
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error")
