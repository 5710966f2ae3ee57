# camera_auction/config/time_policy.py
# 중앙 집중형 시간 유틸.
# - 모든 반환값은 timezone-aware UTC(datetime) 입니다. (DB 저장/비교에 안전)
# - 테스트에서는 set_now_utc_for_testing() 으로 현재시각을 고정한다.
from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from camera_auction.config import project_rules as R
from camera_auction.errors import InvalidTimeZoneInput

UTC = timezone.utc


def get_tz(key: str) -> ZoneInfo:
    """
    IANA 시간대 조회. 고정 오프셋 폴백은 하지 않는다 (DST 계산이 틀어지므로).
    """
    if not isinstance(key, str) or not key.strip():
        raise InvalidTimeZoneInput(f"timezone name required, got={key!r}")
    try:
        return ZoneInfo(key)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidTimeZoneInput(f"unknown timezone: {key}") from e


def auction_tz() -> ZoneInfo:
    return get_tz(R.AUCTION_TIMEZONE)


# -------------------------------------------------------
# 🔹 현재 시각 (테스트 오버라이드 지원)
# -------------------------------------------------------
_TEST_NOW_UTC: datetime | None = None


def set_now_utc_for_testing(dt: datetime | None) -> None:
    """
    dt가 None이면 오버라이드 해제. dt가 naive면 UTC로 간주.
    """
    global _TEST_NOW_UTC
    if dt is None:
        _TEST_NOW_UTC = None
    else:
        _TEST_NOW_UTC = ensure_aware_utc(dt)


def is_now_overridden() -> bool:
    return _TEST_NOW_UTC is not None


def now_utc() -> datetime:
    if _TEST_NOW_UTC is not None:
        return _TEST_NOW_UTC
    return datetime.now(UTC)


def ensure_aware_utc(dt: datetime) -> datetime:
    """naive면 UTC로 붙여서 반환, aware면 UTC로 변환."""
    return dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt.astimezone(UTC)


def as_utc_or_none(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    return ensure_aware_utc(dt)


__all__ = [
    "UTC",
    "get_tz",
    "auction_tz",
    "set_now_utc_for_testing",
    "is_now_overridden",
    "now_utc",
    "ensure_aware_utc",
    "as_utc_or_none",
]
