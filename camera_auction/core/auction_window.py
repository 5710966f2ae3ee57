# camera_auction/core/auction_window.py
# 주간 경매 창 계산 (월 01:00 → 일 23:00, Europe/London 벽시계 기준)
#
# - 순수 함수: 같은 (now, tz) 면 항상 같은 결과
# - 각 경계는 현지 날짜/시각에서 독립적으로 UTC 로 변환한다.
#   current_start 에 고정 시간(6일 22시간)을 더하면 DST 주에 1시간 틀어진다.
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from typing import Optional

from camera_auction.config import project_rules as R
from camera_auction.config.time_policy import UTC, ensure_aware_utc, get_tz
from camera_auction.errors import InvalidTimeZoneInput


@dataclass(frozen=True)
class AuctionWindow:
    now: datetime
    current_start: datetime
    current_end: datetime
    next_start: datetime
    next_end: datetime
    is_live: bool
    is_coming: bool

    def as_dict(self) -> dict:
        return {
            "now": self.now,
            "current_start": self.current_start,
            "current_end": self.current_end,
            "next_start": self.next_start,
            "next_end": self.next_end,
            "is_live": self.is_live,
            "is_coming": self.is_coming,
        }


def _offset_at(instant: datetime, tz: tzinfo) -> timedelta:
    offset = instant.astimezone(tz).utcoffset()
    return offset if offset is not None else timedelta(0)


def wall_time_to_utc(day: date, hour: int, tz: tzinfo, minute: int = 0) -> datetime:
    """
    현지 벽시계 (day, hour:minute) → UTC instant.

    2-pass 오프셋 보정:
      1) 벽시계 값을 UTC 라고 가정한 guess 의 오프셋을 빼고
      2) 그렇게 얻은 instant 에서 오프셋을 다시 구해 한 번 더 보정
    DST 경계 근처에서 첫 guess 가 경계 반대편에 떨어져도 두 번째 패스에서 맞춰진다.
    """
    naive_as_utc = datetime(day.year, day.month, day.day, hour, minute, tzinfo=UTC)
    guess = naive_as_utc - _offset_at(naive_as_utc, tz)
    return naive_as_utc - _offset_at(guess, tz)


def _week_bounds(monday: date, tz: tzinfo) -> tuple[datetime, datetime]:
    start = wall_time_to_utc(monday, R.WINDOW_START_HOUR, tz)
    end = wall_time_to_utc(monday + timedelta(days=6), R.WINDOW_END_HOUR, tz)
    return start, end


def compute_window(now: datetime, tz_name: Optional[str] = None) -> AuctionWindow:
    if not isinstance(now, datetime):
        raise InvalidTimeZoneInput(f"now must be a datetime, got={type(now).__name__}")
    tz = get_tz(tz_name or R.AUCTION_TIMEZONE)
    now = ensure_aware_utc(now)

    # 1) 현지 달력 기준 이번 주 월요일 (타임존 변환 없이 날짜 연산만)
    local_today = now.astimezone(tz).date()
    monday = local_today - timedelta(days=local_today.isoweekday() - 1)

    # 2) 월요일 00:00~01:00 사이면 아직 지난주 창에 속함
    current_start, current_end = _week_bounds(monday, tz)
    if now < current_start:
        monday = monday - timedelta(days=7)
        current_start, current_end = _week_bounds(monday, tz)

    next_start, next_end = _week_bounds(monday + timedelta(days=7), tz)

    return AuctionWindow(
        now=now,
        current_start=current_start,
        current_end=current_end,
        next_start=next_start,
        next_end=next_end,
        is_live=current_start <= now <= current_end,
        is_coming=now < current_start,
    )


def upcoming_window(window: AuctionWindow) -> tuple[datetime, datetime]:
    """승인된 리스팅이 들어갈 창: 아직 시작 전이면 이번 창, 아니면 다음 창."""
    if window.now < window.current_start:
        return window.current_start, window.current_end
    return window.next_start, window.next_end


def relist_window(window: AuctionWindow) -> tuple[datetime, datetime]:
    """유찰 후 재등록 창: 이번 창이 아직 안 끝났으면 이번 창, 아니면 다음 창."""
    if window.now <= window.current_end:
        return window.current_start, window.current_end
    return window.next_start, window.next_end
