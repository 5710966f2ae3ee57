# tests/test_auction_window.py
from datetime import datetime, timedelta, timezone

import pytest

from camera_auction.core.auction_window import (
    compute_window,
    relist_window,
    upcoming_window,
    wall_time_to_utc,
)
from camera_auction.config.time_policy import get_tz
from camera_auction.errors import InvalidTimeZoneInput

UTC = timezone.utc
LONDON = "Europe/London"


def utc(y, m, d, hh=0, mm=0):
    return datetime(y, m, d, hh, mm, tzinfo=UTC)


def local(dt):
    return dt.astimezone(get_tz(LONDON)).strftime("%a %Y-%m-%d %H:%M")


def test_spring_forward_week_bounds_are_resolved_independently():
    # 2024-03-31 01:00 GMT 에 BST 로 전환
    w = compute_window(utc(2024, 3, 28, 10), LONDON)

    assert local(w.current_start) == "Mon 2024-03-25 01:00"
    assert local(w.current_end) == "Sun 2024-03-31 23:00"
    assert w.current_start == utc(2024, 3, 25, 1)
    assert w.current_end == utc(2024, 3, 31, 22)
    # 고정 길이(6일 22시간)를 더하면 1시간 틀린다
    assert w.current_end - w.current_start == timedelta(days=6, hours=21)
    assert w.is_live is True


def test_fall_back_week_bounds():
    # 2024-10-27 02:00 BST 에 GMT 로 복귀
    w = compute_window(utc(2024, 10, 23, 12), LONDON)

    assert w.current_start == utc(2024, 10, 21, 0)   # 01:00 BST
    assert w.current_end == utc(2024, 10, 27, 23)    # 23:00 GMT
    assert w.current_end - w.current_start == timedelta(days=6, hours=23)
    assert w.next_start == utc(2024, 10, 28, 1)
    assert local(w.next_end) == "Sun 2024-11-03 23:00"


def test_monday_before_one_am_still_belongs_to_previous_week():
    w = compute_window(utc(2024, 1, 8, 0, 30), LONDON)

    assert w.current_start == utc(2024, 1, 1, 1)
    assert w.current_end == utc(2024, 1, 7, 23)
    assert w.next_start == utc(2024, 1, 8, 1)
    assert w.is_live is False
    assert w.is_coming is False


def test_sunday_after_close_is_not_live():
    w = compute_window(utc(2024, 1, 7, 23, 30), LONDON)
    assert w.current_start == utc(2024, 1, 1, 1)
    assert w.is_live is False
    assert w.next_start == utc(2024, 1, 8, 1)


def test_bounds_are_inclusive():
    start = utc(2024, 1, 8, 1)
    end = utc(2024, 1, 14, 23)
    assert compute_window(start, LONDON).is_live is True
    assert compute_window(end, LONDON).is_live is True
    assert compute_window(end + timedelta(seconds=1), LONDON).is_live is False


def test_window_is_deterministic_and_ordered():
    now = utc(2024, 6, 1)
    for _ in range(200):
        a = compute_window(now, LONDON)
        b = compute_window(now, LONDON)
        assert a == b
        assert a.current_start < a.current_end < a.next_start < a.next_end
        assert a.current_start <= now
        assert a.next_start > now
        assert local(a.current_start).startswith("Mon") and local(a.current_start).endswith("01:00")
        assert local(a.current_end).startswith("Sun") and local(a.current_end).endswith("23:00")
        now += timedelta(hours=13, minutes=17)


def test_naive_now_is_treated_as_utc():
    naive = datetime(2024, 3, 28, 10)
    assert compute_window(naive, LONDON) == compute_window(utc(2024, 3, 28, 10), LONDON)


def test_invalid_inputs():
    with pytest.raises(InvalidTimeZoneInput):
        compute_window(utc(2024, 1, 1), "Mars/Olympus_Mons")
    with pytest.raises(InvalidTimeZoneInput):
        compute_window("2024-01-01T00:00:00Z", LONDON)


def test_wall_time_to_utc_two_pass():
    tz = get_tz(LONDON)
    assert wall_time_to_utc(datetime(2024, 3, 31).date(), 23, tz) == utc(2024, 3, 31, 22)
    assert wall_time_to_utc(datetime(2024, 3, 31).date(), 0, tz) == utc(2024, 3, 31, 0)
    assert wall_time_to_utc(datetime(2024, 10, 27).date(), 23, tz) == utc(2024, 10, 27, 23)


def test_upcoming_window_for_approvals():
    # 창 진행 중 승인 → 다음 창
    w = compute_window(utc(2024, 1, 10, 12), LONDON)
    assert upcoming_window(w) == (utc(2024, 1, 15, 1), utc(2024, 1, 21, 23))

    # 월요일 00:30 승인 → 30분 뒤 열리는 창
    w = compute_window(utc(2024, 1, 8, 0, 30), LONDON)
    assert upcoming_window(w) == (utc(2024, 1, 8, 1), utc(2024, 1, 14, 23))


def test_relist_window_prefers_current_week_until_it_closes():
    w = compute_window(utc(2024, 1, 10, 12), LONDON)
    assert relist_window(w) == (utc(2024, 1, 8, 1), utc(2024, 1, 14, 23))

    w = compute_window(utc(2024, 1, 14, 23, 30), LONDON)
    assert relist_window(w) == (utc(2024, 1, 15, 1), utc(2024, 1, 21, 23))
