# tests/test_rate_limit.py
import pytest

from camera_auction.errors import RateLimited
from camera_auction.logic.rate_limit import SlidingWindowLimiter


class Clock:
    def __init__(self):
        self.t = 1000.0

    def __call__(self):
        return self.t


def test_sliding_window():
    clock = Clock()
    limiter = SlidingWindowLimiter(5, 600, clock=clock)

    for _ in range(5):
        limiter.hit("1.2.3.4")
        clock.t += 10

    with pytest.raises(RateLimited) as ei:
        limiter.hit("1.2.3.4")
    assert ei.value.retry_after_seconds == 551

    # 다른 키는 별도
    limiter.hit("5.6.7.8")

    # 첫 요청이 창 밖으로 빠지면 다시 허용
    clock.t = 1000.0 + 600
    limiter.hit("1.2.3.4")


def test_reset_clears_counters():
    limiter = SlidingWindowLimiter(1, 60, clock=Clock())
    limiter.hit("k")
    with pytest.raises(RateLimited):
        limiter.hit("k")
    limiter.reset()
    limiter.hit("k")
