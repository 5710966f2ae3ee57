# camera_auction/logic/rate_limit.py
# 프로세스 메모리 sliding-window 카운터 (best-effort).
# 재시작/멀티 인스턴스에서는 초기화·분산되므로 보안 경계로 쓰지 않는다.
from __future__ import annotations

import threading
import time
from collections import deque
from typing import Callable, Optional

from camera_auction.errors import RateLimited


class SlidingWindowLimiter:
    def __init__(self, limit: int, window_seconds: float, clock: Optional[Callable[[], float]] = None):
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock or time.monotonic
        self._hits: dict[str, deque] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> None:
        """허용이면 기록 후 리턴, 초과면 RateLimited."""
        now = self._clock()
        cutoff = now - self.window_seconds
        with self._lock:
            q = self._hits.setdefault(key, deque())
            while q and q[0] <= cutoff:
                q.popleft()
            if len(q) >= self.limit:
                retry_after = int(q[0] + self.window_seconds - now) + 1
                raise RateLimited(retry_after)
            q.append(now)

            # 창이 지난 키 정리 (메모리 상한)
            if len(self._hits) > 10_000:
                for k in [k for k, v in self._hits.items() if not v or v[-1] <= cutoff]:
                    del self._hits[k]

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
