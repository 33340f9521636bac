"""投票提交限流（按投票者标识的滑动窗口）"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Callable

logger = logging.getLogger(__name__)

# 每检查多少次做一次全量清理
SWEEP_EVERY = 256


class VoteRateLimiter:
    """
    滑动窗口限流：同一投票者在 window_ms 毫秒内最多提交 limit 次。

    与 VoteManager 的"每回合一票"是两层独立的防刷，限流在前。
    被拒绝的请求不计入窗口。
    """

    def __init__(self, limit: int, window_ms: int, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window = window_ms / 1000.0
        self.clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._lock = threading.Lock()
        self._checks = 0

    def is_rate_limited(self, voter_id: str) -> bool:
        """记录一次提交；窗口内超过上限则返回 True"""
        now = self.clock()
        with self._lock:
            self._checks += 1
            if self._checks % SWEEP_EVERY == 0:
                self._sweep(now)

            hits = self._hits.get(voter_id)
            if hits is None:
                hits = self._hits[voter_id] = deque()
            self._expire(hits, now)

            if len(hits) >= self.limit:
                logger.warning(f"提交过于频繁: voter={voter_id} count={len(hits)} window={self.window}s")
                return True
            hits.append(now)
            return False

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()

    def tracked(self) -> int:
        """当前跟踪的投票者数"""
        with self._lock:
            return len(self._hits)

    def _expire(self, hits: deque[float], now: float) -> None:
        while hits and now - hits[0] >= self.window:
            hits.popleft()

    def _sweep(self, now: float) -> None:
        """清理窗口内无活动的投票者"""
        idle = []
        for voter_id, hits in self._hits.items():
            self._expire(hits, now)
            if not hits:
                idle.append(voter_id)
        for voter_id in idle:
            del self._hits[voter_id]
        if idle:
            logger.debug(f"清理 {len(idle)} 个空闲限流条目")
