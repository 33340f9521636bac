"""内置回合时钟：定时关闭投票并轮换"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from models.vote_models import ActiveMode
from vote.manager import VoteManager

logger = logging.getLogger(__name__)

# 轮换回调：接收新一回合的主模式，用于通知游戏服
RotateCallback = Callable[[ActiveMode], Awaitable[None]]
SleepFunc = Callable[[float], Awaitable[None]]


class RoundScheduler:
    """
    回合时钟：投票开放 → 回合结束前 close_before 秒关闭 → 回合结束轮换。

    没有外部调度器时使用；round_duration_sec 为 0 时不启动。
    """

    def __init__(
        self,
        manager: VoteManager,
        round_duration: float,
        close_before: float,
        on_rotate: RotateCallback | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.manager = manager
        self.round_duration = round_duration
        self.close_before = max(0.0, min(close_before, round_duration))
        self.on_rotate = on_rotate or self._noop_callback
        self.sleep = sleep
        self.rounds = 0
        self._task: asyncio.Task | None = None
        self._pause_event = asyncio.Event()
        self._pause_event.set()  # 初始非暂停

    @staticmethod
    async def _noop_callback(active: ActiveMode) -> None:
        pass

    @property
    def paused(self) -> bool:
        return not self._pause_event.is_set()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self.run())
        logger.info(f"回合时钟启动: 每回合 {self.round_duration}s，结束前 {self.close_before}s 关闭投票")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info(f"回合时钟停止，共轮换 {self.rounds} 回合")

    def pause(self) -> None:
        self._pause_event.clear()
        logger.info("回合时钟已暂停")

    def resume(self) -> None:
        self._pause_event.set()
        logger.info("回合时钟已继续")

    async def run(self) -> None:
        """主循环，直到被取消"""
        while True:
            await self.run_once()

    async def run_once(self) -> ActiveMode:
        """跑完一个回合：开放 → 关闭 → 轮换"""
        await self._pause_event.wait()
        await self.sleep(self.round_duration - self.close_before)

        self.manager.close_voting()
        await self.sleep(self.close_before)

        # 暂停期间保持关闭状态，继续后再轮换
        await self._pause_event.wait()
        had_votes = self.manager.has_votes()
        active = self.manager.rotate_to_voted_mode()
        self.rounds += 1
        logger.info(
            f"第 {self.rounds} 回合结束: had_votes={had_votes} "
            f"下一回合 {active.map_name}/{active.team_mode}"
        )

        try:
            await self.on_rotate(active)
        except Exception as e:
            logger.error(f"轮换回调异常: {e}", exc_info=True)
        return active
