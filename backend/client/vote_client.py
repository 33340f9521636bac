"""投票客户端：展示层调用投票 API、定时轮询状态"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

# 默认超时（秒）
DEFAULT_TIMEOUT = 10
# 默认轮询间隔（秒）
DEFAULT_POLL_INTERVAL = 5.0

StateCallback = Callable[[dict[str, Any]], Awaitable[None]]


class VoteClientError(Exception):
    """投票接口调用失败"""
    pass


class VoteClient:
    """投票 API 的异步客户端"""

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
        headers: dict[str, str] | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers=headers,
        )

    async def __aenter__(self) -> VoteClient:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def fetch_state(self) -> dict[str, Any]:
        return await self._request("GET", "/api/vote/state")

    async def fetch_stats(self) -> dict[str, Any]:
        return await self._request("GET", "/api/vote/stats")

    async def fetch_active(self) -> dict[str, Any]:
        return await self._request("GET", "/api/vote/active")

    async def submit_vote(self, map_name: str, team_mode: int) -> dict[str, Any]:
        """
        提交投票。

        Returns:
            {"success": bool, "error"?: str, "newVoteCount"?: int}
            被限流（429）时同样返回失败结果而不是抛异常
        """
        return await self._request(
            "POST", "/api/vote/submit",
            json={"mapName": map_name, "teamMode": team_mode},
            allow_statuses=(429,),
        )

    async def _request(
        self,
        method: str,
        path: str,
        json: dict | None = None,
        allow_statuses: tuple[int, ...] = (),
    ) -> dict[str, Any]:
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.HTTPError as e:
            raise VoteClientError(f"请求失败 {method} {path}: {e}") from e

        if response.is_success or response.status_code in allow_statuses:
            try:
                return response.json()
            except ValueError as e:
                raise VoteClientError(f"响应不是合法 JSON: {method} {path}") from e

        raise VoteClientError(
            f"接口返回错误 {response.status_code}: {method} {path} {response.text[:200]}"
        )


class VotePoller:
    """按固定间隔轮询投票状态，视图关闭时 stop() 取消"""

    def __init__(
        self,
        client: VoteClient,
        on_state: StateCallback,
        interval: float = DEFAULT_POLL_INTERVAL,
    ):
        self.client = client
        self.on_state = on_state
        self.interval = interval
        self.last_state: dict[str, Any] | None = None
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def poll_once(self) -> dict[str, Any] | None:
        """拉取一次状态并回调；失败只记日志"""
        try:
            state = await self.client.fetch_state()
        except VoteClientError as e:
            logger.warning(f"拉取投票状态失败: {e}")
            return None
        self.last_state = state
        await self.on_state(state)
        return state

    async def _loop(self) -> None:
        while True:
            await self.poll_once()
            await asyncio.sleep(self.interval)
