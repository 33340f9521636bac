"""
回合时钟与投票客户端测试。

不依赖外部服务：客户端通过 httpx.ASGITransport 直连应用。
"""

import asyncio
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import httpx

from client.vote_client import VoteClient, VoteClientError, VotePoller
from config import ModeConfig, Settings
from main import create_app
from models.vote_models import MapInfo
from vote.catalog import MapCatalog, ModeRegistry
from vote.manager import VoteManager
from vote.scheduler import RoundScheduler


def make_manager() -> VoteManager:
    """三模式（1/2/4）投票管理器"""
    registry = ModeRegistry(
        [
            ModeConfig(map_name="main", team_mode=1),
            ModeConfig(map_name="desert", team_mode=2),
            ModeConfig(map_name="woods", team_mode=4),
        ],
        ["main", "desert", "woods", "savannah"],
    )
    catalog = MapCatalog({n: MapInfo(name=n, display_name=n) for n in ["main", "desert", "woods", "savannah"]})
    return VoteManager(registry, catalog)


class RotateCollector:
    """收集轮换回调"""

    def __init__(self):
        self.rotations = []

    async def __call__(self, active) -> None:
        self.rotations.append((active.map_name, active.team_mode))


class FakeSleep:
    """替代 asyncio.sleep：记录每次等待时长与当时投票是否开放，只让出一次事件循环"""

    def __init__(self, manager: VoteManager, on_call=None):
        self.manager = manager
        self.on_call = on_call
        self.calls = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append((seconds, self.manager.voting_open))
        if self.on_call:
            self.on_call(len(self.calls))
        await asyncio.sleep(0)


# ========== 回合时钟 ==========

def test_scheduler_round_cycle():
    """测试一个回合：开放 → 关闭 → 轮换 → 回调"""
    manager = make_manager()
    collector = RotateCollector()

    def vote_during_open_phase(call_no):
        if call_no == 1:
            assert manager.submit_vote("v1", "savannah", 1).success

    sleep = FakeSleep(manager, on_call=vote_during_open_phase)
    scheduler = RoundScheduler(
        manager, round_duration=0.3, close_before=0.2, on_rotate=collector, sleep=sleep,
    )

    active = asyncio.run(scheduler.run_once())
    assert len(sleep.calls) == 2, f"一个回合应等待两次: {sleep.calls}"
    (open_for, open_during_first), (closed_for, open_during_second) = sleep.calls
    assert abs(open_for - 0.1) < 1e-9 and open_during_first, "前段应开放投票"
    assert abs(closed_for - 0.2) < 1e-9 and not open_during_second, "回合结束前应关闭投票"
    assert (active.map_name, active.team_mode) == ("savannah", 1)
    assert collector.rotations == [("savannah", 1)]
    assert manager.voting_open and not manager.has_votes()
    assert scheduler.rounds == 1
    print("  ✅ 回合时钟")


def test_scheduler_paused_keeps_voting_closed():
    """测试关闭阶段暂停：投票保持关闭、票数保留，继续后才轮换"""
    manager = make_manager()
    collector = RotateCollector()
    scheduler = None

    def pause_in_closed_phase(call_no):
        if call_no == 2:
            scheduler.pause()

    sleep = FakeSleep(manager, on_call=pause_in_closed_phase)
    scheduler = RoundScheduler(
        manager, round_duration=10, close_before=5, on_rotate=collector, sleep=sleep,
    )
    manager.submit_vote("v1", "woods", 1)

    async def run():
        task = asyncio.create_task(scheduler.run_once())
        for _ in range(20):
            await asyncio.sleep(0)

        assert scheduler.paused
        assert not task.done(), "暂停期间不应完成轮换"
        assert not manager.voting_open, "暂停期间投票应保持关闭"
        assert manager.has_votes(), "暂停期间票数不应清空"
        assert scheduler.rounds == 0 and collector.rotations == []
        assert not manager.submit_vote("v2", "main", 1).success

        scheduler.resume()
        return await task

    active = asyncio.run(run())
    assert not scheduler.paused
    assert (active.map_name, active.team_mode) == ("woods", 1)
    assert collector.rotations == [("woods", 1)]
    assert scheduler.rounds == 1
    assert manager.voting_open and not manager.has_votes()
    print("  ✅ 暂停与继续")


def test_scheduler_start_stop():
    """测试启动后可取消"""
    manager = make_manager()
    scheduler = RoundScheduler(
        manager, round_duration=0.02, close_before=0.01, sleep=FakeSleep(manager),
    )

    async def run():
        scheduler.start()
        assert scheduler.running
        while scheduler.rounds < 2:
            await asyncio.sleep(0)
        await scheduler.stop()
        assert not scheduler.running

    asyncio.run(run())
    assert scheduler.rounds >= 2
    print("  ✅ 启动与停止")


def test_scheduler_callback_error_does_not_stop_rotation():
    """测试回调异常不影响轮换结果"""
    manager = make_manager()

    async def broken(active):
        raise RuntimeError("game server unavailable")

    scheduler = RoundScheduler(manager, round_duration=0.01, close_before=0.0, on_rotate=broken)
    manager.submit_vote("v1", "desert", 4)
    active = asyncio.run(scheduler.run_once())
    assert (active.map_name, active.team_mode) == ("main", 1)
    assert manager.get_active_mode(4).map_name == "desert"
    print("  ✅ 回调异常")


# ========== 客户端 ==========

def make_app():
    settings = Settings(
        modes=[ModeConfig(map_name="main", team_mode=1)],
        allowed_vote_maps=["main", "desert"],
        vote_rate_limit=2,
    )
    return create_app(settings)


def make_vote_client(app) -> VoteClient:
    return VoteClient("http://testserver", transport=httpx.ASGITransport(app=app))


def test_client_submit_and_fetch():
    """测试客户端提交投票、拉取状态和统计"""
    app = make_app()

    async def run():
        async with make_vote_client(app) as client:
            result = await client.submit_vote("desert", 1)
            assert result == {"success": True, "newVoteCount": 1}
            again = await client.submit_vote("main", 1)
            assert again == {"success": False, "error": "already_voted"}
            # 第三次被限流，429 也作为失败结果返回
            limited = await client.submit_vote("main", 1)
            assert limited == {"success": False, "error": "already_voted"}

            state = await client.fetch_state()
            assert state["hasVoted"] is True
            stats = await client.fetch_stats()
            assert stats["totalVotes"] == 1
            active = await client.fetch_active()
            assert active["1"]["mapName"] == "main"

    asyncio.run(run())
    print("  ✅ 客户端调用")


def test_client_raises_on_server_error():
    """测试非 2xx 响应抛出 VoteClientError"""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    async def run():
        async with VoteClient("http://testserver", transport=httpx.MockTransport(handler)) as client:
            try:
                await client.fetch_state()
            except VoteClientError as e:
                return str(e)
        return None

    message = asyncio.run(run())
    assert message and "500" in message
    print("  ✅ 客户端错误")


def test_poller_keeps_polling_after_failure():
    """测试轮询失败只记日志，之后继续轮询"""
    responses = [httpx.Response(503), httpx.Response(200, json={"votingOpen": True, "options": []})]

    def handler(request: httpx.Request) -> httpx.Response:
        return responses.pop(0) if responses else httpx.Response(200, json={"votingOpen": False})

    states = []

    async def on_state(state):
        states.append(state)

    async def run():
        async with VoteClient("http://testserver", transport=httpx.MockTransport(handler)) as client:
            poller = VotePoller(client, on_state, interval=0.01)
            poller.start()
            await asyncio.sleep(0.05)
            await poller.stop()
            assert not poller.running
            return poller.last_state

    last = asyncio.run(run())
    assert states, "失败后应继续轮询并拿到状态"
    assert states[0] == {"votingOpen": True, "options": []}
    assert last == states[-1]
    print("  ✅ 轮询容错")


def test_format_state():
    """测试命令行输出格式"""
    from scripts.poll_state import format_state

    text = format_state({
        "votingOpen": True,
        "currentMapName": "main",
        "currentTeamMode": 2,
        "options": [{"teamMode": 4, "displayName": "森林", "voteCount": 3}],
    })
    assert "投票开放" in text and "双排" in text
    assert "[四排]" in text and "3 票" in text
    print("  ✅ 输出格式")
