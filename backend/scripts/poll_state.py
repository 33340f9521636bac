"""命令行观察投票状态：按间隔轮询并打印各选项票数"""

import argparse
import asyncio
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from client.vote_client import VoteClient, VotePoller
from config import get_settings
from models.vote_models import team_mode_label


def format_state(state: dict) -> str:
    status = "开放" if state.get("votingOpen") else "关闭"
    lines = [
        f"投票{status} | 当前 {state.get('currentMapName')}（{team_mode_label(state.get('currentTeamMode', 0))}）"
    ]
    for option in state.get("options", []):
        lines.append(
            f"  [{team_mode_label(option['teamMode'])}] {option['displayName']:<8} {option['voteCount']} 票"
        )
    return "\n".join(lines)


async def main(base_url: str, interval: float, rounds: int):
    async def on_state(state: dict) -> None:
        print(format_state(state))
        print("-" * 40)

    async with VoteClient(base_url) as client:
        poller = VotePoller(client, on_state, interval=interval)
        if rounds > 0:
            for _ in range(rounds):
                await poller.poll_once()
                await asyncio.sleep(interval)
            return

        poller.start()
        try:
            while True:
                await asyncio.sleep(3600)
        finally:
            await poller.stop()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="轮询打印地图投票状态")
    parser.add_argument("--url", default="http://localhost:8000")
    parser.add_argument("--interval", type=float, default=get_settings().poll_interval_sec)
    parser.add_argument("--rounds", type=int, default=0, help="轮询次数，0 表示一直运行")
    args = parser.parse_args()
    try:
        asyncio.run(main(args.url, args.interval, args.rounds))
    except KeyboardInterrupt:
        print("已退出")
