"""投票回合状态"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from models.vote_models import VoterRecord

# 票数键：(map_name, team_mode)
VoteKey = tuple[str, int]


@dataclass
class VoteRoundState:
    """投票完整状态（单进程共享，由 VoteManager 的锁保护）"""
    voting_open: bool = True
    current_map_name: str = ""
    current_team_mode: int = 1

    vote_counts: dict[VoteKey, int] = field(default_factory=dict)
    voter_records: dict[str, VoterRecord] = field(default_factory=dict)  # voter_id -> VoterRecord

    # 每个队伍模式下一回合的地图，轮换时更新
    active_map_by_team_mode: dict[int, str] = field(default_factory=dict)

    def get_count(self, map_name: str, team_mode: int) -> int:
        return self.vote_counts.get((map_name, team_mode), 0)

    def get_record(self, voter_id: str) -> Optional[VoterRecord]:
        return self.voter_records.get(voter_id)

    def record_vote(self, record: VoterRecord) -> int:
        """记一票并写入投票者记录，返回新票数"""
        key = (record.map_name, record.team_mode)
        new_count = self.vote_counts.get(key, 0) + 1
        self.vote_counts[key] = new_count
        self.voter_records[record.voter_id] = record
        return new_count

    def total_votes(self) -> int:
        return sum(self.vote_counts.values())

    def has_votes(self) -> bool:
        return any(count > 0 for count in self.vote_counts.values())

    def reset_round(self) -> None:
        """清空票数和投票者记录（新回合开始）"""
        self.vote_counts.clear()
        self.voter_records.clear()
