"""投票相关数据模型（纯数据类，不依赖 ORM）"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Optional


class TeamMode(IntEnum):
    SOLO = 1
    DUO = 2
    SQUAD = 4


class VoteError(str, Enum):
    INVALID_IP = "invalid_ip"
    VOTING_CLOSED = "voting_closed"
    ALREADY_VOTED = "already_voted"
    INVALID_OPTION = "invalid_option"


@dataclass
class MapInfo:
    """地图展示信息（来自地图目录）"""
    name: str
    display_name: str
    icon: str = ""
    background_image: str = ""


@dataclass
class VoteOption:
    """单个投票选项：地图 × 队伍模式，附带当前票数"""
    map_name: str
    team_mode: int
    display_name: str
    icon: str
    background_image: str
    vote_count: int = 0


@dataclass
class VoterRecord:
    """投票者本回合的投票记录"""
    voter_id: str
    map_name: str
    team_mode: int
    timestamp: float


@dataclass
class ActiveMode:
    map_name: str
    team_mode: int

    def to_dict(self) -> dict:
        return {"mapName": self.map_name, "teamMode": self.team_mode}


@dataclass
class VoteStateView:
    """投票状态快照（对外只读视图）"""
    voting_open: bool
    current_map_name: str
    current_team_mode: int
    enabled_team_modes: list[int] = field(default_factory=list)
    options: list[VoteOption] = field(default_factory=list)
    has_voted: bool = False
    voted_for: Optional[ActiveMode] = None


@dataclass
class SubmitResult:
    success: bool
    error: Optional[VoteError] = None
    new_vote_count: Optional[int] = None

    @classmethod
    def fail(cls, error: VoteError) -> SubmitResult:
        return cls(success=False, error=error)


@dataclass
class VoteStats:
    total_votes: int
    unique_voters: int
    voting_open: bool


TEAM_MODE_LABELS = {
    TeamMode.SOLO: "单排",
    TeamMode.DUO: "双排",
    TeamMode.SQUAD: "四排",
}


def team_mode_label(team_mode: int) -> str:
    return TEAM_MODE_LABELS.get(team_mode, str(team_mode))
