"""地图投票 API"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from config import Settings, get_settings
from models.vote_models import ActiveMode, VoteError, VoteStateView
from systems.rate_limit import VoteRateLimiter
from utils import get_client_ip
from vote.manager import VoteManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/vote", tags=["投票"])


def get_vote_manager(request: Request) -> VoteManager:
    """获取进程内投票管理器（启动时创建，挂在 app.state 上）"""
    return request.app.state.vote_manager


def get_rate_limiter(request: Request) -> VoteRateLimiter:
    return request.app.state.vote_rate_limiter


def get_voter_id(request: Request, settings: Settings = Depends(get_settings)) -> str | None:
    return get_client_ip(request, settings.proxy_ip_header)


# ========== DTO ==========

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SubmitVoteRequest(CamelModel):
    map_name: str
    team_mode: int


class SubmitVoteResponse(CamelModel):
    success: bool
    error: VoteError | None = None
    new_vote_count: int | None = None


class ModeResponse(CamelModel):
    map_name: str
    team_mode: int


class VoteOptionResponse(CamelModel):
    map_name: str
    team_mode: int
    display_name: str
    icon: str
    background_image: str
    vote_count: int


class VoteStateResponse(CamelModel):
    voting_open: bool
    current_map_name: str = ""
    current_team_mode: int = 1
    enabled_team_modes: list[int] = []
    options: list[VoteOptionResponse] = []
    has_voted: bool = False
    voted_for: ModeResponse | None = None


class VoteStatsResponse(CamelModel):
    total_votes: int
    unique_voters: int
    voting_open: bool


def to_mode_response(mode: ActiveMode) -> ModeResponse:
    return ModeResponse(map_name=mode.map_name, team_mode=mode.team_mode)


def to_state_response(view: VoteStateView) -> VoteStateResponse:
    return VoteStateResponse(
        voting_open=view.voting_open,
        current_map_name=view.current_map_name,
        current_team_mode=view.current_team_mode,
        enabled_team_modes=view.enabled_team_modes,
        options=[
            VoteOptionResponse(
                map_name=o.map_name,
                team_mode=o.team_mode,
                display_name=o.display_name,
                icon=o.icon,
                background_image=o.background_image,
                vote_count=o.vote_count,
            )
            for o in view.options
        ],
        has_voted=view.has_voted,
        voted_for=to_mode_response(view.voted_for) if view.voted_for else None,
    )


# ========== 路由 ==========

@router.get("/state", response_model=VoteStateResponse, response_model_exclude_none=True)
async def get_vote_state(
    voter_id: str | None = Depends(get_voter_id),
    manager: VoteManager = Depends(get_vote_manager),
):
    """获取投票状态（客户端定时轮询）"""
    if not voter_id:
        # 无法识别投票者时返回安全默认值，不报错
        return VoteStateResponse(voting_open=False)
    return to_state_response(manager.get_vote_state(voter_id))


@router.post("/submit", response_model=SubmitVoteResponse, response_model_exclude_none=True)
async def submit_vote(
    data: SubmitVoteRequest,
    voter_id: str | None = Depends(get_voter_id),
    manager: VoteManager = Depends(get_vote_manager),
    limiter: VoteRateLimiter = Depends(get_rate_limiter),
):
    """提交投票"""
    if not voter_id:
        return SubmitVoteResponse(success=False, error=VoteError.INVALID_IP)

    if limiter.is_rate_limited(voter_id):
        return JSONResponse(
            status_code=429,
            content={"success": False, "error": VoteError.ALREADY_VOTED.value},
        )

    result = manager.submit_vote(voter_id, data.map_name, data.team_mode)
    return SubmitVoteResponse(
        success=result.success,
        error=result.error,
        new_vote_count=result.new_vote_count,
    )


@router.get("/stats", response_model=VoteStatsResponse)
async def get_vote_stats(manager: VoteManager = Depends(get_vote_manager)):
    """投票统计"""
    stats = manager.get_stats()
    return VoteStatsResponse(
        total_votes=stats.total_votes,
        unique_voters=stats.unique_voters,
        voting_open=stats.voting_open,
    )


@router.get("/active", response_model=dict[int, ModeResponse])
async def get_active_modes(manager: VoteManager = Depends(get_vote_manager)):
    """各队伍模式下一回合的地图"""
    return {tm: to_mode_response(mode) for tm, mode in manager.get_active_modes().items()}
