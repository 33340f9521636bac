"""回合控制 API（供外部回合调度器调用，需要管理令牌）"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from api.vote import CamelModel, ModeResponse, get_vote_manager, to_mode_response
from auth import require_admin
from vote.manager import VoteManager
from vote.scheduler import RoundScheduler

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/vote/round",
    tags=["回合控制"],
    dependencies=[Depends(require_admin)],
)


class NewRoundRequest(CamelModel):
    map_name: str
    team_mode: int


def get_round_scheduler(request: Request) -> RoundScheduler:
    """获取内置回合时钟；未启用时 409"""
    scheduler = getattr(request.app.state, "round_scheduler", None)
    if scheduler is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="内置回合时钟未启用",
        )
    return scheduler


@router.post("/close")
async def close_voting(manager: VoteManager = Depends(get_vote_manager)):
    """关闭投票（回合快结束时停止收票，仍可查看结果）"""
    manager.close_voting()
    return {"votingOpen": False}


@router.post("/open")
async def open_voting(manager: VoteManager = Depends(get_vote_manager)):
    """重新开放投票"""
    manager.open_voting()
    return {"votingOpen": True}


@router.post("/rotate", response_model=ModeResponse)
async def rotate(manager: VoteManager = Depends(get_vote_manager)):
    """结算胜者并轮换到下一回合"""
    had_votes = manager.has_votes()
    active = manager.rotate_to_voted_mode()
    logger.info(f"外部触发轮换: had_votes={had_votes} -> {active.map_name}/{active.team_mode}")
    return to_mode_response(active)


@router.post("/new")
async def new_round(data: NewRoundRequest, manager: VoteManager = Depends(get_vote_manager)):
    """通知新回合开始（只更新当前地图并开放投票，不清空票数）"""
    manager.on_new_round(data.map_name, data.team_mode)
    return {"mapName": data.map_name, "teamMode": data.team_mode, "votingOpen": True}


@router.get("/has-votes")
async def has_votes(manager: VoteManager = Depends(get_vote_manager)):
    """本回合是否有人投票"""
    return {"hasVotes": manager.has_votes()}


@router.get("/winner")
async def get_winner(manager: VoteManager = Depends(get_vote_manager)):
    """当前各队伍模式的领先地图（实时计算，平票随机）"""
    winners = {
        tm: manager.get_winner_for_team_mode(tm)
        for tm in manager.get_enabled_team_modes()
    }
    overall = manager.get_winner()
    return {
        "byTeamMode": winners,
        "overall": overall.to_dict() if overall else None,
    }


@router.post("/pause")
async def pause_scheduler(scheduler: RoundScheduler = Depends(get_round_scheduler)):
    """暂停内置回合时钟（已关闭的投票保持关闭，直到继续后才轮换）"""
    scheduler.pause()
    return {"paused": True}


@router.post("/resume")
async def resume_scheduler(scheduler: RoundScheduler = Depends(get_round_scheduler)):
    """继续内置回合时钟"""
    scheduler.resume()
    return {"paused": False}
