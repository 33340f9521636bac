"""投票管理器：计票、一人一票、胜者结算与回合轮换"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from models.vote_models import (
    ActiveMode, SubmitResult, VoteError, VoteOption,
    VoteStateView, VoteStats, VoterRecord,
)
from systems.voting import RandomSource, get_default_rng, pick_winner
from vote.catalog import MapCatalog, ModeRegistry
from vote.state import VoteRoundState

logger = logging.getLogger(__name__)


class VoteManager:
    """
    投票管理器（进程内唯一实例，启动时创建并注入到路由）。

    所有读写都在同一把锁内完成，锁内不做任何 I/O 或 await，
    保证同一投票者并发提交只成功一次、轮换与投票互不交错。
    """

    def __init__(
        self,
        registry: ModeRegistry,
        catalog: MapCatalog,
        rng: RandomSource | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.registry = registry
        self.catalog = catalog
        self.rng = rng or get_default_rng()
        self.clock = clock
        self._lock = threading.Lock()
        self.state = VoteRoundState()

        # 按配置初始化每个队伍模式的地图
        for team_mode in self.registry.enabled_team_modes():
            self.state.active_map_by_team_mode[team_mode] = self.registry.default_map_for(team_mode)

        default = self.registry.default_mode()
        self.state.current_map_name = default.map_name
        self.state.current_team_mode = default.team_mode

    # ========== 查询 ==========

    def get_enabled_team_modes(self) -> list[int]:
        return self.registry.enabled_team_modes()

    def get_active_mode(self, team_mode: int | None = None) -> ActiveMode:
        """获取某队伍模式下一回合的地图；未知模式回落到主模式"""
        with self._lock:
            return self._active_mode(team_mode)

    def get_active_modes(self) -> dict[int, ActiveMode]:
        with self._lock:
            return {tm: self._active_mode(tm) for tm in self.registry.enabled_team_modes()}

    def get_voting_options(self) -> list[VoteOption]:
        with self._lock:
            return self._build_options()

    def get_vote_state(self, voter_id: str) -> VoteStateView:
        """获取投票状态快照（含该投票者是否已投）"""
        with self._lock:
            record = self.state.get_record(voter_id) if voter_id else None
            return VoteStateView(
                voting_open=self.state.voting_open,
                current_map_name=self.state.current_map_name,
                current_team_mode=self.state.current_team_mode,
                enabled_team_modes=self.registry.enabled_team_modes(),
                options=self._build_options(),
                has_voted=record is not None,
                voted_for=ActiveMode(record.map_name, record.team_mode) if record else None,
            )

    def get_stats(self) -> VoteStats:
        with self._lock:
            return VoteStats(
                total_votes=self.state.total_votes(),
                unique_voters=len(self.state.voter_records),
                voting_open=self.state.voting_open,
            )

    def has_votes(self) -> bool:
        """是否有任意选项票数 > 0（调度器用来判断本回合是否有人投票）"""
        with self._lock:
            return self.state.has_votes()

    @property
    def voting_open(self) -> bool:
        with self._lock:
            return self.state.voting_open

    # ========== 投票 ==========

    def submit_vote(self, voter_id: str, map_name: str, team_mode: int) -> SubmitResult:
        """
        提交投票。

        校验顺序：投票者标识 → 投票是否开放 → 是否已投 → 选项是否有效。
        任一校验失败都不修改状态。
        """
        if not voter_id:
            return SubmitResult.fail(VoteError.INVALID_IP)

        with self._lock:
            if not self.state.voting_open:
                result = SubmitResult.fail(VoteError.VOTING_CLOSED)
            elif self.state.get_record(voter_id) is not None:
                result = SubmitResult.fail(VoteError.ALREADY_VOTED)
            elif (
                map_name not in self.registry.allowed_maps()
                or team_mode not in self.registry.enabled_team_modes()
            ):
                result = SubmitResult.fail(VoteError.INVALID_OPTION)
            else:
                new_count = self.state.record_vote(VoterRecord(
                    voter_id=voter_id,
                    map_name=map_name,
                    team_mode=team_mode,
                    timestamp=self.clock(),
                ))
                result = SubmitResult(success=True, new_vote_count=new_count)

        if result.success:
            logger.debug(f"投票成功: voter={voter_id} map={map_name} team_mode={team_mode} count={result.new_vote_count}")
        else:
            logger.info(f"投票被拒: voter={voter_id} map={map_name} team_mode={team_mode} error={result.error.value}")
        return result

    # ========== 结算 ==========

    def get_winner_for_team_mode(self, team_mode: int) -> str | None:
        """计算某队伍模式当前的胜出地图（每次重新计算，不缓存）"""
        with self._lock:
            return self._winner_for_team_mode(team_mode)

    def get_winner(self) -> ActiveMode | None:
        """跨所有队伍模式的总胜者"""
        with self._lock:
            winner = pick_winner(self._build_options(), self.rng)
        if winner is None:
            return None
        return ActiveMode(winner.map_name, winner.team_mode)

    def rotate_to_voted_mode(self) -> ActiveMode:
        """
        回合轮换：每个队伍模式应用胜出地图（无票则保持原地图），
        清空票数与投票者记录，当前地图切到主模式的地图，重新开放投票。
        """
        with self._lock:
            enabled = self.registry.enabled_team_modes()
            for team_mode in enabled:
                winner_map = self._winner_for_team_mode(team_mode)
                if winner_map:
                    self.state.active_map_by_team_mode[team_mode] = winner_map

            self.state.reset_round()

            primary = self._active_mode(enabled[0] if enabled else None)
            self.state.current_map_name = primary.map_name
            self.state.current_team_mode = primary.team_mode
            self.state.voting_open = True
            assignments = dict(self.state.active_map_by_team_mode)

        logger.info(f"回合轮换完成: 当前 {primary.map_name}/{primary.team_mode}，各模式地图 {assignments}")
        return primary

    # ========== 回合控制 ==========

    def on_new_round(self, map_name: str, team_mode: int) -> None:
        """外部通知新回合开始（可能是强制指定的地图），不清空票数"""
        with self._lock:
            self.state.current_map_name = map_name
            self.state.current_team_mode = team_mode
            self.state.voting_open = True
        logger.info(f"新回合开始: {map_name}/{team_mode}")

    def close_voting(self) -> None:
        with self._lock:
            self.state.voting_open = False
        logger.info("投票已关闭")

    def open_voting(self) -> None:
        with self._lock:
            self.state.voting_open = True
        logger.info("投票已开放")

    # ========== 内部（调用方需持有锁） ==========

    def _active_mode(self, team_mode: int | None) -> ActiveMode:
        if team_mode is not None:
            map_name = self.state.active_map_by_team_mode.get(team_mode)
            if map_name:
                return ActiveMode(map_name, team_mode)
        enabled = self.registry.enabled_team_modes()
        first = enabled[0] if enabled else 1
        map_name = self.state.active_map_by_team_mode.get(first) or self.registry.default_mode().map_name
        return ActiveMode(map_name, first)

    def _winner_for_team_mode(self, team_mode: int) -> str | None:
        options = [o for o in self._build_options() if o.team_mode == team_mode]
        winner = pick_winner(options, self.rng)
        return winner.map_name if winner else None

    def _build_options(self) -> list[VoteOption]:
        """启用的队伍模式 × 可投票地图；目录中不存在的地图跳过"""
        options: list[VoteOption] = []
        allowed_maps = self.registry.allowed_maps()
        for team_mode in self.registry.enabled_team_modes():
            for map_name in allowed_maps:
                info = self.catalog.get(map_name)
                if info is None:
                    continue
                options.append(VoteOption(
                    map_name=map_name,
                    team_mode=team_mode,
                    display_name=info.display_name or map_name,
                    icon=info.icon,
                    background_image=info.background_image,
                    vote_count=self.state.get_count(map_name, team_mode),
                ))
        return options
