"""地图目录与模式注册表"""

from __future__ import annotations

import logging
import os
from typing import Iterable

import yaml

from config import ModeConfig
from models.vote_models import ActiveMode, MapInfo

logger = logging.getLogger(__name__)

# 没有任何模式配置时的兜底模式
FALLBACK_MODE = ActiveMode(map_name="main", team_mode=2)


class MapCatalog:
    """只读地图目录：map_name -> 展示信息"""

    def __init__(self, maps: dict[str, MapInfo] | None = None):
        self._maps: dict[str, MapInfo] = dict(maps or {})

    @classmethod
    def load(cls, path: str) -> MapCatalog:
        """从 YAML 文件加载地图目录"""
        if not os.path.exists(path):
            raise FileNotFoundError(f"地图目录文件不存在: {path}")
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"地图目录格式错误，应为映射: {path}")

        maps: dict[str, MapInfo] = {}
        for map_name, desc in data.items():
            if not isinstance(desc, dict):
                logger.warning(f"跳过格式错误的地图条目: {map_name}")
                continue
            maps[str(map_name)] = MapInfo(
                name=str(map_name),
                display_name=desc.get("name") or str(map_name),
                icon=desc.get("icon", ""),
                background_image=desc.get("background_img", ""),
            )
        logger.info(f"已加载 {len(maps)} 张地图: {path}")
        return cls(maps)

    def get(self, map_name: str) -> MapInfo | None:
        return self._maps.get(map_name)

    def names(self) -> list[str]:
        return list(self._maps)


class ModeRegistry:
    """模式注册表：哪些队伍模式启用、各自默认地图、可投票地图列表"""

    def __init__(self, modes: Iterable[ModeConfig], allowed_vote_maps: Iterable[str] = ()):
        self.modes = list(modes)
        self.allowed_vote_maps = list(allowed_vote_maps)

    def default_mode(self) -> ActiveMode:
        """第一个启用的模式；都未启用时取第一个；无配置时兜底"""
        for mode in self.modes:
            if mode.enabled:
                return ActiveMode(mode.map_name, mode.team_mode)
        if self.modes:
            return ActiveMode(self.modes[0].map_name, self.modes[0].team_mode)
        return ActiveMode(FALLBACK_MODE.map_name, FALLBACK_MODE.team_mode)

    def enabled_team_modes(self) -> list[int]:
        """启用的队伍模式（升序去重），至少包含默认模式"""
        team_modes = {mode.team_mode for mode in self.modes if mode.enabled}
        if not team_modes:
            team_modes.add(self.default_mode().team_mode)
        return sorted(team_modes)

    def default_map_for(self, team_mode: int) -> str:
        for mode in self.modes:
            if mode.enabled and mode.team_mode == team_mode:
                return mode.map_name
        return self.default_mode().map_name

    def allowed_maps(self) -> list[str]:
        """可投票地图（保持配置顺序去重）"""
        source = self.allowed_vote_maps or [mode.map_name for mode in self.modes]
        seen: set[str] = set()
        unique: list[str] = []
        for map_name in source:
            if map_name not in seen:
                seen.add(map_name)
                unique.append(map_name)
        return unique
