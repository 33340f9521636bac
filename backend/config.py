"""地图投票服务配置"""

import os
from functools import lru_cache

from pydantic import BaseModel
from pydantic_settings import BaseSettings


class ModeConfig(BaseModel):
    """单条模式配置：地图 + 队伍模式（1=单排 2=双排 4=四排）"""
    map_name: str
    team_mode: int
    enabled: bool = True


def _default_maps_file() -> str:
    return os.path.join(
        os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
        "config", "maps.yaml",
    )


class Settings(BaseSettings):
    """应用配置，从环境变量或 .env 文件读取"""

    # 应用基础
    app_name: str = "地图投票服务"
    debug: bool = False

    # CORS
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # 反向代理下取真实 IP 的请求头（如 X-Real-IP），为空则直接取连接地址
    proxy_ip_header: str | None = None

    # 地图目录文件
    maps_file: str = _default_maps_file()

    # 模式注册表（按顺序，第一个启用项为默认模式）
    modes: list[ModeConfig] = [
        ModeConfig(map_name="main", team_mode=1),
        ModeConfig(map_name="main", team_mode=2),
        ModeConfig(map_name="main", team_mode=4),
    ]
    # 可投票地图，为空时使用 modes 中的地图
    allowed_vote_maps: list[str] = []

    # 投票提交限流：window 毫秒内最多 limit 次
    vote_rate_limit: int = 10
    vote_rate_window_ms: int = 10000

    # 内置回合时钟，0 表示关闭（由外部调度器驱动）
    round_duration_sec: int = 0
    vote_close_before_sec: int = 15

    # 回合控制接口的管理令牌，为空则接口禁用
    admin_token: str = ""

    # 客户端轮询间隔（秒）
    poll_interval_sec: float = 5.0

    model_config = {"env_file": ".env", "env_prefix": "MAPVOTE_"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
