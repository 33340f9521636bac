"""地图投票服务 - FastAPI 应用入口"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import Settings, get_settings
from api.vote import router as vote_router
from api.round import router as round_router
from systems.rate_limit import VoteRateLimiter
from systems.voting import RandomSource
from vote.catalog import MapCatalog, ModeRegistry
from vote.manager import VoteManager
from vote.scheduler import RoundScheduler

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, rng: RandomSource | None = None) -> FastAPI:
    """创建应用；投票管理器等共享状态在此构造一次，挂到 app.state"""
    settings = settings or get_settings()

    catalog = MapCatalog.load(settings.maps_file)
    registry = ModeRegistry(settings.modes, settings.allowed_vote_maps)
    manager = VoteManager(registry, catalog, rng=rng)
    limiter = VoteRateLimiter(settings.vote_rate_limit, settings.vote_rate_window_ms)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """应用生命周期管理：按配置启停回合时钟"""
        scheduler = None
        if settings.round_duration_sec > 0:
            scheduler = RoundScheduler(
                manager,
                round_duration=settings.round_duration_sec,
                close_before=settings.vote_close_before_sec,
            )
            scheduler.start()
        app.state.round_scheduler = scheduler
        yield
        if scheduler:
            await scheduler.stop()

    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.vote_manager = manager
    app.state.vote_rate_limiter = limiter
    app.dependency_overrides[get_settings] = lambda: settings

    # CORS 配置
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/health")
    async def health_check():
        """健康检查接口"""
        return {"status": "ok", "app": settings.app_name, "votingOpen": manager.voting_open}

    # 注册路由
    app.include_router(vote_router)
    app.include_router(round_router)

    logger.info(
        f"投票服务就绪: 队伍模式 {registry.enabled_team_modes()}，"
        f"可投票地图 {registry.allowed_maps()}"
    )
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=get_settings().debug)
