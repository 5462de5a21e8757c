from __future__ import annotations

import contextlib
import os
from typing import TYPE_CHECKING

import structlog
from starlette.applications import Starlette
from starlette.responses import JSONResponse
from starlette.routing import Route

from golf.logic.timer import TimerConfig
from golf.server.settings import GolfServerSettings
from golf.server.tcp import serve
from golf.session.runner import MatchRunner
from shared.logging import setup_logging

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from starlette.requests import Request

APP_VERSION: str = os.environ.get("APP_VERSION", "dev")


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "version": APP_VERSION})


async def status(request: Request) -> JSONResponse:
    runner: MatchRunner = request.app.state.runner
    settings: GolfServerSettings = request.app.state.settings
    return JSONResponse(
        {
            "status": "ok",
            "version": APP_VERSION,
            "live_matches": len(runner.live_matches),
            "waiting_players": runner.waiting_players,
            "max_capacity": settings.max_capacity,
            "port": request.app.state.tcp_port,
        },
    )


async def matches(request: Request) -> JSONResponse:
    runner: MatchRunner = request.app.state.runner
    return JSONResponse({"matches": [match.to_dict() for match in runner.live_matches]})


def create_app(
    settings: GolfServerSettings | None = None,
    runner: MatchRunner | None = None,
) -> Starlette:
    """Build the status app; its lifespan owns the duel TCP listener."""
    if settings is None:  # pragma: no cover
        settings = GolfServerSettings()

    if runner is None:
        runner = MatchRunner(
            timer_config=TimerConfig.from_settings(settings),
            max_capacity=settings.max_capacity,
            max_payload_length=settings.max_payload_bytes,
        )

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        server = await serve(runner, settings.host, settings.port)
        app.state.tcp_port = server.sockets[0].getsockname()[1] if server.sockets else settings.port
        try:
            yield
        finally:
            server.close()
            server.close_clients()
            runner.shutdown()
            await server.wait_closed()
            logger.info("duel server stopped")

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/status", status, methods=["GET"]),
        Route("/matches", matches, methods=["GET"]),
    ]

    app = Starlette(routes=routes, lifespan=lifespan)
    app.state.settings = settings
    app.state.runner = runner
    app.state.tcp_port = settings.port

    logger.info("status app ready")
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (uvicorn --factory golf.server.app:get_app)."""
    _settings = GolfServerSettings()
    setup_logging(log_dir=_settings.log_dir)
    return create_app(settings=_settings)
