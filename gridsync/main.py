import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import Optional

import socketio
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gridsync.config import Settings
from gridsync.routers import grid
from gridsync.services.coordinator import GridCoordinator
from gridsync.services.socket_events import register_socket_events

logger = logging.getLogger(__name__)


def socketio_wrap(
    app: FastAPI,
    async_mode: str = "asgi",
    socketio_path: str = "socket.io",
    logger: bool = False,
    engineio_logger: bool = False,
    cors_allowed_origins="*",
    **kwargs
) -> tuple[socketio.AsyncServer, socketio.ASGIApp]:
    """
    Put an async SocketIO server in front of a FastAPI app.

    Requests under `/{socketio_path}/` go to Socket.IO; everything else,
    lifespan included, is passed through to `app`. Serve the returned ASGI app.
    """
    sio = socketio.AsyncServer(
        async_mode=async_mode,
        cors_allowed_origins=cors_allowed_origins,
        logger=logger,
        engineio_logger=engineio_logger,
        **kwargs
    )

    sio_app = socketio.ASGIApp(sio, other_asgi_app=app, socketio_path=socketio_path)

    return sio, sio_app


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    coordinator = GridCoordinator(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        reaper = None
        if settings.lock_timeout is not None:
            logger.info("locks expire after %ss", settings.lock_timeout)
            reaper = asyncio.create_task(coordinator.run_lock_reaper())
        yield
        if reaper is not None:
            reaper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reaper

    app = FastAPI(
        title="Grid sync API",
        description="Shared grid of text cells with per-cell locking, synchronised over WebSocket and Socket.IO.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.coordinator = coordinator

    cors_origins = list(settings.cors_origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(grid.router, tags=["Grid"])

    @app.get("/", summary="Health check", response_description="Server status")
    async def root():
        return {"status": "ok", "peers": len(coordinator.peers)}

    cors_allowed = "*" if cors_origins == ["*"] else cors_origins
    sio, asgi_app = socketio_wrap(app, cors_allowed_origins=cors_allowed)
    app.state.sio = sio
    app.state.asgi_app = asgi_app
    register_socket_events(sio, coordinator)
    return app


app = create_app()
# what uvicorn serves: Socket.IO in front of the FastAPI routes
asgi_app = app.state.asgi_app


def main() -> None:
    settings = app.state.settings
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(asgi_app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
