import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from taskmate.config import settings, setup_logging
from taskmate.realtime.hub import hub
from taskmate.realtime.redis_bridge import RedisBridge, listen
from taskmate.redis_client import redis_client
from taskmate.routes.health import router as health_router
from taskmate.routes.me import router as me_router
from taskmate.routes.messages import router as messages_router
from taskmate.routes.projects import router as projects_router
from taskmate.routes.requests import router as requests_router
from taskmate.routes.ws import router as ws_router

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    listener = None
    if settings.realtime_backend == "redis":
        bridge = RedisBridge(redis_client, settings.realtime_channel_prefix)
        hub.attach_bridge(bridge)
        listener = asyncio.create_task(listen(hub, bridge, settings.redis_url))
        logger.info("realtime fan-out through redis at %s", settings.redis_url)
    yield
    if listener is not None:
        listener.cancel()
        await asyncio.gather(listener, return_exceptions=True)
        hub.attach_bridge(None)

def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title="taskmate-api", version="0.1.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(me_router)
    app.include_router(projects_router)
    app.include_router(requests_router)
    app.include_router(messages_router)
    app.include_router(ws_router)
    return app

app = create_app()
