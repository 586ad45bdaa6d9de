"""
channel-relay FastAPI entry point.

Each remote game-server instance gets an ephemeral chat room. Clients speak
JSON frames over /ws; REST serves dashboard views and room creation.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from channelrelay.api import channels, health, presence
from channelrelay.config import settings
from channelrelay.redis.client import close_redis, init_redis
from channelrelay.websocket.handlers import RelayHub, relay_ws_handler

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_redis()
    app.state.hub = RelayHub.create()
    logger.info("Relay ready (history=%d, grace=%.1fs)", settings.HISTORY_LIMIT, settings.DISCONNECT_GRACE_SECONDS)
    yield
    await app.state.hub.reconciler.shutdown()
    await close_redis()


app = FastAPI(
    title="channel-relay",
    description="Ephemeral per-server chat rooms with presence, votes and DMs",
    version="1.0.0",
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------
# allow_origins=["*"] is incompatible with allow_credentials=True, so a
# wildcard entry is turned into allow_origin_regex=".*" instead.
_cors_origins = [o for o in settings.CORS_ORIGINS if o != "*"]
_cors_regex = ".*" if len(_cors_origins) < len(settings.CORS_ORIGINS) else None

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_origin_regex=_cors_regex,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
app.include_router(health.router)
app.include_router(channels.router, prefix="/api")
app.include_router(presence.router, prefix="/api")

# ---------------------------------------------------------------------------
# WebSocket endpoint
# ---------------------------------------------------------------------------


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    await relay_ws_handler(websocket, websocket.app.state.hub)


# ---------------------------------------------------------------------------
# Custom exception handlers
# ---------------------------------------------------------------------------


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})
