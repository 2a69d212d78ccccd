"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from api.routes import game, player
from api.session import SessionBusy, SessionNotFound, close_redis
from api.storage import StorageError
from api.websocket import router as ws_router
from blackjack.game import GameError
from config import config

logging.basicConfig(
    level=config.log_level,
    format="%(asctime)s [%(name)s] %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize rate limiter
limiter = Limiter(
    key_func=get_remote_address,
    enabled=config.rate_limit.enabled,
    default_limits=[f"{config.rate_limit.requests_per_minute}/minute"],
)


def _rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Handle rate limit exceeded errors."""
    return JSONResponse(
        status_code=429,
        content={"detail": f"Rate limit exceeded: {exc.detail}"},
    )


def _game_error_handler(request: Request, exc: GameError) -> JSONResponse:
    """Rejected bets and actions: the round is unchanged and the player can retry."""
    return JSONResponse(
        status_code=400,
        content={"detail": exc.message, "error": type(exc).__name__},
    )


def _session_not_found_handler(request: Request, exc: SessionNotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


def _session_busy_handler(request: Request, exc: SessionBusy) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


def _storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    logger.warning("storage unavailable: %s", exc)
    return JSONResponse(
        status_code=503,
        content={"detail": "Chip storage is unavailable, please try again"},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_redis()


app = FastAPI(
    title="Blackjack Table",
    description="Single-player blackjack against an automated dealer",
    version="0.1.0",
    debug=config.debug,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(GameError, _game_error_handler)
app.add_exception_handler(SessionNotFound, _session_not_found_handler)
app.add_exception_handler(SessionBusy, _session_busy_handler)
app.add_exception_handler(StorageError, _storage_error_handler)

# CORS middleware with configurable origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors.allowed_origins,
    allow_credentials=config.cors.allow_credentials,
    allow_methods=config.cors.allow_methods,
    allow_headers=config.cors.allow_headers,
)


@app.get("/api/health")
@limiter.limit(f"{config.rate_limit.requests_per_minute}/minute")
async def health_check(request: Request) -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


# Include routers
app.include_router(game.router, prefix="/api/game", tags=["game"])
app.include_router(player.router, prefix="/api/player", tags=["player"])
app.include_router(ws_router, prefix="/ws", tags=["websocket"])
