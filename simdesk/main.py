"""
SimDesk backend — FastAPI entry point.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from loguru import logger

from simdesk.config import settings
from simdesk.models.database import init_db, dispose_db
from simdesk.services.broadcaster import ChatBroadcaster
from simdesk.services.cache_service import ConditionalCache, ResponseCache, UpstreamUnavailable
from simdesk.services.question_bank import load_bank
from simdesk.services.upstream_service import UpstreamClient
from simdesk.middleware.error_handler import global_exception_handler, upstream_exception_handler
from simdesk.middleware.logging_middleware import logging_middleware
from simdesk.middleware.rate_limit import limiter

# ── Routes ───────────────────────────────────────────────
from simdesk.routes.chat import router as chat_router
from simdesk.routes.simulations import router as simulations_router
from simdesk.routes.mirror import router as mirror_router


# ── Lifespan ─────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    await init_db()

    bank = load_bank(settings.QUESTION_BANK_PATH)
    app.state.question_bank = bank
    app.state.broadcaster = ChatBroadcaster(
        bank,
        welcome_text=settings.WELCOME_TEXT,
        threshold=settings.MATCH_THRESHOLD,
        short_input_length=settings.SHORT_INPUT_LENGTH,
    )
    app.state.conditional_cache = ConditionalCache(scope=settings.VALIDATOR_SCOPE)
    app.state.response_cache = ResponseCache(
        ttl=settings.CACHE_TTL_SECONDS, maxsize=settings.CACHE_MAX_ENTRIES
    )
    app.state.upstream = UpstreamClient(
        settings.UPSTREAM_BASE_URL, timeout=settings.UPSTREAM_TIMEOUT_SECONDS
    )
    logger.info(f"Database initialized, validator scope={settings.VALIDATOR_SCOPE}")
    yield
    logger.info("Shutting down")
    await app.state.broadcaster.shutdown()
    await dispose_db()


# ── App ──────────────────────────────────────────────────
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Saved simulations and support assistant API",
    lifespan=lifespan,
)

# ── Rate Limiter ─────────────────────────────────────────
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(UpstreamUnavailable, upstream_exception_handler)

# ── CORS ─────────────────────────────────────────────────
origins = settings.CORS_ORIGINS.split(",") if settings.CORS_ORIGINS != "*" else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Custom Middleware ────────────────────────────────────
app.middleware("http")(global_exception_handler)
app.middleware("http")(logging_middleware)

# ── Register Routers ────────────────────────────────────
app.include_router(chat_router)
app.include_router(simulations_router)
app.include_router(mirror_router)


# ── Health Check ─────────────────────────────────────────
@app.get("/api/health", tags=["health"])
async def health(request: Request):
    return {
        "status": "ok",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "chat_sessions": len(request.app.state.broadcaster),
    }


# ── Run ──────────────────────────────────────────────────
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "simdesk.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info",
    )
