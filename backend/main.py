"""
EduConnect - AI assistant backend for the education platform
FastAPI backend with multi-provider fallback + engagement ranking
"""

from contextlib import asynccontextmanager
import asyncio
import logging
import uuid

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from config import runtime_config
from errors import NotFoundError, ProviderAuthError, register_exception_handlers
from logging_config import setup_logging
from providers import build_provider_chain, get_provider
from routers import analytics, chat, posts
from routers.chat_orchestration import FallbackOrchestrator, StreamingRelay, SubjectRouter
from services.conversation_store import ConversationStore, LocalTurnCache, RemoteTurnStore
from services.database import close_database, get_database
from services.engagement import EngagementRanker
from services.post_store import PostStore

setup_logging(runtime_config.log_level)
logger = logging.getLogger(__name__)

# Instance ID - changes on every startup, used by frontend to detect restarts
INSTANCE_ID = str(uuid.uuid4())


def build_relay(chain, store: ConversationStore):
    """Streaming relay over the configured stream provider, else the first in the chain."""
    try:
        provider = get_provider(runtime_config.stream_provider, runtime_config)
    except (ProviderAuthError, NotFoundError) as e:
        logger.warning(f"Stream provider {runtime_config.stream_provider} unavailable: {e.message}")
        provider = chain[0] if chain else None

    if provider is None:
        logger.warning("Streaming disabled - no provider configured")
        return None
    logger.info(f"Streaming via {provider.provider_name}")
    return StreamingRelay(provider, store)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown events"""
    # Remote store; falls back to local-only when PostgreSQL is unreachable
    db = await get_database()
    if db.available:
        logger.info("PostgreSQL connected - chat history is dual-written")
    else:
        logger.warning("PostgreSQL unavailable - chat history kept in the local cache only")

    conversation_store = ConversationStore(
        local=LocalTurnCache(runtime_config.local_cache_path),
        remote=RemoteTurnStore(db) if runtime_config.database_enabled else None,
        remote_timeout_s=runtime_config.remote_store_timeout_s,
    )

    logger.debug(f"Runtime config: {runtime_config.to_dict()}")
    chain = build_provider_chain(runtime_config)
    logger.info(f"Provider chain: {[p.provider_name for p in chain] or 'empty'}")

    app.state.conversation_store = conversation_store
    app.state.orchestrator = FallbackOrchestrator(
        chain,
        conversation_store,
        primary_provider=runtime_config.primary_provider,
        router=SubjectRouter(runtime_config.primary_provider),
    )
    app.state.relay = build_relay(chain, conversation_store)
    app.state.post_store = PostStore(
        runtime_config.post_db_path,
        db=db,
        ranker=EngagementRanker(),
        trending_limit=runtime_config.trending_limit,
    )
    app.state.provider_chain = chain

    logger.info("EduConnect backend started")
    yield

    # Shutdown
    await close_database()
    logger.info("EduConnect backend stopped")


app = FastAPI(
    title="EduConnect",
    description="AI assistant and engagement backend for the EduConnect education platform",
    version="1.0.0",
    lifespan=lifespan,
)


# Security Headers Middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=runtime_config.cors_origin_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# API Routers (each carries its own /api paths)
app.include_router(chat.router, tags=["chat"])
app.include_router(posts.router, tags=["posts"])
app.include_router(analytics.router, tags=["analytics"])


@app.get("/health")
async def health(check_providers: bool = False):
    """Health check - remote store mode and configured providers.

    With ?check_providers=true every provider in the chain is asked a one-line
    question; this spends real API calls.
    """
    try:
        db = await get_database()
        db_health = await db.health_check()
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        db_health = {"status": "error", "mode": "local"}

    chain = getattr(app.state, "provider_chain", [])
    providers = [p.provider_name for p in chain]
    healthy = db_health.get("status") == "connected" and bool(providers)
    result = {
        "status": "healthy" if healthy else "degraded",
        "service": "educonnect",
        "instance_id": INSTANCE_ID,
        "database": db_health,
        "providers": providers,
        "primary_provider": runtime_config.primary_provider,
    }
    if check_providers:
        outcomes = await asyncio.gather(*(p.test_connection() for p in chain))
        result["provider_checks"] = {
            p.provider_name: {"ok": ok, "message": message} for p, (ok, message) in zip(chain, outcomes)
        }
    return result


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
