"""
Luna API — entry point.

Startup sequence:
  1. Configure OTel tracing (→ Jaeger via OTLP)
  2. Create tables if not present
  3. Initialise MinIO client & bucket
  4. Expose Prometheus /metrics endpoint
"""
import logging

from contextlib import asynccontextmanager
from fastapi import FastAPI
from prometheus_client import make_asgi_app

from luna.config import settings
from luna.database import engine, init_db
from luna.telemetry import setup_tracing, instrument_app
from luna.clients.minio_client import init_minio
from luna import models  # noqa: F401  registers tables on Base.metadata
from luna.routers import auth, comments, feed, groups, notifications, posts, users

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)

# Set up tracing before the app is created so all imports are instrumented
setup_tracing()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup and shutdown of all external connections."""
    logger.info("Starting Luna API (env=%s)", settings.environment)

    await init_db()
    init_minio()                    # sync — boto3 is not async

    logger.info("All services connected. API ready.")
    yield

    logger.info("Shutting down...")
    await engine.dispose()


app = FastAPI(
    title="Luna API",
    description=(
        "Small social network: email-verified accounts, posts with images "
        "and hashtags, follows, likes, comments, groups and notifications."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

# ── Routers ────────────────────────────────────────────────────────────────
app.include_router(auth.router, prefix="/auth", tags=["Auth"])
app.include_router(users.router, prefix="/users", tags=["Users"])
app.include_router(posts.router, prefix="/posts", tags=["Posts"])
app.include_router(comments.router, prefix="/posts/{post_id}/comments", tags=["Comments"])
app.include_router(feed.router, prefix="/feed", tags=["Feed"])
app.include_router(groups.router, prefix="/groups", tags=["Groups"])
app.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])

# ── Prometheus metrics endpoint ────────────────────────────────────────────
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── OTel FastAPI instrumentation ──────────────────────────────────────────
instrument_app(app)


@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok", "service": settings.service_name}
