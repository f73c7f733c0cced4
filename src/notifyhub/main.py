"""FastAPI application factory and lifespan management."""

import asyncio
import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from notifyhub.config import settings
from notifyhub.db.engine import create_db_engine, create_session_factory
from notifyhub.logging_config import configure_logging
from notifyhub.streaming.change_feed import LocalChangeFeed, RedisChangeFeed
from notifyhub.streaming.merger import LiveDeliveryMerger
from notifyhub.streaming.sessions import SessionManager
from notifyhub.workers.consumer import NotificationConsumer
from notifyhub.workers.processor import NotificationProcessor
from notifyhub.workers.queue import LocalQueue, RedisStreamQueue

# Configure logging at import time
configure_logging(log_level=settings.log_level, json_output=not settings.local_mode)

logger = logging.getLogger(__name__)


def init_delivery(app: FastAPI, session_factory, redis=None) -> NotificationConsumer:
    """Wire queue, change feed, sessions, merger and processor onto ``app.state``.

    Without Redis everything runs in-process.
    """
    if redis is None:
        queue = LocalQueue(settings.queue_topic, maxsize=settings.local_queue_size)
        change_feed = LocalChangeFeed()
    else:
        queue = RedisStreamQueue(
            redis, settings.queue_topic, settings.consumer_group, settings.consumer_name
        )
        change_feed = RedisChangeFeed(redis, prefix=settings.change_feed_prefix)

    sessions = SessionManager()
    processor = NotificationProcessor(session_factory, change_feed)

    app.state.db_session_factory = session_factory
    app.state.redis = redis
    app.state.notification_queue = queue
    app.state.change_feed = change_feed
    app.state.session_manager = sessions
    app.state.live_merger = LiveDeliveryMerger(session_factory, change_feed, sessions)
    app.state.processor = processor
    return NotificationConsumer(queue, processor, max_retries=settings.queue_max_retries)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown resources."""
    db_url = settings.effective_database_url
    engine = create_db_engine(db_url)

    # Auto-create tables for SQLite (local dev, no Alembic migrations)
    if "sqlite" in db_url:
        from notifyhub.db.base import Base
        import notifyhub.db.models  # noqa: F401 (register all ORM models)

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("SQLite tables created (local mode)")

    app.state.db_engine = engine
    redis = None if settings.local_mode else aioredis.from_url(settings.redis_url, decode_responses=True)
    consumer = init_delivery(app, create_session_factory(engine), redis)
    consumer_task = asyncio.create_task(consumer.run())

    logger.info("NotifyHub started (db=%s, queue=%s)", "sqlite" if "sqlite" in db_url else "postgresql",
                "redis" if redis is not None else "local")
    yield

    # Shutdown
    consumer_task.cancel()
    try:
        await consumer_task
    except asyncio.CancelledError:
        pass
    await app.state.notification_queue.close()
    if redis is not None:
        await redis.aclose()
    await engine.dispose()
    logger.info("NotifyHub shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="NotifyHub API",
        version="1.0.0",
        description="Multi-language notification delivery with live per-user streams.",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from notifyhub.api.middleware.trace_id import TraceIdMiddleware
    app.add_middleware(TraceIdMiddleware)

    from notifyhub.errors.handlers import register_exception_handlers
    register_exception_handlers(app)

    from notifyhub.api.router import api_router
    app.include_router(api_router)

    return app


app = create_app()
