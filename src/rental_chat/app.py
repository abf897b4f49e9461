from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rental_chat.api.middleware.correlation_id import CorrelationIdMiddleware
from rental_chat.api.v1.routers import health, messages, ws
from rental_chat.application.exceptions import (
    UnauthenticatedError,
    ValidationError,
)
from rental_chat.config import Settings, settings as default_settings
from rental_chat.infrastructure.bus.redis_pubsub import (
    RedisPubSubPublisher,
    RedisPubSubSubscriber,
)
from rental_chat.infrastructure.db.session import make_engine, make_sessionmaker
from rental_chat.infrastructure.ws.manager import ConnectionManager, LocalFanoutPublisher

logger = logging.getLogger(__name__)


def _lifespan(settings: Settings):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Startup / shutdown lifecycle."""
        engine = make_engine(settings)
        app.state.sessionmaker = make_sessionmaker(engine)

        subscriber: RedisPubSubSubscriber | None = None
        if settings.FANOUT_MODE == "redis":
            app.state.redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
            logger.info("Redis connection pool created")
            manager: ConnectionManager = app.state.manager

            async def _on_pubsub_event(
                conversation_id: str, event_type: str, data: dict[str, Any],
            ) -> None:
                await manager.broadcast_to_conversation(conversation_id, event_type, data)

            subscriber = RedisPubSubSubscriber(
                app.state.redis, settings.REDIS_CHANNEL_PREFIX, _on_pubsub_event,
            )
            await subscriber.start()
            app.state.publisher = RedisPubSubPublisher(
                app.state.redis, settings.REDIS_CHANNEL_PREFIX,
            )

        yield

        if subscriber is not None:
            await subscriber.stop()
            await app.state.redis.aclose()
            logger.info("Redis connection pool closed")
        await engine.dispose()

    return lifespan


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or default_settings
    app = FastAPI(
        title="Rental Listing Chat API",
        version="0.1.0",
        lifespan=_lifespan(settings),
    )
    app.state.manager = ConnectionManager()
    app.state.publisher = LocalFanoutPublisher(app.state.manager)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(messages.router)
    app.include_router(ws.router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(UnauthenticatedError)
    async def _unauthenticated(_req: Request, exc: UnauthenticatedError) -> JSONResponse:
        return JSONResponse(status_code=401, content={"detail": exc.detail})

    @app.exception_handler(ValidationError)
    async def _validation(_req: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": exc.detail})
