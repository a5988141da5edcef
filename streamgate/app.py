"""Application factory wiring the streamgate router into FastAPI."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

if TYPE_CHECKING:
    from redis.asyncio import Redis

from streamgate.config import StreamgateConfig
from streamgate.router import router


def create_app(config: StreamgateConfig | None = None, redis: "Redis | None" = None) -> FastAPI:
    """
    Build the gateway app.

    The Redis client, when given, backs the static asset cache and is
    closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            yield
        finally:
            if app.extra.get("redis") is not None:
                await app.extra["redis"].aclose()

    app = FastAPI(lifespan=lifespan)
    app.extra["streamgate_config"] = config or StreamgateConfig()
    app.extra["redis"] = redis
    app.include_router(router)
    return app
