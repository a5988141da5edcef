"""Minimal FastAPI app wiring the streamgate router, static assets and Redis."""

from redis import asyncio as aioredis

from streamgate import StreamgateConfig, create_app

config = StreamgateConfig(static_dir="./public")
app = create_app(config, aioredis.from_url("redis://localhost:6379/0"))
