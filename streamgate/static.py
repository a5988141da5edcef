"""
Static assets

Serves the web client from a directory. The index page is read through a
shared Redis cache when one is configured; everything else is read from
disk on each request.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from redis.exceptions import RedisError
from starlette.responses import Response

if TYPE_CHECKING:
    from redis.asyncio import Redis

from streamgate.config import StreamgateConfig

LOG = logging.getLogger(__name__)

INDEX_PATHS = frozenset({"/", "/index.html"})
INDEX_FILE = "index.html"

CONTENT_TYPES = {
    "js": "application/javascript",
    "css": "text/css",
    "html": "text/html",
    "json": "application/json",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
}


def content_type_for(path: str) -> str:
    """Content type by file extension; unknown extensions are served as text/plain."""
    name = path.rsplit("/", 1)[-1]
    extension = name.rsplit(".", 1)[-1].lower() if "." in name else ""
    return CONTENT_TYPES.get(extension, "text/plain")


@dataclass
class StaticAssets:
    """
    Static file handler.

    Usage:
        assets = StaticAssets(config, redis)
        response = await assets.serve("/app.js")  # None when missing
    """

    config: StreamgateConfig
    redis: "Redis | None" = None

    @property
    def root(self) -> Path | None:
        if self.config.static_dir is None:
            return None
        return Path(self.config.static_dir).resolve()

    def resolve(self, path: str) -> Path | None:
        """Map a URL path to a file under the static root, or None."""
        root = self.root
        if root is None:
            return None

        candidate = (root / path.lstrip("/")).resolve()
        if not candidate.is_relative_to(root) or not candidate.is_file():
            return None
        return candidate

    async def read(self, path: str) -> bytes | None:
        file = self.resolve(path)
        if file is None:
            return None
        return await asyncio.to_thread(file.read_bytes)

    async def serve(self, path: str) -> Response | None:
        if path in INDEX_PATHS:
            return await self.serve_index()

        content = await self.read(path)
        if content is None:
            return None
        return Response(content, headers={"content-type": content_type_for(path)})

    async def serve_index(self) -> Response | None:
        ttl = self.config.static_cache_ttl_seconds
        key = self.config.static_cache_key(INDEX_FILE)

        content = await self.cache_get(key)
        if content is None:
            LOG.info("Serving %s from disk", INDEX_FILE)
            content = await self.read(INDEX_FILE)
            if content is None:
                return None
            await self.cache_set(key, content, ttl)

        return Response(
            content,
            headers={
                "content-type": "text/html;charset=UTF-8",
                "cache-control": f"public, max-age={ttl}",
            },
        )

    async def cache_get(self, key: str) -> bytes | None:
        if self.redis is None:
            return None
        try:
            return await self.redis.get(key)
        except RedisError:
            LOG.exception("Static cache read failed for %s", key)
            return None

    async def cache_set(self, key: str, content: bytes, ttl: int) -> None:
        if self.redis is None:
            return
        try:
            await self.redis.set(key, content, ex=ttl)
        except RedisError:
            LOG.exception("Static cache write failed for %s", key)
