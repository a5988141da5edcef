"""Run the gateway under uvicorn."""

import argparse
import logging

import uvicorn
from redis import asyncio as aioredis

from streamgate.app import create_app
from streamgate.config import StreamgateConfig


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="streamgate")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8787)
    parser.add_argument("--static-dir", default=None)
    parser.add_argument("--redis-url", default=None)
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = StreamgateConfig()
    if args.static_dir is not None:
        config = config.model_copy(update={"static_dir": args.static_dir})

    redis = aioredis.from_url(args.redis_url) if args.redis_url else None
    app = create_app(config, redis)
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level.lower())


if __name__ == "__main__":
    main()
