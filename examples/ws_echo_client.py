"""Open a session through streamgate, send a message and print what comes back."""

import argparse
import asyncio

import websockets


async def run(path: str, host: str, message: str) -> None:
    url = f"{host}{path}"
    async with websockets.connect(url) as websocket:
        print(f"connected: {url}")
        await websocket.send(message)
        async for reply in websocket:
            if isinstance(reply, bytes):
                reply = reply.decode("utf-8", errors="replace")
            print(reply)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser()
    parser.add_argument("--path", default="/ws/echo")
    parser.add_argument("--host", default="ws://127.0.0.1:8787")
    parser.add_argument("--message", default="ping")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    asyncio.run(run(args.path, args.host, args.message))


if __name__ == "__main__":
    main()
