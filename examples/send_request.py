"""Send an API call through streamgate and print the response."""

import argparse
import asyncio
import json

import httpx


async def run(host: str, model: str, prompt: str) -> None:
    body = {"model": model, "messages": [{"role": "user", "content": prompt}]}
    async with httpx.AsyncClient() as client:
        response = await client.post(f"{host}/v1/chat/completions", content=json.dumps(body))
    print(response.status_code)
    print(response.text)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser()
    parser.add_argument("--host", default="http://127.0.0.1:8787")
    parser.add_argument("--model", default="gemini-2.0-flash")
    parser.add_argument("--prompt", default="ping")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    asyncio.run(run(args.host, args.model, args.prompt))


if __name__ == "__main__":
    main()
