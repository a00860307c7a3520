"""Register a callback with a running DelayHook service.

    delayhook serve --port 8080
    python examples/register_callback.py https://example.com/hook 2m
"""

import asyncio
import sys

import aiohttp


async def main(remote_url: str, delay: str) -> None:
    async with aiohttp.ClientSession() as session:
        async with session.post(
            "http://localhost:8080/callback",
            json={"remote_url": remote_url, "in": delay},
        ) as response:
            body = await response.json()
            print(response.status, body)

        if response.status == 200:
            async with session.get(
                f"http://localhost:8080/callback/{body['callback_id']}"
            ) as response:
                print(response.status, await response.json())


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1], sys.argv[2] if len(sys.argv) > 2 else "1m"))
