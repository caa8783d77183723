"""Redis client lifecycle. The client lives on ``app.state.redis``."""

import redis.asyncio as redis
from starlette.types import ASGIApp


def create_redis(url: str) -> redis.Redis:
    """Build a Redis client backed by a connection pool."""
    return redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
    )


async def close_redis(client: redis.Redis | None) -> None:
    """Close a Redis client if one was created."""
    if client is not None:
        await client.aclose()


def get_redis(app: ASGIApp) -> redis.Redis | None:
    """The app's Redis client, or None when rate limiting runs without Redis."""
    state = getattr(app, "state", None)
    return getattr(state, "redis", None) if state is not None else None
