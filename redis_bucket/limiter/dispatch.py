"""Submission of the admission script to Redis."""

import hashlib
import inspect
from typing import Any, Awaitable, Callable, Sequence, Union

from redis.exceptions import NoScriptError

from redis_bucket.core.logging import get_logger

from .redis_lua import LEAKY_BUCKET_SCRIPT

logger = get_logger(__name__)

# A client, or a callable returning a client (or an awaitable of one)
ClientProvider = Union[Any, Callable[[], Any], Callable[[], Awaitable[Any]]]


async def resolve_client(provider: ClientProvider) -> Any:
    """Resolve the store client for a single call.

    Objects exposing ``evalsha`` or ``eval`` are used as clients directly;
    anything else callable is invoked, and an awaitable result is awaited.
    """
    if hasattr(provider, "evalsha") or hasattr(provider, "eval") or not callable(provider):
        return provider
    client = provider()
    if inspect.isawaitable(client):
        client = await client
    return client


class ScriptDispatcher:
    """Runs a Lua script by hash, sending its source only when needed.

    ``EVALSHA`` is attempted first; when Redis does not know the script yet
    it answers NOSCRIPT and the full source is sent with ``EVAL``, which
    also caches it for later calls. Clients without ``evalsha`` always get
    the source. No other error is caught.
    """

    def __init__(self, script: str = LEAKY_BUCKET_SCRIPT) -> None:
        self.script = script
        self.sha = hashlib.sha1(script.encode("utf-8")).hexdigest()

    async def __call__(
        self,
        client: Any,
        keys: Sequence[str],
        args: Sequence[Any],
    ) -> Any:
        if hasattr(client, "evalsha"):
            try:
                return await client.evalsha(self.sha, len(keys), *keys, *args)
            except NoScriptError:
                logger.debug(f"Script {self.sha} not cached, sending source")
        return await client.eval(self.script, len(keys), *keys, *args)


def redis_client_provider(redis_url: str) -> Callable[[], Any]:
    """Provider that connects to Redis on first use and reuses the client."""
    client = None

    def provide() -> Any:
        nonlocal client
        if client is None:
            import redis.asyncio as aioredis
            client = aioredis.from_url(redis_url)
            logger.info(f"Created Redis client for {redis_url}")
        return client

    return provide
