"""Tests for script submission and client resolution."""

import hashlib
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import NoScriptError, ResponseError

from redis_bucket.limiter.dispatch import ScriptDispatcher, redis_client_provider, resolve_client
from redis_bucket.limiter.redis_lua import LEAKY_BUCKET_SCRIPT, LEAKY_BUCKET_SHA


def make_client():
    client = MagicMock()
    client.evalsha = AsyncMock(return_value=[1, b"1", 1])
    client.eval = AsyncMock(return_value=[1, b"2", 1])
    return client


class TestScriptDispatcher:
    """Tests for EVALSHA with EVAL fallback."""

    def test_defaults_to_leaky_bucket_script(self):
        dispatcher = ScriptDispatcher()
        assert dispatcher.script == LEAKY_BUCKET_SCRIPT
        assert dispatcher.sha == LEAKY_BUCKET_SHA

    def test_hash_matches_script(self):
        dispatcher = ScriptDispatcher("return 1")
        assert dispatcher.sha == hashlib.sha1(b"return 1").hexdigest()

    @pytest.mark.asyncio
    async def test_uses_cached_script(self):
        client = make_client()
        reply = await ScriptDispatcher()(client, ["key"], [1, 0.5, 9])

        assert reply == [1, b"1", 1]
        client.evalsha.assert_awaited_once_with(LEAKY_BUCKET_SHA, 1, "key", 1, 0.5, 9)
        client.eval.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_falls_back_to_source_on_noscript(self):
        client = make_client()
        client.evalsha.side_effect = NoScriptError("No matching script")

        reply = await ScriptDispatcher()(client, ["key"], [1, 0.5, 9])

        assert reply == [1, b"2", 1]
        client.eval.assert_awaited_once_with(LEAKY_BUCKET_SCRIPT, 1, "key", 1, 0.5, 9)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [RedisConnectionError("down"), ResponseError("WRONGTYPE"), RuntimeError("boom")],
    )
    async def test_other_errors_propagate(self, error):
        client = make_client()
        client.evalsha.side_effect = error

        with pytest.raises(type(error)) as exc_info:
            await ScriptDispatcher()(client, ["key"], [1, 0.5, 9])

        assert exc_info.value is error
        client.eval.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fallback_errors_propagate(self):
        client = make_client()
        client.evalsha.side_effect = NoScriptError("No matching script")
        client.eval.side_effect = RedisConnectionError("down")

        with pytest.raises(RedisConnectionError):
            await ScriptDispatcher()(client, ["key"], [1, 0.5, 9])


    @pytest.mark.asyncio
    async def test_eval_only_client_gets_source(self):
        client = MagicMock(spec=["eval"])
        client.eval = AsyncMock(return_value=[1, b"2", 1])

        reply = await ScriptDispatcher()(client, ["key"], [1, 0.5, 9])

        assert reply == [1, b"2", 1]
        client.eval.assert_awaited_once_with(LEAKY_BUCKET_SCRIPT, 1, "key", 1, 0.5, 9)


class TestResolveClient:
    """Tests for resolving client providers."""

    @pytest.mark.asyncio
    async def test_client_used_directly(self):
        client = make_client()
        assert await resolve_client(client) is client

    @pytest.mark.asyncio
    async def test_eval_only_client_used_directly(self):
        client = MagicMock(spec=["eval"])
        assert await resolve_client(client) is client

    @pytest.mark.asyncio
    async def test_callable_provider(self):
        client = object()
        assert await resolve_client(lambda: client) is client

    @pytest.mark.asyncio
    async def test_async_provider(self):
        client = object()

        async def provide():
            return client

        assert await resolve_client(provide) is client

    @pytest.mark.asyncio
    async def test_provider_called_per_resolution(self):
        client = object()
        provider = MagicMock(spec=lambda: None, return_value=client)

        await resolve_client(provider)
        await resolve_client(provider)

        assert provider.call_count == 2


def test_redis_client_provider_connects_once(monkeypatch):
    created = []

    def fake_from_url(url):
        created.append(url)
        return MagicMock()

    monkeypatch.setattr("redis.asyncio.from_url", fake_from_url)
    provide = redis_client_provider("redis://example:6379/1")

    assert provide() is provide()
    assert created == ["redis://example:6379/1"]
