"""Tests for the in-memory bucket store."""

import pytest
from redis.exceptions import NoScriptError, ResponseError

from redis_bucket.limiter.codec import decode_state
from redis_bucket.limiter.redis_lua import LEAKY_BUCKET_SCRIPT, LEAKY_BUCKET_SHA


class TestScripts:
    """Tests for script caching behaviour."""

    @pytest.mark.asyncio
    async def test_evalsha_unknown_until_loaded(self, store):
        with pytest.raises(NoScriptError):
            await store.evalsha(LEAKY_BUCKET_SHA, 1, "key", 1, 0.5, 9)

        assert await store.script_load(LEAKY_BUCKET_SCRIPT) == LEAKY_BUCKET_SHA
        assert await store.evalsha(LEAKY_BUCKET_SHA, 1, "key", 1, 0.5, 9) == [1, b"8", 1]

    @pytest.mark.asyncio
    async def test_eval_caches_script(self, store):
        await store.eval(LEAKY_BUCKET_SCRIPT, 1, "key", 1, 0.5, 9)
        assert await store.evalsha(LEAKY_BUCKET_SHA, 1, "key", 1, 0.5, 9) == [1, b"7", 1]

    @pytest.mark.asyncio
    async def test_other_scripts_rejected(self, store):
        with pytest.raises(ResponseError):
            await store.eval("return 1", 0)
        with pytest.raises(ResponseError):
            await store.script_load("return 1")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("args", [(1,), (1, 0.5), (1, 0.5, 9, 0.25)])
    async def test_argument_shape_checked(self, store, args):
        with pytest.raises(ResponseError):
            await store.eval(LEAKY_BUCKET_SCRIPT, 1, "key", *args)

    @pytest.mark.asyncio
    async def test_reply_formats_numbers_like_lua(self, store):
        reply = await store.eval(LEAKY_BUCKET_SCRIPT, 1, "key", 1, 1 / 3, 1)
        assert reply == [1, b"0", 1]

        reply = await store.eval(LEAKY_BUCKET_SCRIPT, 1, "other", 0.5, 1 / 3, 1)
        assert reply == [1, b"0.5", 1]


class TestRecords:
    """Tests for persisted state and expiry."""

    @pytest.mark.asyncio
    async def test_record_written_with_expiry(self, store, clock):
        await store.eval(LEAKY_BUCKET_SCRIPT, 1, "key", 1, 0.5, 9)

        state = decode_state(await store.get("key"))
        assert state.last_update == clock.now
        assert state.used == [1.0]
        assert await store.ttl("key") == 18

    @pytest.mark.asyncio
    async def test_record_expires(self, store, clock):
        await store.eval(LEAKY_BUCKET_SCRIPT, 1, "key", 1, 0.5, 9)
        clock.sleep(18)

        assert await store.get("key") is None
        assert await store.ttl("key") == -2

    @pytest.mark.asyncio
    async def test_undecodable_record_is_replaced(self, store):
        await store.set("key", b"\xc1garbage")

        reply = await store.eval(LEAKY_BUCKET_SCRIPT, 1, "key", 1, 0.5, 9)

        assert reply == [1, b"8", 1]
        assert decode_state(await store.get("key")).used == [1.0]

    @pytest.mark.asyncio
    async def test_set_without_expiry(self, store):
        await store.set("key", b"value")
        assert await store.ttl("key") == -1

    @pytest.mark.asyncio
    async def test_delete_counts_removed_keys(self, store):
        await store.set("a", b"1")
        assert await store.delete("a", "b") == 1

    @pytest.mark.asyncio
    async def test_time_splits_seconds(self, store, clock):
        clock.now = 12.125
        assert await store.time() == (12, 125000)
