"""Tests for table session management."""

import asyncio
import time
from unittest.mock import patch

import pytest
import pytest_asyncio
from redis.exceptions import ConnectionError as RedisConnectionError

import api.session as session_module
from api.session import (
    SESSION_KEY_ROUND,
    SESSION_KEY_SETTLED,
    SESSION_KEY_USER,
    InMemorySessionStore,
    RedisSessionStore,
    SessionNotFound,
    SessionSigner,
    close_redis,
    connect_redis,
    create_session,
    extract_session_id,
    get_redis,
    get_session_signer,
    get_session_store,
    load_session,
    save_session,
    set_session_store,
)
from api.storage import (
    InMemoryBalanceStore,
    InMemoryHistoryStore,
    get_balance_store,
    get_history_store,
    set_stores,
)


class TestSessionSigner:
    """Tests for SessionSigner class."""

    def test_round_trip(self):
        signer = SessionSigner(secret_key="test-secret")
        token = signer.sign("session-123")

        assert token != "session-123"
        assert signer.unsign(token, max_age=3600) == "session-123"

    def test_garbage_token_returns_none(self):
        signer = SessionSigner(secret_key="test-secret")
        assert signer.unsign("not-a-token", max_age=3600) is None

    def test_wrong_secret_returns_none(self):
        token = SessionSigner(secret_key="one").sign("session")
        assert SessionSigner(secret_key="two").unsign(token, max_age=3600) is None

    def test_expired_token_returns_none(self):
        signer = SessionSigner(secret_key="test-secret")
        token = signer.sign("session")
        later = time.time() + 7200

        with patch("time.time", return_value=later):
            assert signer.unsign(token, max_age=3600) is None

    def test_signer_is_shared(self):
        session_module._session_signer = None
        assert get_session_signer() is get_session_signer()


class TestInMemorySessionStore:
    """Tests for InMemorySessionStore class."""

    @pytest_asyncio.fixture
    async def store(self):
        return InMemorySessionStore()

    @pytest.mark.asyncio
    async def test_set_and_get(self, store):
        await store.set("s1", {SESSION_KEY_USER: "alice"}, ttl=3600)
        assert await store.get("s1") == {SESSION_KEY_USER: "alice"}
        assert await store.exists("s1") is True

    @pytest.mark.asyncio
    async def test_missing_session(self, store):
        assert await store.get("missing") is None
        assert await store.exists("missing") is False

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, store):
        await store.set("s1", {}, ttl=3600)
        await store.delete("s1")
        await store.delete("s1")
        assert await store.get("s1") is None

    @pytest.mark.asyncio
    async def test_expired_sessions(self, store):
        await store.set("short", {}, ttl=1)
        await store.set("long", {}, ttl=3600)

        time.sleep(1.2)

        assert await store.get("short") is None
        assert await store.exists("long") is True

    @pytest.mark.asyncio
    async def test_lock_serializes_holders(self, store):
        order = []

        async def hold(name):
            async with store.lock("s1"):
                order.append(f"{name} in")
                await asyncio.sleep(0.01)
                order.append(f"{name} out")

        await asyncio.gather(hold("a"), hold("b"))

        assert order == ["a in", "a out", "b in", "b out"]

    @pytest.mark.asyncio
    async def test_locks_are_per_session(self, store):
        async with store.lock("s1"):
            async with store.lock("s2"):
                pass


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the session store."""

    def __init__(self):
        self.values = {}
        self.ttls = {}

    async def get(self, key):
        return self.values.get(key)

    async def setex(self, key, ttl, value):
        self.values[key] = value
        self.ttls[key] = ttl

    async def delete(self, key):
        self.values.pop(key, None)

    async def exists(self, key):
        return int(key in self.values)


class TestRedisSessionStore:
    @pytest.mark.asyncio
    async def test_values_are_json_under_prefix(self):
        client = FakeRedis()
        store = RedisSessionStore(client)

        await store.set("abc", {SESSION_KEY_USER: "bob"}, ttl=60)

        assert client.values["blackjack:session:abc"] == '{"user_id": "bob"}'
        assert client.ttls["blackjack:session:abc"] == 60
        assert await store.get("abc") == {SESSION_KEY_USER: "bob"}
        assert await store.exists("abc") is True

        await store.delete("abc")
        assert await store.exists("abc") is False

    @pytest.mark.asyncio
    async def test_unreachable_server_falls_back(self):
        class DeadRedis:
            closed = False

            async def ping(self):
                raise RedisConnectionError("connection refused")

            async def aclose(self):
                self.closed = True

        client = DeadRedis()
        with patch("api.session.redis.from_url", return_value=client):
            assert await connect_redis() is None
        assert client.closed is True


class TestSharedClient:
    @pytest.mark.asyncio
    async def test_stores_share_one_connection_attempt(self, monkeypatch):
        calls = []

        async def fake_connect():
            calls.append(1)
            await asyncio.sleep(0)
            return None

        monkeypatch.setattr(session_module, "connect_redis", fake_connect)
        monkeypatch.setattr(session_module, "_redis_client", None)
        monkeypatch.setattr(session_module, "_redis_checked", False)
        monkeypatch.setattr(session_module, "_redis_lock", asyncio.Lock())
        set_session_store(None)
        set_stores(None, None)

        try:
            stores = await asyncio.gather(
                get_session_store(),
                get_session_store(),
                get_balance_store(),
                get_history_store(),
            )
            assert len(calls) == 1
            assert stores[0] is stores[1]
            assert isinstance(stores[0], InMemorySessionStore)
            assert isinstance(stores[2], InMemoryBalanceStore)
            assert isinstance(stores[3], InMemoryHistoryStore)
        finally:
            set_session_store(None)
            set_stores(None, None)
            await close_redis()

    @pytest.mark.asyncio
    async def test_close_allows_a_new_connection_attempt(self, monkeypatch):
        calls = []

        async def fake_connect():
            calls.append(1)
            return None

        monkeypatch.setattr(session_module, "connect_redis", fake_connect)
        monkeypatch.setattr(session_module, "_redis_checked", False)
        monkeypatch.setattr(session_module, "_redis_lock", asyncio.Lock())

        await get_redis()
        await get_redis()
        await close_redis()
        await get_redis()
        await close_redis()

        assert len(calls) == 2


class TestSessionLifecycle:
    @pytest.mark.asyncio
    async def test_create_and_load(self, memory_stores):
        token = await create_session("alice")

        session_id, data = await load_session(token)

        assert extract_session_id(token) == session_id
        assert data[SESSION_KEY_USER] == "alice"
        assert data[SESSION_KEY_ROUND] is None
        assert data[SESSION_KEY_SETTLED] is False

    @pytest.mark.asyncio
    async def test_save_updates_data(self, memory_stores):
        token = await create_session("alice")
        session_id, data = await load_session(token)

        data[SESSION_KEY_SETTLED] = True
        await save_session(session_id, data)

        _, reloaded = await load_session(token)
        assert reloaded[SESSION_KEY_SETTLED] is True

    @pytest.mark.asyncio
    async def test_forged_token(self, memory_stores):
        with pytest.raises(SessionNotFound):
            await load_session("forged-token")

    @pytest.mark.asyncio
    async def test_unknown_session(self, memory_stores):
        token = get_session_signer().sign("never-created")
        with pytest.raises(SessionNotFound):
            await load_session(token)
