"""Table sessions: signed tokens over a Redis store with in-memory fallback."""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Any, AsyncContextManager, AsyncIterator
from uuid import uuid4

import redis.asyncio as redis
from redis.exceptions import LockError, RedisError
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from config import config

logger = logging.getLogger(__name__)

SESSION_KEY_USER = "user_id"
SESSION_KEY_ROUND = "round"
SESSION_KEY_SETTLED = "settled"
SESSION_KEY_CREATED_AT = "created_at"
SESSION_KEY_LAST_ACTIVITY = "last_activity"


class SessionNotFound(Exception):
    """Session token is malformed, forged, expired or unknown."""


class SessionBusy(Exception):
    """Another request is still acting on the same session."""


class SessionSigner:
    """Sign and verify session IDs using itsdangerous."""

    def __init__(self, secret_key: str | None = None) -> None:
        self._serializer = URLSafeTimedSerializer(
            secret_key or config.security.secret_key,
            salt="blackjack-table-session",
        )

    def sign(self, session_id: str) -> str:
        """Create a signed token from a session ID."""
        return self._serializer.dumps(session_id)

    def unsign(self, token: str, max_age: int | None = None) -> str | None:
        """
        Verify and extract session_id from a signed token.

        Args:
            token: The signed token to verify
            max_age: Maximum age in seconds (defaults to session_ttl)

        Returns:
            The session ID if valid, None otherwise
        """
        try:
            return self._serializer.loads(token, max_age=max_age or config.session_ttl)
        except (BadSignature, SignatureExpired):
            return None


_session_signer: SessionSigner | None = None


def get_session_signer() -> SessionSigner:
    """Get or create the session signer."""
    global _session_signer
    if _session_signer is None:
        _session_signer = SessionSigner()
    return _session_signer


class SessionStore(ABC):
    """Abstract session store keyed by raw (unsigned) session IDs."""

    @abstractmethod
    async def get(self, session_id: str) -> dict[str, Any] | None:
        ...

    @abstractmethod
    async def set(self, session_id: str, data: dict[str, Any], ttl: int | None = None) -> None:
        ...

    @abstractmethod
    async def delete(self, session_id: str) -> None:
        ...

    @abstractmethod
    def lock(self, session_id: str) -> AsyncContextManager[None]:
        """
        Hold the session exclusively for one load, act, save cycle.

        Raises:
            SessionBusy: the lock could not be taken in time
        """
        ...

    async def exists(self, session_id: str) -> bool:
        return await self.get(session_id) is not None


class InMemorySessionStore(SessionStore):
    """In-memory session store for local development and tests."""

    def __init__(self) -> None:
        self._sessions: dict[str, tuple[dict[str, Any], datetime]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    async def get(self, session_id: str) -> dict[str, Any] | None:
        entry = self._sessions.get(session_id)
        if entry is None:
            return None

        data, expiry = entry
        if expiry < datetime.now():
            await self.delete(session_id)
            return None
        return data

    async def set(self, session_id: str, data: dict[str, Any], ttl: int | None = None) -> None:
        expiry = datetime.now() + timedelta(seconds=ttl or config.session_ttl)
        self._sessions[session_id] = (data, expiry)

    async def delete(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        self._locks.pop(session_id, None)

    @asynccontextmanager
    async def lock(self, session_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        try:
            await asyncio.wait_for(lock.acquire(), config.persistence.lock_wait)
        except asyncio.TimeoutError as exc:
            raise SessionBusy("Another action on this table is still running") from exc
        try:
            yield
        finally:
            lock.release()


class RedisSessionStore(SessionStore):
    """Redis-backed session store."""

    def __init__(self, redis_client: redis.Redis, prefix: str = "blackjack:session:") -> None:
        self._redis = redis_client
        self._prefix = prefix

    def _key(self, session_id: str) -> str:
        return f"{self._prefix}{session_id}"

    async def get(self, session_id: str) -> dict[str, Any] | None:
        data = await self._redis.get(self._key(session_id))
        if data is None:
            return None
        return json.loads(data)

    async def set(self, session_id: str, data: dict[str, Any], ttl: int | None = None) -> None:
        await self._redis.setex(self._key(session_id), ttl or config.session_ttl, json.dumps(data))

    async def delete(self, session_id: str) -> None:
        await self._redis.delete(self._key(session_id))

    async def exists(self, session_id: str) -> bool:
        return await self._redis.exists(self._key(session_id)) > 0

    @asynccontextmanager
    async def lock(self, session_id: str) -> AsyncIterator[None]:
        lock = self._redis.lock(
            f"{self._key(session_id)}:lock",
            timeout=config.persistence.lock_timeout,
            blocking_timeout=config.persistence.lock_wait,
        )
        if not await lock.acquire():
            raise SessionBusy("Another action on this table is still running")
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                logger.warning("session lock for %s expired before release", session_id)


async def connect_redis() -> redis.Redis | None:
    """Return a live Redis client, or None when the server can't be reached."""
    client = redis.from_url(config.redis.url)
    try:
        await client.ping()
    except (RedisError, OSError) as exc:
        logger.warning("Redis unavailable at %s (%s); using in-memory stores", config.redis.url, exc)
        await client.aclose()
        return None
    return client


_redis_client: redis.Redis | None = None
_redis_checked = False
_redis_lock = asyncio.Lock()


async def get_redis() -> redis.Redis | None:
    """The process-wide Redis client, or None when running on in-memory stores."""
    global _redis_client, _redis_checked
    async with _redis_lock:
        if not _redis_checked:
            _redis_client = await connect_redis()
            _redis_checked = True
    return _redis_client


async def close_redis() -> None:
    """Close the shared client; the next store lookup connects to Redis again."""
    global _redis_client, _redis_checked
    async with _redis_lock:
        if _redis_client is not None:
            await _redis_client.aclose()
        _redis_client = None
        _redis_checked = False


_session_store: SessionStore | None = None


async def get_session_store() -> SessionStore:
    """Get or create the session store."""
    global _session_store

    if _session_store is None:
        client = await get_redis()
        if _session_store is None:
            _session_store = RedisSessionStore(client) if client else InMemorySessionStore()
    return _session_store


def set_session_store(store: SessionStore | None) -> None:
    """Replace the global session store (None rebuilds it on next use)."""
    global _session_store
    _session_store = store


async def create_session(user_id: str) -> str:
    """Create a session bound to a player and return its signed token."""
    store = await get_session_store()
    session_id = str(uuid4())
    now = int(datetime.now().timestamp())
    await store.set(
        session_id,
        {
            SESSION_KEY_USER: user_id,
            SESSION_KEY_ROUND: None,
            SESSION_KEY_SETTLED: False,
            SESSION_KEY_CREATED_AT: now,
            SESSION_KEY_LAST_ACTIVITY: now,
        },
    )
    logger.info("session created for user %s", user_id)
    return get_session_signer().sign(session_id)


def extract_session_id(token: str) -> str | None:
    """Extract the raw session ID from a signed token."""
    return get_session_signer().unsign(token)


async def load_session(token: str) -> tuple[str, dict[str, Any]]:
    """
    Resolve a signed token to its session.

    Raises:
        SessionNotFound: the token doesn't verify or the session is gone
    """
    session_id = extract_session_id(token)
    if session_id is None:
        raise SessionNotFound("Invalid or expired session")
    return session_id, await load_session_data(session_id)


async def load_session_data(session_id: str) -> dict[str, Any]:
    """
    Read a session by its raw ID.

    Raises:
        SessionNotFound: the session expired or never existed
    """
    store = await get_session_store()
    data = await store.get(session_id)
    if data is None:
        raise SessionNotFound("Session not found")
    return data


@asynccontextmanager
async def session_lock(session_id: str) -> AsyncIterator[None]:
    """Serialize load, act and save on one session."""
    store = await get_session_store()
    async with store.lock(session_id):
        yield


async def save_session(session_id: str, data: dict[str, Any]) -> None:
    """Persist session data and bump its activity time."""
    store = await get_session_store()
    data[SESSION_KEY_LAST_ACTIVITY] = int(datetime.now().timestamp())
    await store.set(session_id, data)
