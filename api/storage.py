"""Chip balance and round history stores."""

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any

import redis.asyncio as redis
from redis.exceptions import RedisError

from api.session import get_redis
from blackjack.cards import Card, Rank, Suit
from blackjack.game import HistoryEntry, RoundResult
from config import config

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """A store could not be read."""


def serialize_card(card: Card) -> dict[str, Any]:
    """Serialize a card to a dict."""
    return {"rank": card.rank.value, "suit": card.suit.value, "id": card.id}


def deserialize_card(data: dict[str, Any]) -> Card:
    """Deserialize a card from a dict."""
    if "id" in data:
        return Card(Rank(data["rank"]), Suit(data["suit"]), id=data["id"])
    return Card(Rank(data["rank"]), Suit(data["suit"]))


def serialize_entry(entry: HistoryEntry) -> dict[str, Any]:
    return {
        "player_hand": [serialize_card(c) for c in entry.player_hand],
        "dealer_hand": [serialize_card(c) for c in entry.dealer_hand],
        "result": entry.result.name,
        "bet": entry.bet,
        "payout_delta": entry.payout_delta,
        "timestamp": entry.timestamp.isoformat(),
    }


def deserialize_entry(data: dict[str, Any]) -> HistoryEntry:
    return HistoryEntry(
        player_hand=tuple(deserialize_card(c) for c in data["player_hand"]),
        dealer_hand=tuple(deserialize_card(c) for c in data["dealer_hand"]),
        result=RoundResult[data["result"]],
        bet=data["bet"],
        payout_delta=data.get("payout_delta", 0),
        timestamp=datetime.fromisoformat(data["timestamp"]),
    )


class BalanceStore(ABC):
    """
    Per-player chip balance. Players never seen before hold ``starting_chips``.

    The store also records which session holds the player's live round, so
    one balance never backs two open bets.
    """

    def __init__(self, starting_chips: int | None = None) -> None:
        self.starting_chips = (
            config.game.starting_chips if starting_chips is None else starting_chips
        )

    @abstractmethod
    async def read(self, user_id: str) -> int:
        """
        Return the player's chips.

        Raises:
            StorageError: the backing store is unreachable
        """
        ...

    @abstractmethod
    async def write(self, user_id: str, chips: int) -> bool:
        """Store a new balance; False when the write did not happen."""
        ...

    @abstractmethod
    async def claim_round(self, user_id: str, session_id: str) -> bool:
        """
        Record ``session_id`` as holding the player's only live round.

        Returns False when another session already holds one.

        Raises:
            StorageError: the backing store is unreachable
        """
        ...

    @abstractmethod
    async def release_round(self, user_id: str, session_id: str) -> None:
        """Drop the claim if ``session_id`` still holds it."""
        ...


class HistoryStore(ABC):
    """Per-player archive of resolved rounds, most recent first."""

    def __init__(self, limit: int | None = None) -> None:
        self.limit = config.game.history_limit if limit is None else limit

    @abstractmethod
    async def append(self, user_id: str, entry: HistoryEntry) -> bool:
        ...

    @abstractmethod
    async def list(self, user_id: str, limit: int | None = None) -> list[HistoryEntry]:
        """
        Return entries newest first.

        Raises:
            StorageError: the backing store is unreachable
        """
        ...


class InMemoryBalanceStore(BalanceStore):
    def __init__(self, starting_chips: int | None = None) -> None:
        super().__init__(starting_chips)
        self._chips: dict[str, int] = {}
        self._live: dict[str, tuple[str, datetime]] = {}

    async def read(self, user_id: str) -> int:
        return self._chips.get(user_id, self.starting_chips)

    async def write(self, user_id: str, chips: int) -> bool:
        if chips < 0:
            raise ValueError("Balance cannot be negative")
        self._chips[user_id] = chips
        return True

    async def claim_round(self, user_id: str, session_id: str) -> bool:
        now = datetime.now()
        holder = self._live.get(user_id)
        if holder is not None and holder[0] != session_id and holder[1] > now:
            return False
        self._live[user_id] = (session_id, now + timedelta(seconds=config.session_ttl))
        return True

    async def release_round(self, user_id: str, session_id: str) -> None:
        holder = self._live.get(user_id)
        if holder is not None and holder[0] == session_id:
            del self._live[user_id]


class InMemoryHistoryStore(HistoryStore):
    def __init__(self, limit: int | None = None) -> None:
        super().__init__(limit)
        self._entries: dict[str, list[HistoryEntry]] = {}

    async def append(self, user_id: str, entry: HistoryEntry) -> bool:
        entries = self._entries.setdefault(user_id, [])
        entries.insert(0, entry)
        del entries[self.limit:]
        return True

    async def list(self, user_id: str, limit: int | None = None) -> list[HistoryEntry]:
        entries = self._entries.get(user_id, [])
        return entries[: limit or self.limit]


# Deletes KEYS[1] only while it still names ARGV[1]
_RELEASE_IF_HOLDER = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class RedisBalanceStore(BalanceStore):
    """Balances as plain integer keys."""

    def __init__(
        self,
        redis_client: redis.Redis,
        starting_chips: int | None = None,
        prefix: str = "blackjack:chips:",
        live_prefix: str = "blackjack:live:",
    ) -> None:
        super().__init__(starting_chips)
        self._redis = redis_client
        self._prefix = prefix
        self._live_prefix = live_prefix

    async def read(self, user_id: str) -> int:
        try:
            value = await self._redis.get(f"{self._prefix}{user_id}")
        except RedisError as exc:
            raise StorageError(f"Could not read chips for {user_id}") from exc
        return self.starting_chips if value is None else int(value)

    async def write(self, user_id: str, chips: int) -> bool:
        if chips < 0:
            raise ValueError("Balance cannot be negative")
        try:
            await self._redis.set(f"{self._prefix}{user_id}", chips)
        except RedisError as exc:
            logger.warning("chip write failed for %s: %s", user_id, exc)
            return False
        return True

    async def claim_round(self, user_id: str, session_id: str) -> bool:
        key = f"{self._live_prefix}{user_id}"
        try:
            if await self._redis.set(key, session_id, nx=True, ex=config.session_ttl):
                return True
            holder = await self._redis.get(key)
        except RedisError as exc:
            raise StorageError(f"Could not check the live round for {user_id}") from exc
        return holder is not None and holder.decode() == session_id

    async def release_round(self, user_id: str, session_id: str) -> None:
        try:
            await self._redis.eval(_RELEASE_IF_HOLDER, 1, f"{self._live_prefix}{user_id}", session_id)
        except RedisError as exc:
            logger.warning("live round release failed for %s: %s", user_id, exc)


class RedisHistoryStore(HistoryStore):
    """History as a capped Redis list, newest at the head."""

    def __init__(
        self,
        redis_client: redis.Redis,
        limit: int | None = None,
        prefix: str = "blackjack:history:",
    ) -> None:
        super().__init__(limit)
        self._redis = redis_client
        self._prefix = prefix

    async def append(self, user_id: str, entry: HistoryEntry) -> bool:
        key = f"{self._prefix}{user_id}"
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.lpush(key, json.dumps(serialize_entry(entry)))
                pipe.ltrim(key, 0, self.limit - 1)
                await pipe.execute()
        except RedisError as exc:
            logger.warning("history append failed for %s: %s", user_id, exc)
            return False
        return True

    async def list(self, user_id: str, limit: int | None = None) -> list[HistoryEntry]:
        try:
            raw = await self._redis.lrange(f"{self._prefix}{user_id}", 0, (limit or self.limit) - 1)
        except RedisError as exc:
            raise StorageError(f"Could not read history for {user_id}") from exc
        return [deserialize_entry(json.loads(item)) for item in raw]


_balance_store: BalanceStore | None = None
_history_store: HistoryStore | None = None


async def get_balance_store() -> BalanceStore:
    """Get or create the balance store."""
    global _balance_store
    if _balance_store is None:
        client = await get_redis()
        if _balance_store is None:
            _balance_store = RedisBalanceStore(client) if client else InMemoryBalanceStore()
    return _balance_store


async def get_history_store() -> HistoryStore:
    """Get or create the history store."""
    global _history_store
    if _history_store is None:
        client = await get_redis()
        if _history_store is None:
            _history_store = RedisHistoryStore(client) if client else InMemoryHistoryStore()
    return _history_store


def set_stores(balance: BalanceStore | None, history: HistoryStore | None) -> None:
    """Replace the global stores (None rebuilds them on next use)."""
    global _balance_store, _history_store
    _balance_store = balance
    _history_store = history
