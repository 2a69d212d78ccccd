"""Pytest fixtures for blackjack table tests."""

from random import Random

import pytest
import pytest_asyncio

import api.advice as advice_module
from api.session import InMemorySessionStore, set_session_store
from api.storage import InMemoryBalanceStore, InMemoryHistoryStore, set_stores
from blackjack.cards import InfiniteDeck
from blackjack.game import BlackjackRound
from blackjack.rules import TableRules

from table_helpers import make_hand


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return Random(42)


@pytest.fixture
def deck(rng):
    return InfiniteDeck(rng=rng)


@pytest.fixture
def empty_hand():
    """An empty player hand."""
    return make_hand("")


@pytest.fixture
def blackjack_hand():
    """A natural blackjack hand."""
    return make_hand("AS KH")


@pytest.fixture
def soft_17_hand():
    """A soft 17 hand (A-6)."""
    return make_hand("AS 6H")


@pytest.fixture
def hard_16_hand():
    """A hard 16 hand (10-6)."""
    return make_hand("10S 6H")


@pytest.fixture
def bust_hand():
    """A busted hand."""
    return make_hand("10S 6H KC")


@pytest.fixture
def rules():
    """Default table rules."""
    return TableRules()


@pytest.fixture
def game_round(rng):
    """A new round with 100 chips and a seeded infinite deck."""
    return BlackjackRound(balance=100, rng=rng)


@pytest.fixture
def balance_store():
    return InMemoryBalanceStore(starting_chips=1000)


@pytest.fixture
def history_store():
    return InMemoryHistoryStore(limit=50)


@pytest_asyncio.fixture
async def memory_stores(balance_store, history_store):
    """Install in-memory session, balance and history stores for the app."""
    set_session_store(InMemorySessionStore())
    set_stores(balance_store, history_store)
    yield balance_store, history_store
    set_session_store(None)
    set_stores(None, None)
    advice_module.set_advisor(None)
