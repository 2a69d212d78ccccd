"""Per-session table: the live round, its persistence and its settlement."""

import logging
from dataclasses import dataclass
from typing import Any

from api.ledger import Settlement, settle_round
from api.session import (
    SESSION_KEY_ROUND,
    SESSION_KEY_SETTLED,
    SESSION_KEY_USER,
    load_session,
    load_session_data,
    save_session,
    session_lock,
)
from api.storage import (
    StorageError,
    deserialize_card,
    get_balance_store,
    get_history_store,
    serialize_card,
)
from blackjack.cards import InfiniteDeck
from blackjack.game import (
    BlackjackRound,
    GameError,
    GameEvent,
    InvalidAction,
    RoundResult,
    RoundState,
)
from blackjack.rules import TableRules
from config import config

logger = logging.getLogger(__name__)

RULES = TableRules.from_config(config.game)


def make_deck() -> InfiniteDeck:
    """Card source for every round dealt or resumed by this process."""
    return InfiniteDeck()


def serialize_round(round_: BlackjackRound) -> dict[str, Any]:
    """Serialize a round for session storage."""
    return {
        "state": round_.state.name,
        "balance": round_.balance,
        "bet": round_.bet,
        "player_cards": [serialize_card(c) for c in round_.player_hand.cards],
        "dealer_cards": [serialize_card(c) for c in round_.dealer_hand.cards],
        "result": round_.result.name,
        "payout_delta": round_.payout_delta,
        "message": round_.message,
        "rules": {
            "dealer_stands_on": round_.rules.dealer_stands_on,
            "blackjack_payout": list(round_.rules.blackjack_payout),
        },
    }


def deserialize_round(data: dict[str, Any]) -> BlackjackRound:
    """Restore a round from session data."""
    rules_data = data["rules"]
    rules = TableRules(
        dealer_stands_on=rules_data["dealer_stands_on"],
        blackjack_payout=tuple(rules_data["blackjack_payout"]),
    )
    return BlackjackRound.restore(
        balance=data["balance"],
        state=RoundState[data["state"]],
        bet=data["bet"],
        player_cards=[deserialize_card(c) for c in data["player_cards"]],
        dealer_cards=[deserialize_card(c) for c in data["dealer_cards"]],
        result=RoundResult[data["result"]],
        payout_delta=data["payout_delta"],
        message=data["message"],
        rules=rules,
        deck=make_deck(),
    )


@dataclass
class Table:
    """A loaded session plus its round (None until the first bet)."""

    session_id: str
    data: dict[str, Any]
    round: BlackjackRound | None = None
    settlement: Settlement | None = None

    @property
    def user_id(self) -> str:
        return self.data[SESSION_KEY_USER]

    @property
    def settled(self) -> bool:
        return bool(self.data.get(SESSION_KEY_SETTLED))

    @property
    def warnings(self) -> list[str]:
        return self.settlement.warnings if self.settlement else []

    def new_events(self) -> list[GameEvent]:
        """Round events recorded since the table was loaded."""
        if self.round is None:
            return []
        return self.round.events.history


async def open_table(token: str) -> Table:
    """
    Load the table behind a session token.

    Raises:
        SessionNotFound: the token is invalid or the session expired
    """
    session_id, data = await load_session(token)
    table = Table(session_id=session_id, data=data)
    _load_round(table)
    return table


def _load_round(table: Table) -> None:
    data = table.data.get(SESSION_KEY_ROUND)
    table.round = deserialize_round(data) if data else None


async def _reload(table: Table) -> None:
    """Re-read the session; only ever called while its lock is held."""
    table.data = await load_session_data(table.session_id)
    _load_round(table)


async def save_table(table: Table) -> None:
    table.data[SESSION_KEY_ROUND] = serialize_round(table.round) if table.round else None
    await save_session(table.session_id, table.data)


async def current_balance(table: Table) -> int:
    """Balance to display: the settled figure if we just settled, else the store's."""
    if table.settlement is not None:
        return table.settlement.balance
    store = await get_balance_store()
    return await store.read(table.user_id)


async def place_bet(table: Table, amount: int) -> BlackjackRound:
    """
    Start a fresh round when none is live, then bet on it.

    A player holds at most one live round across all of their sessions, so
    the balance read here is not backing any other open bet.

    Raises:
        InvalidBet: amount is not positive or exceeds the balance
        InvalidAction: a round is already in progress here or at another table
        StorageError: the balance could not be read
        SessionBusy: another request on this session did not finish in time
    """
    async with session_lock(table.session_id):
        await _reload(table)
        if table.round is not None and table.round.state == RoundState.PLAYER_TURN:
            raise InvalidAction("A bet has already been placed this round")

        store = await get_balance_store()
        if not await store.claim_round(table.user_id, table.session_id):
            raise InvalidAction("You already have a round in progress at another table")

        try:
            balance = await store.read(table.user_id)
            round_ = BlackjackRound(balance=balance, rules=RULES, deck=make_deck())
            round_.place_bet(amount)
        except (GameError, StorageError):
            await store.release_round(table.user_id, table.session_id)
            raise

        table.round = round_
        table.data[SESSION_KEY_SETTLED] = False
        await _finish(table)
    return table.round


async def player_action(table: Table, action: str) -> BlackjackRound:
    """
    Apply a hit or stand to the live round.

    Raises:
        InvalidAction: no round is in progress
        SessionBusy: another request on this session did not finish in time
    """
    async with session_lock(table.session_id):
        await _reload(table)
        if table.round is None:
            raise InvalidAction(f"Cannot {action} now: place a bet first")

        actions = {
            "hit": table.round.hit,
            "stand": table.round.stand,
        }
        action_fn = actions.get(action)
        if action_fn is None:
            raise InvalidAction(f"Unknown action: {action}")

        action_fn()
        await _finish(table)
    return table.round


async def reset_table(table: Table) -> None:
    """
    Drop the current round.

    A live round abandoned here is never settled: no chips move.
    """
    async with session_lock(table.session_id):
        await _reload(table)
        if table.round is not None and table.round.state == RoundState.PLAYER_TURN:
            logger.info(
                "user %s abandoned a round with %d chips bet", table.user_id, table.round.bet
            )
            store = await get_balance_store()
            await store.release_round(table.user_id, table.session_id)
        table.round = None
        table.data[SESSION_KEY_SETTLED] = False
        await save_table(table)


async def _finish(table: Table) -> None:
    """Persist the round, then settle it once it is resolved. Caller holds the session lock."""
    await save_table(table)

    if table.round.state != RoundState.RESOLVED or table.settled:
        return

    # Settled is persisted before any chips move
    table.data[SESSION_KEY_SETTLED] = True
    await save_table(table)

    balance_store = await get_balance_store()
    table.settlement = await settle_round(
        table.round,
        table.user_id,
        balance_store,
        await get_history_store(),
    )
    await balance_store.release_round(table.user_id, table.session_id)
