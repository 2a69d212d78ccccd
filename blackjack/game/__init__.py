"""Round engine and state management."""

from blackjack.game.errors import GameError, InvalidAction, InvalidBet
from blackjack.game.events import GameEvent, EventType
from blackjack.game.state import RoundResult, RoundState
from blackjack.game.engine import AdviceRequest, BlackjackRound, HistoryEntry, RoundSnapshot

__all__ = [
    "GameError",
    "InvalidAction",
    "InvalidBet",
    "GameEvent",
    "EventType",
    "RoundResult",
    "RoundState",
    "AdviceRequest",
    "BlackjackRound",
    "HistoryEntry",
    "RoundSnapshot",
]
