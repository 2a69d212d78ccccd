"""
Display timing for rounds that have already been decided.

The round computes its outcome eagerly. This module only decides when a
renderer should show each already-known card and result, and which dealer
cards are face up. Nothing here touches the round.
"""

from dataclasses import dataclass
from typing import Iterable, Sequence

from blackjack.cards import Card
from blackjack.game.events import EventType, GameEvent
from blackjack.game.state import RoundState


@dataclass(frozen=True)
class PlaybackTiming:
    """Delays in milliseconds."""

    first_card: int = 100
    between_deal_cards: int = 200
    player_hit: int = 0
    dealer_draw: int = 1000
    result: int = 500


@dataclass(frozen=True)
class PlaybackFrame:
    """An event scheduled ``at_ms`` after playback starts."""

    at_ms: int
    event: GameEvent


# Events the renderer has nothing to animate for
_SILENT = {
    EventType.INVALID_ACTION,
    EventType.INSUFFICIENT_FUNDS,
}

_RESULT_EVENTS = {
    EventType.PLAYER_WINS,
    EventType.PLAYER_LOSES,
    EventType.PUSH,
    EventType.ROUND_ENDED,
}


def build_playback(
    events: Iterable[GameEvent],
    timing: PlaybackTiming | None = None,
) -> list[PlaybackFrame]:
    """
    Schedule a batch of round events for display.

    Opening cards are staggered, each dealer draw waits ``dealer_draw``, and
    the result follows the last card by ``result``. Frames keep the order
    of ``events``.
    """
    timing = timing or PlaybackTiming()
    frames: list[PlaybackFrame] = []
    clock = 0
    deal_start = 0
    dealt = 0
    dealing = False
    dealer_turn = False
    result_shown = False

    for event in events:
        kind = event.event_type
        if kind in _SILENT:
            continue

        if kind == EventType.BET_PLACED:
            dealing = True
            deal_start = clock
            dealt = 0
        elif kind == EventType.ROUND_STARTED:
            dealing = False
        elif kind in (EventType.PLAYER_STAND, EventType.DEALER_REVEALS):
            dealer_turn = True
        elif kind == EventType.CARD_DEALT:
            if dealing:
                clock = deal_start + timing.first_card + dealt * timing.between_deal_cards
                dealt += 1
            elif dealer_turn:
                clock += timing.dealer_draw
            else:
                clock += timing.player_hit
        elif kind in _RESULT_EVENTS and not result_shown:
            clock += timing.result
            result_shown = True

        frames.append(PlaybackFrame(at_ms=clock, event=event))

    return frames


def visible_dealer_cards(state: RoundState, dealer_cards: Sequence[Card]) -> tuple[Card, ...]:
    """
    Dealer cards a player may see.

    Only the first card is face up while the player is deciding; everything
    is face up once the dealer starts playing. The internal hand is never
    hidden, this is purely a rendering rule.
    """
    if state == RoundState.PLAYER_TURN:
        return tuple(dealer_cards[:1])
    return tuple(dealer_cards)


def hidden_card_count(state: RoundState) -> int:
    """Face-down placeholders to draw next to the dealer's visible cards."""
    return 1 if state == RoundState.PLAYER_TURN else 0
