"""Blackjack round engine with state machine."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from random import Random
from typing import Callable

from transitions import Machine

from blackjack.cards import Card, InfiniteDeck
from blackjack.hand import Hand, compare_hands
from blackjack.rules import TableRules
from blackjack.game.errors import GameError, InvalidAction, InvalidBet
from blackjack.game.events import EventEmitter, EventType, GameEvent
from blackjack.game.state import RoundResult, RoundState

logger = logging.getLogger(__name__)

MSG_PLACE_BET = "Place your bet to start!"
MSG_HIT_OR_STAND = "Hit or Stand?"


@dataclass(frozen=True)
class AdviceRequest:
    """What an advisor gets to see while the player is deciding."""

    player_hand: tuple[Card, ...]
    dealer_card: Card
    player_value: int


@dataclass(frozen=True)
class HistoryEntry:
    """Archived record of one resolved round."""

    player_hand: tuple[Card, ...]
    dealer_hand: tuple[Card, ...]
    result: RoundResult
    bet: int
    payout_delta: int
    timestamp: datetime


@dataclass(frozen=True)
class RoundSnapshot:
    """
    Everything a presentation layer needs to draw the table.

    ``dealer_hand`` is the complete internal hand; hiding cards is up to the
    renderer (see ``blackjack.game.playback.visible_dealer_cards``).
    """

    state: RoundState
    message: str
    bet: int
    player_hand: tuple[Card, ...]
    dealer_hand: tuple[Card, ...]
    player_value: int
    dealer_value: int
    result: RoundResult
    payout_delta: int | None


class BlackjackRound:
    """
    One round of blackjack against an automated dealer.

    The round is driven through ``place_bet``, ``hit`` and ``stand``. Every
    call runs to completion before returning, including the dealer's whole
    turn inside ``stand``. Rejected calls raise ``InvalidBet`` or
    ``InvalidAction`` and leave the round untouched.

    The round never changes a balance. Once resolved, ``payout_delta`` is the
    signed chip change the caller should apply.
    """

    # State machine states
    STATES = [s.name.lower() for s in RoundState]

    # State machine transitions
    TRANSITIONS = [
        {"trigger": "start_player_turn", "source": "betting", "dest": "player_turn"},
        {"trigger": "resolve_natural", "source": "betting", "dest": "resolved"},
        {"trigger": "player_action", "source": "player_turn", "dest": "player_turn"},
        {"trigger": "resolve_bust", "source": "player_turn", "dest": "resolved"},
        {"trigger": "start_dealer_turn", "source": "player_turn", "dest": "dealer_turn"},
        {"trigger": "resolve_showdown", "source": "dealer_turn", "dest": "resolved"},
    ]

    def __init__(
        self,
        balance: int,
        rules: TableRules | None = None,
        deck: InfiniteDeck | None = None,
        rng: Random | None = None,
    ) -> None:
        """
        Initialize a new round in the betting state.

        Args:
            balance: Chips available to the player when the bet is placed
            rules: Table rules (uses defaults if not provided)
            deck: Card source; anything with a ``draw() -> Card`` method
            rng: Random number generator for the default infinite deck
        """
        self.rules = rules or TableRules()
        self.deck = deck or InfiniteDeck(rng=rng)
        self.events = EventEmitter()

        self.player_hand = Hand()
        self.dealer_hand = Hand()

        self._balance = balance
        self._bet = 0
        self._result = RoundResult.UNSET
        self._payout_delta: int | None = None
        self._message = MSG_PLACE_BET

        self.machine = Machine(
            model=self,
            states=self.STATES,
            transitions=self.TRANSITIONS,
            initial="betting",
            auto_transitions=False,
            model_attribute="_machine_state",
        )

    @property
    def state(self) -> RoundState:
        """Get current round state as enum."""
        return RoundState[self._machine_state.upper()]  # type: ignore

    @property
    def balance(self) -> int:
        return self._balance

    @property
    def bet(self) -> int:
        return self._bet

    @property
    def result(self) -> RoundResult:
        return self._result

    @property
    def payout_delta(self) -> int | None:
        """Signed chip change, or None until the round is resolved."""
        return self._payout_delta

    @property
    def message(self) -> str:
        return self._message

    @property
    def can_hit(self) -> bool:
        return self.state == RoundState.PLAYER_TURN

    @property
    def can_stand(self) -> bool:
        return self.state == RoundState.PLAYER_TURN

    def subscribe(
        self,
        handler: Callable[[GameEvent], None],
        event_type: EventType | None = None,
    ) -> None:
        """Subscribe to round events."""
        self.events.subscribe(handler, event_type)

    def place_bet(self, amount: int) -> RoundSnapshot:
        """
        Place a bet and deal the opening cards.

        The player gets two cards and the dealer one. A natural resolves the
        round on the spot at the blackjack payout.

        Raises:
            InvalidBet: amount is not positive or exceeds the balance
            InvalidAction: a bet was already placed this round
        """
        if self.state != RoundState.BETTING:
            self._reject(InvalidAction, "A bet has already been placed this round")

        if isinstance(amount, bool) or not isinstance(amount, int):
            self._reject(InvalidBet, "Invalid bet amount! Bet must be a whole number of chips")

        if amount <= 0:
            self._reject(InvalidBet, "Invalid bet amount! Bet must be a positive number of chips")

        if amount > self._balance:
            self._reject(
                InvalidBet,
                f"Invalid bet amount! You only have ${self._balance}",
                event_type=EventType.INSUFFICIENT_FUNDS,
                required=amount,
                available=self._balance,
            )

        self._bet = amount
        self.events.emit_new(EventType.BET_PLACED, amount=amount)
        logger.debug("bet placed: %d of %d chips", amount, self._balance)

        self._deal_card(self.player_hand, "player")
        self._deal_card(self.player_hand, "player")
        self._deal_card(self.dealer_hand, "dealer")
        self.events.emit_new(EventType.ROUND_STARTED)

        if self.player_hand.is_blackjack:
            self.events.emit_new(EventType.PLAYER_BLACKJACK)
            self.resolve_natural()
            won = self.rules.blackjack_win(self._bet)
            self._settle(RoundResult.WIN, won, f"Blackjack! You win ${won}!")
        else:
            self.start_player_turn()
            self._message = MSG_HIT_OR_STAND

        return self.snapshot()

    def hit(self) -> RoundSnapshot:
        """
        Player takes another card.

        Busting resolves the round as a loss without a dealer turn.

        Raises:
            InvalidAction: not the player's turn
        """
        self._require_player_turn("hit")

        self._deal_card(self.player_hand, "player")
        self.events.emit_new(EventType.PLAYER_HIT, hand_value=self.player_hand.value)

        if self.player_hand.is_busted:
            self.events.emit_new(EventType.PLAYER_BUSTS, hand_value=self.player_hand.value)
            self.resolve_bust()
            self._settle(RoundResult.LOSS, -self._bet, f"Bust! You lose ${self._bet}!")
        else:
            self.player_action()
            self._message = MSG_HIT_OR_STAND

        return self.snapshot()

    def stand(self) -> RoundSnapshot:
        """
        Player stands; the dealer plays out and the round resolves.

        Raises:
            InvalidAction: not the player's turn
        """
        self._require_player_turn("stand")

        self.events.emit_new(EventType.PLAYER_STAND, hand_value=self.player_hand.value)
        self.start_dealer_turn()
        self._play_dealer()
        return self.snapshot()

    def advice_request(self) -> AdviceRequest:
        """
        Build the hand snapshot an advisor is consulted with.

        Raises:
            InvalidAction: not the player's turn
        """
        self._require_player_turn("ask for advice")
        return AdviceRequest(
            player_hand=self.player_hand.snapshot(),
            dealer_card=self.dealer_hand.cards[0],
            player_value=self.player_hand.value,
        )

    def history_entry(self, timestamp: datetime | None = None) -> HistoryEntry:
        """
        Archive record for this round.

        Raises:
            InvalidAction: the round is not resolved yet
        """
        if self.state != RoundState.RESOLVED:
            raise InvalidAction("Only a finished round can be archived")
        return HistoryEntry(
            player_hand=self.player_hand.snapshot(),
            dealer_hand=self.dealer_hand.snapshot(),
            result=self._result,
            bet=self._bet,
            payout_delta=self._payout_delta or 0,
            timestamp=timestamp or datetime.now(timezone.utc),
        )

    def snapshot(self) -> RoundSnapshot:
        """Return the current table state."""
        return RoundSnapshot(
            state=self.state,
            message=self._message,
            bet=self._bet,
            player_hand=self.player_hand.snapshot(),
            dealer_hand=self.dealer_hand.snapshot(),
            player_value=self.player_hand.value,
            dealer_value=self.dealer_hand.value,
            result=self._result,
            payout_delta=self._payout_delta,
        )

    @classmethod
    def restore(
        cls,
        *,
        balance: int,
        state: RoundState,
        bet: int,
        player_cards: list[Card],
        dealer_cards: list[Card],
        result: RoundResult = RoundResult.UNSET,
        payout_delta: int | None = None,
        message: str | None = None,
        rules: TableRules | None = None,
        deck: InfiniteDeck | None = None,
    ) -> "BlackjackRound":
        """Rebuild a round from persisted fields."""
        if state == RoundState.DEALER_TURN:
            raise ValueError("A round is never persisted mid dealer turn")

        round_ = cls(balance=balance, rules=rules, deck=deck)
        round_._machine_state = state.name.lower()
        round_._bet = bet
        round_.player_hand = Hand(cards=list(player_cards))
        round_.dealer_hand = Hand(cards=list(dealer_cards))
        round_._result = result
        round_._payout_delta = payout_delta
        if message is not None:
            round_._message = message
        elif state == RoundState.PLAYER_TURN:
            round_._message = MSG_HIT_OR_STAND
        return round_

    def _deal_card(self, hand: Hand, owner: str) -> Card:
        """Deal a card to a hand."""
        card = self.deck.draw()
        hand.add_card(card)
        self.events.emit_new(
            EventType.CARD_DEALT,
            card=str(card),
            card_id=card.id,
            hand=owner,
            hand_value=hand.value,
        )
        return card

    def _play_dealer(self) -> None:
        """Dealer draws until reaching the stand threshold, then the hands are compared."""
        self.events.emit_new(EventType.DEALER_REVEALS, hand_value=self.dealer_hand.value)

        while self.dealer_hand.value < self.rules.dealer_stands_on:
            self._deal_card(self.dealer_hand, "dealer")
            self.events.emit_new(EventType.DEALER_HITS, hand_value=self.dealer_hand.value)

        if self.dealer_hand.is_busted:
            self.events.emit_new(EventType.DEALER_BUSTS, hand_value=self.dealer_hand.value)
        else:
            self.events.emit_new(EventType.DEALER_STANDS, hand_value=self.dealer_hand.value)

        self.resolve_showdown()

        outcome = compare_hands(self.player_hand, self.dealer_hand)
        if self.dealer_hand.is_busted:
            self._settle(RoundResult.WIN, self._bet, f"Dealer busts! You win ${self._bet}!")
        elif outcome == 1:
            self._settle(RoundResult.WIN, self._bet, f"You win ${self._bet}!")
        elif outcome == -1:
            self._settle(RoundResult.LOSS, -self._bet, f"You lose ${self._bet}!")
        else:
            self._settle(RoundResult.PUSH, 0, "Push! Bet returned.")

    def _settle(self, result: RoundResult, payout_delta: int, message: str) -> None:
        """Record the final result. Called exactly once per round."""
        self._result = result
        self._payout_delta = payout_delta
        self._message = message

        outcome_events = {
            RoundResult.WIN: EventType.PLAYER_WINS,
            RoundResult.LOSS: EventType.PLAYER_LOSES,
            RoundResult.PUSH: EventType.PUSH,
        }
        self.events.emit_new(outcome_events[result], amount=abs(payout_delta))
        self.events.emit_new(
            EventType.ROUND_ENDED,
            result=str(result),
            payout_delta=payout_delta,
            player_value=self.player_hand.value,
            dealer_value=self.dealer_hand.value,
        )
        logger.debug(
            "round resolved: %s %+d (player %d, dealer %d)",
            result,
            payout_delta,
            self.player_hand.value,
            self.dealer_hand.value,
        )

    def _require_player_turn(self, action: str) -> None:
        if self.state == RoundState.RESOLVED:
            self._reject(InvalidAction, f"Cannot {action}: the round is over. Start a new round")
        if self.state != RoundState.PLAYER_TURN:
            self._reject(InvalidAction, f"Cannot {action} now: place a bet first")

    def _reject(
        self,
        error: type[GameError],
        message: str,
        event_type: EventType = EventType.INVALID_ACTION,
        **data,
    ) -> None:
        self.events.emit_new(event_type, message=message, state=self.state.name, **data)
        raise error(message)
