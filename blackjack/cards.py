"""Card model and the infinite-deck card source."""

from dataclasses import dataclass, field
from enum import Enum, auto
from random import Random
from uuid import uuid4


class Suit(Enum):
    """Card suits."""

    SPADES = auto()
    HEARTS = auto()
    DIAMONDS = auto()
    CLUBS = auto()

    def __str__(self) -> str:
        symbols = {
            Suit.SPADES: "♠",
            Suit.HEARTS: "♥",
            Suit.DIAMONDS: "♦",
            Suit.CLUBS: "♣",
        }
        return symbols[self]


class Rank(Enum):
    """Card ranks with blackjack values."""

    TWO = 2
    THREE = 3
    FOUR = 4
    FIVE = 5
    SIX = 6
    SEVEN = 7
    EIGHT = 8
    NINE = 9
    TEN = 10
    JACK = 11
    QUEEN = 12
    KING = 13
    ACE = 14

    def __str__(self) -> str:
        if self.value <= 10:
            return str(self.value)
        return {
            Rank.JACK: "J",
            Rank.QUEEN: "Q",
            Rank.KING: "K",
            Rank.ACE: "A",
        }[self]

    @property
    def blackjack_value(self) -> int:
        """Return the blackjack point value (Ace = 11, face cards = 10)."""
        if self.value <= 10:
            return self.value
        if self == Rank.ACE:
            return 11
        return 10


_RANK_ALIASES = {str(rank): rank for rank in Rank} | {"T": Rank.TEN}
_SUIT_ALIASES = {
    "S": Suit.SPADES,
    "♠": Suit.SPADES,
    "H": Suit.HEARTS,
    "♥": Suit.HEARTS,
    "D": Suit.DIAMONDS,
    "♦": Suit.DIAMONDS,
    "C": Suit.CLUBS,
    "♣": Suit.CLUBS,
}


def _card_id() -> str:
    return uuid4().hex


@dataclass(frozen=True, slots=True)
class Card:
    """
    Immutable playing card.

    ``id`` only correlates a card with its on-screen rendering; two cards of
    the same rank and suit compare equal whatever their ids.
    """

    rank: Rank
    suit: Suit
    id: str = field(default_factory=_card_id, compare=False)

    def __str__(self) -> str:
        return f"{self.rank}{self.suit}"

    def __repr__(self) -> str:
        return f"Card({self.rank.name}, {self.suit.name})"

    @property
    def value(self) -> int:
        """Return the blackjack point value."""
        return self.rank.blackjack_value

    @property
    def is_ace(self) -> bool:
        return self.rank == Rank.ACE

    @classmethod
    def from_string(cls, s: str) -> "Card":
        """Create a card from a string like '2♣', 'AS', 'Kh'."""
        s = s.strip().upper()
        if len(s) < 2:
            raise ValueError(f"Invalid card string: {s}")

        rank_str = s[:-1]
        suit_str = s[-1]

        if rank_str not in _RANK_ALIASES:
            raise ValueError(f"Invalid rank: {rank_str}")
        if suit_str not in _SUIT_ALIASES:
            raise ValueError(f"Invalid suit: {suit_str}")

        return cls(_RANK_ALIASES[rank_str], _SUIT_ALIASES[suit_str])


class InfiniteDeck:
    """
    Card source that draws every card independently.

    Each draw picks one of the 52 rank/suit pairs uniformly at random. Nothing
    is removed, so there is no depletion and nothing to reshuffle.
    """

    RANKS = tuple(Rank)
    SUITS = tuple(Suit)

    def __init__(self, rng: Random | None = None) -> None:
        self._rng = rng or Random()

    def draw(self) -> Card:
        """Draw a card. Always succeeds."""
        return Card(self._rng.choice(self.RANKS), self._rng.choice(self.SUITS))


def draw_card(rng: Random | None = None) -> Card:
    """Draw a single uniformly random card."""
    return InfiniteDeck(rng).draw()
