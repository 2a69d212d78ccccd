"""Core blackjack engine - 100% UI-agnostic."""

from blackjack.cards import Card, InfiniteDeck, Rank, Suit, draw_card
from blackjack.hand import Hand, hand_value, is_blackjack, is_bust
from blackjack.rules import TableRules

__all__ = [
    "Card",
    "InfiniteDeck",
    "Rank",
    "Suit",
    "draw_card",
    "Hand",
    "hand_value",
    "is_blackjack",
    "is_bust",
    "TableRules",
]
