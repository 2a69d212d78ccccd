"""Table rules for a single-hand blackjack table."""

from dataclasses import dataclass


@dataclass(frozen=True)
class TableRules:
    """
    Rules that affect how a round is dealt and paid.

    The dealer stands on any total at or above ``dealer_stands_on``, soft or
    hard. A natural pays ``blackjack_payout`` as an integer ratio and the
    result is floored to whole chips.
    """

    dealer_stands_on: int = 17

    # 3:2 = (3, 2), 6:5 = (6, 5)
    blackjack_payout: tuple[int, int] = (3, 2)

    def __post_init__(self) -> None:
        """Validate rule combinations."""
        numerator, denominator = self.blackjack_payout
        if denominator <= 0 or numerator < denominator:
            raise ValueError("blackjack_payout must be at least 1:1")
        if not 2 <= self.dealer_stands_on <= 21:
            raise ValueError("dealer_stands_on must be between 2 and 21")

    def blackjack_win(self, bet: int) -> int:
        """Chips won on a natural, rounded down."""
        numerator, denominator = self.blackjack_payout
        return bet * numerator // denominator

    @classmethod
    def from_config(cls, game_config) -> "TableRules":
        """Build rules from a ``GameConfig`` section."""
        return cls(
            dealer_stands_on=game_config.dealer_stands_on,
            blackjack_payout=tuple(game_config.blackjack_payout),
        )
