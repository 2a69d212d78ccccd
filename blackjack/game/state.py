"""Round state and result enumerations."""

from enum import Enum, auto


class RoundState(Enum):
    """
    Round state machine states.

    Flow: BETTING → PLAYER_TURN → DEALER_TURN → RESOLVED
    A natural on the deal goes straight from BETTING to RESOLVED, and a
    player bust goes from PLAYER_TURN to RESOLVED.
    """

    # Waiting for a bet
    BETTING = auto()

    # Player hits or stands
    PLAYER_TURN = auto()

    # Dealer draws to 17; entered and left inside a single stand()
    DEALER_TURN = auto()

    # Result and payout are final
    RESOLVED = auto()

    def __str__(self) -> str:
        return self.name.replace("_", " ").title()


class RoundResult(Enum):
    """Settled outcome of a round, from the player's side."""

    UNSET = auto()
    WIN = auto()
    LOSS = auto()
    PUSH = auto()

    def __str__(self) -> str:
        return self.name.lower()

