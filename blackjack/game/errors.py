"""Recoverable errors raised by the round state machine."""


class GameError(Exception):
    """Base class for rejected round actions. The round is left unchanged."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidBet(GameError):
    """Bet is not positive or exceeds the available chips."""


class InvalidAction(GameError):
    """Action is not allowed in the round's current state."""
