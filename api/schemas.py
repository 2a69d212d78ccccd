"""Pydantic schemas for API requests and responses."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


# Session schemas
class NewGameRequest(BaseModel):
    """Open a table for a player."""

    user_id: str = Field(..., min_length=1, max_length=128, description="Player identifier")


class NewGameResponse(BaseModel):
    session_id: str
    balance: int


# Round schemas
class BetRequest(BaseModel):
    """Request to place a bet. Range checks happen in the round engine."""

    amount: int = Field(..., description="Bet amount in chips")


class ActionRequest(BaseModel):
    """Request for player action."""

    action: Literal["hit", "stand"]


class CardResponse(BaseModel):
    """Card representation."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    rank: str
    suit: str
    value: int


class HandResponse(BaseModel):
    """Player hand representation."""

    cards: list[CardResponse]
    value: int
    is_soft: bool
    is_blackjack: bool
    is_busted: bool


class DealerHandResponse(BaseModel):
    """Dealer cards as the player may see them."""

    cards: list[CardResponse]
    hidden_cards: int
    value: int


class RoundStateResponse(BaseModel):
    """Current table state."""

    state: str
    message: str
    bet: int
    player_hand: HandResponse
    dealer_hand: DealerHandResponse
    result: Literal["win", "loss", "push"] | None
    payout_delta: int | None
    balance: int
    can_hit: bool
    can_stand: bool
    warnings: list[str] = []


class AdviceResponse(BaseModel):
    advice: str
    fallback: bool


# Player schemas
class BalanceResponse(BaseModel):
    user_id: str
    balance: int
    saved: bool = True


class HistoryEntryResponse(BaseModel):
    """One archived round."""

    player_hand: list[CardResponse]
    dealer_hand: list[CardResponse]
    player_value: int
    dealer_value: int
    result: Literal["win", "loss", "push"]
    bet: int
    payout_delta: int
    timestamp: datetime


class HistoryResponse(BaseModel):
    user_id: str
    entries: list[HistoryEntryResponse]
