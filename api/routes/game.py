"""Game API endpoints."""

from typing import Annotated, Sequence

from fastapi import APIRouter, Header

from api.advice import get_advice
from api.schemas import (
    ActionRequest,
    AdviceResponse,
    BetRequest,
    CardResponse,
    DealerHandResponse,
    HandResponse,
    NewGameRequest,
    NewGameResponse,
    RoundStateResponse,
)
from api.session import create_session
from api.storage import get_balance_store
from api import tables
from api.tables import Table
from blackjack.cards import Card
from blackjack.game import BlackjackRound, InvalidAction, RoundResult, RoundState
from blackjack.game.playback import hidden_card_count, visible_dealer_cards
from blackjack.hand import Hand, hand_value

router = APIRouter()

SessionToken = Annotated[str, Header(alias="X-Session-ID")]


def card_response(card: Card) -> CardResponse:
    return CardResponse(id=card.id, rank=str(card.rank), suit=str(card.suit), value=card.value)


def _hand_response(cards: Sequence[Card]) -> HandResponse:
    hand = Hand(cards=list(cards))
    return HandResponse(
        cards=[card_response(c) for c in hand.cards],
        value=hand.value,
        is_soft=hand.is_soft,
        is_blackjack=hand.is_blackjack,
        is_busted=hand.is_busted,
    )


def _dealer_response(state: RoundState, cards: Sequence[Card]) -> DealerHandResponse:
    visible = visible_dealer_cards(state, cards)
    return DealerHandResponse(
        cards=[card_response(c) for c in visible],
        hidden_cards=hidden_card_count(state) if cards else 0,
        value=hand_value(visible),
    )


def round_state_response(
    round_: BlackjackRound | None,
    balance: int,
    warnings: list[str] | None = None,
) -> RoundStateResponse:
    """Convert a round (or an empty table) to its response."""
    if round_ is None:
        round_ = BlackjackRound(balance=balance, rules=tables.RULES)

    snapshot = round_.snapshot()
    result = None if snapshot.result == RoundResult.UNSET else str(snapshot.result)
    return RoundStateResponse(
        state=snapshot.state.name,
        message=snapshot.message,
        bet=snapshot.bet,
        player_hand=_hand_response(snapshot.player_hand),
        dealer_hand=_dealer_response(snapshot.state, snapshot.dealer_hand),
        result=result,
        payout_delta=snapshot.payout_delta,
        balance=balance,
        can_hit=round_.can_hit,
        can_stand=round_.can_stand,
        warnings=warnings or [],
    )


async def table_response(table: Table) -> RoundStateResponse:
    balance = await tables.current_balance(table)
    return round_state_response(table.round, balance, table.warnings)


@router.post("/new")
async def new_game(request: NewGameRequest) -> NewGameResponse:
    """Open a table session for a player."""
    session_id = await create_session(request.user_id)
    store = await get_balance_store()
    return NewGameResponse(session_id=session_id, balance=await store.read(request.user_id))


@router.get("/state")
async def get_state(session_id: SessionToken) -> RoundStateResponse:
    """Get current table state."""
    table = await tables.open_table(session_id)
    return await table_response(table)


@router.post("/bet")
async def place_bet(request: BetRequest, session_id: SessionToken) -> RoundStateResponse:
    """Place a bet and deal cards."""
    table = await tables.open_table(session_id)
    await tables.place_bet(table, request.amount)
    return await table_response(table)


@router.post("/action")
async def player_action(request: ActionRequest, session_id: SessionToken) -> RoundStateResponse:
    """Execute a player action."""
    table = await tables.open_table(session_id)
    await tables.player_action(table, request.action)
    return await table_response(table)


@router.post("/advice")
async def advice(session_id: SessionToken) -> AdviceResponse:
    """Ask for a hit/stand hint on the live hand."""
    table = await tables.open_table(session_id)
    if table.round is None:
        raise InvalidAction("Cannot ask for advice now: place a bet first")
    hint = await get_advice(table.round.advice_request())
    return AdviceResponse(advice=hint.text, fallback=hint.fallback)


@router.post("/reset")
async def reset(session_id: SessionToken) -> RoundStateResponse:
    """Leave the current round and return to betting."""
    table = await tables.open_table(session_id)
    await tables.reset_table(table)
    return await table_response(table)
