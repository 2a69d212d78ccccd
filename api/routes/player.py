"""Chip balance and round history endpoints."""

from fastapi import APIRouter, Query

from api.ledger import write_balance
from api.routes.game import SessionToken, card_response
from api.schemas import BalanceResponse, HistoryEntryResponse, HistoryResponse
from api.storage import get_balance_store, get_history_store
from api import tables
from blackjack.game import HistoryEntry
from blackjack.hand import hand_value
from config import config

router = APIRouter()


def _entry_response(entry: HistoryEntry) -> HistoryEntryResponse:
    return HistoryEntryResponse(
        player_hand=[card_response(c) for c in entry.player_hand],
        dealer_hand=[card_response(c) for c in entry.dealer_hand],
        player_value=hand_value(entry.player_hand),
        dealer_value=hand_value(entry.dealer_hand),
        result=str(entry.result),
        bet=entry.bet,
        payout_delta=entry.payout_delta,
        timestamp=entry.timestamp,
    )


@router.get("/chips")
async def get_chips(session_id: SessionToken) -> BalanceResponse:
    """Get the player's chip balance."""
    table = await tables.open_table(session_id)
    store = await get_balance_store()
    return BalanceResponse(user_id=table.user_id, balance=await store.read(table.user_id))


@router.post("/chips/buy")
async def buy_chips(session_id: SessionToken) -> BalanceResponse:
    """Top up the player's chips by the configured amount."""
    table = await tables.open_table(session_id)
    store = await get_balance_store()
    balance = await store.read(table.user_id) + config.game.chip_top_up
    saved = await write_balance(store, table.user_id, balance)
    return BalanceResponse(user_id=table.user_id, balance=balance, saved=saved)


@router.get("/history")
async def get_history(
    session_id: SessionToken,
    limit: int = Query(default=config.game.history_limit, ge=1, le=500),
) -> HistoryResponse:
    """Get the player's finished rounds, most recent first."""
    table = await tables.open_table(session_id)
    store = await get_history_store()
    entries = await store.list(table.user_id, limit=limit)
    return HistoryResponse(user_id=table.user_id, entries=[_entry_response(e) for e in entries])
