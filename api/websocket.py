"""WebSocket table channel with paced replay of round events."""

import asyncio
import json
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from api import tables
from api.routes.game import table_response
from api.session import SessionBusy, SessionNotFound
from api.storage import StorageError
from blackjack.game import GameError, GameEvent
from blackjack.game.playback import PlaybackTiming, build_playback

logger = logging.getLogger(__name__)

router = APIRouter()

PLAYBACK_TIMING = PlaybackTiming()


def _event_message(event: GameEvent, at_ms: int) -> dict[str, Any]:
    """Convert a round event to a WebSocket message."""
    return {
        "type": "event",
        "event_type": event.event_type.name,
        "data": event.data,
        "at_ms": at_ms,
    }


async def _replay(websocket: WebSocket, events: list[GameEvent]) -> None:
    """Send events paced the way a table would deal them."""
    elapsed = 0
    for frame in build_playback(events, PLAYBACK_TIMING):
        if frame.at_ms > elapsed:
            await asyncio.sleep((frame.at_ms - elapsed) / 1000)
            elapsed = frame.at_ms
        await websocket.send_json(_event_message(frame.event, frame.at_ms))


async def _send_state(websocket: WebSocket, table: tables.Table) -> None:
    response = await table_response(table)
    await websocket.send_json({"type": "state_update", "state": response.model_dump(mode="json")})


async def _handle(websocket: WebSocket, token: str, message: dict[str, Any]) -> None:
    table = await tables.open_table(token)
    msg_type = message.get("type")

    if msg_type == "get_state":
        await _send_state(websocket, table)
        return

    if msg_type == "bet":
        await tables.place_bet(table, message.get("amount"))
    elif msg_type == "action":
        await tables.player_action(table, str(message.get("action")))
    elif msg_type == "new_round":
        await tables.reset_table(table)
    else:
        await websocket.send_json({"type": "error", "message": f"Unknown message type: {msg_type}"})
        return

    await _replay(websocket, table.new_events())
    await _send_state(websocket, table)


@router.websocket("/game/{session_id}")
async def game_websocket(websocket: WebSocket, session_id: str) -> None:
    """
    WebSocket endpoint for a table session.

    Messages from client:
    - {"type": "bet", "amount": 100}
    - {"type": "action", "action": "hit"|"stand"}
    - {"type": "new_round"}
    - {"type": "get_state"}

    Messages to client:
    - {"type": "event", "event_type": "...", "data": {...}, "at_ms": 300}
    - {"type": "state_update", "state": {...}}
    - {"type": "error", "message": "..."}
    """
    await websocket.accept()

    try:
        table = await tables.open_table(session_id)
    except SessionNotFound as exc:
        await websocket.send_json({"type": "error", "message": str(exc)})
        await websocket.close(code=4404)
        return

    await _send_state(websocket, table)

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Messages must be JSON"})
                continue

            try:
                await _handle(websocket, session_id, message)
            except (GameError, StorageError, SessionNotFound, SessionBusy) as exc:
                await websocket.send_json({"type": "error", "message": str(exc)})
    except WebSocketDisconnect:
        logger.debug("websocket closed for session")
