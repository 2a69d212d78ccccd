"""Applying a resolved round to the player's chips and history."""

import asyncio
import logging
from dataclasses import dataclass, field

from api.storage import BalanceStore, HistoryStore, StorageError
from blackjack.game import BlackjackRound, InvalidAction, RoundState
from config import config

logger = logging.getLogger(__name__)


@dataclass
class Settlement:
    """
    What happened when a round was written out.

    ``balance`` is the balance the player should see. When the write failed
    it is still ``previous + payout_delta``; the warning says it wasn't saved.
    """

    balance: int
    balance_saved: bool
    history_saved: bool
    warnings: list[str] = field(default_factory=list)


async def write_balance(
    balance_store: BalanceStore,
    user_id: str,
    chips: int,
    retries: int | None = None,
    retry_delay: float | None = None,
) -> bool:
    """Write a balance, retrying failed writes."""
    retries = config.persistence.write_retries if retries is None else retries
    retry_delay = config.persistence.retry_delay if retry_delay is None else retry_delay

    for attempt in range(retries + 1):
        if await balance_store.write(user_id, chips):
            return True
        if attempt < retries:
            logger.info("retrying chip write for %s (attempt %d)", user_id, attempt + 2)
            await asyncio.sleep(retry_delay)
    return False


async def settle_round(
    round_: BlackjackRound,
    user_id: str,
    balance_store: BalanceStore,
    history_store: HistoryStore,
    retries: int | None = None,
) -> Settlement:
    """
    Apply ``payout_delta`` to the stored balance and archive the round.

    Persistence is best effort. Failures become warnings and never touch the
    round's result.

    Raises:
        InvalidAction: the round is not resolved
    """
    if round_.state != RoundState.RESOLVED:
        raise InvalidAction("Only a finished round can be settled")

    warnings: list[str] = []
    delta = round_.payout_delta or 0

    try:
        current = await balance_store.read(user_id)
    except StorageError as exc:
        logger.warning("settlement read failed for %s: %s", user_id, exc)
        current = round_.balance
        warnings.append("Could not read your chip balance; the result may not be saved.")

    new_balance = current + delta

    balance_saved = await write_balance(balance_store, user_id, new_balance, retries=retries)
    if not balance_saved:
        logger.warning("chip balance for %s not saved after retries", user_id)
        warnings.append("Your chip balance could not be saved.")

    history_saved = await history_store.append(user_id, round_.history_entry())
    if not history_saved:
        warnings.append("This hand could not be added to your history.")

    logger.info(
        "settled round for %s: %s %+d -> %d chips",
        user_id,
        round_.result,
        delta,
        new_balance,
    )
    return Settlement(
        balance=new_balance,
        balance_saved=balance_saved,
        history_saved=history_saved,
        warnings=warnings,
    )
