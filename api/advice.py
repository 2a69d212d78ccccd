"""Hit/stand hints for the player's current hand."""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from google import genai

from blackjack.game import AdviceRequest
from config import config

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = """You are a professional blackjack advisor.

Player's hand: {cards}
Player's hand value: {player_value}
Dealer's visible card: {dealer_rank} of {dealer_suit}

Give brief advice (1-2 sentences) on whether the player should HIT or STAND.
Only recommend these two actions - do not mention double down, split, or surrender.
Consider basic blackjack strategy."""


@dataclass(frozen=True)
class Advice:
    text: str
    fallback: bool = False


class Advisor(ABC):
    """Maps a hand snapshot to a short recommendation."""

    @abstractmethod
    async def advise(self, request: AdviceRequest) -> str:
        ...


class RuleOfThumbAdvisor(Advisor):
    """Offline advisor with simple fixed thresholds."""

    async def advise(self, request: AdviceRequest) -> str:
        dealer_value = request.dealer_card.value
        if request.player_value < 12:
            return "Hit - Your hand is low, you need more cards."
        if request.player_value >= 17:
            return "Stand - Your hand is strong enough."
        if dealer_value >= 7:
            return "Hit - Dealer shows a strong card."
        return "Stand - Your hand is in a good position."


class GeminiAdvisor(Advisor):
    """Advisor backed by a Gemini model through google-genai."""

    def __init__(self, client: genai.Client | None = None, model: str | None = None) -> None:
        self._client = client or genai.Client(api_key=config.advice.api_key)
        self._model = model or config.advice.model

    @staticmethod
    def build_prompt(request: AdviceRequest) -> str:
        dealer = request.dealer_card
        return PROMPT_TEMPLATE.format(
            cards=" ".join(str(card) for card in request.player_hand),
            player_value=request.player_value,
            dealer_rank=str(dealer.rank),
            dealer_suit=dealer.suit.name.lower(),
        )

    async def advise(self, request: AdviceRequest) -> str:
        response = await self._client.aio.models.generate_content(
            model=self._model,
            contents=self.build_prompt(request),
        )
        text = (response.text or "").strip()
        if not text:
            raise ValueError("Empty response from advice model")
        return text


_advisor: Advisor | None = None


def get_advisor() -> Advisor:
    """Gemini when an API key is configured, the rule-of-thumb advisor otherwise."""
    global _advisor
    if _advisor is None:
        _advisor = GeminiAdvisor() if config.advice.enabled else RuleOfThumbAdvisor()
    return _advisor


def set_advisor(advisor: Advisor | None) -> None:
    global _advisor
    _advisor = advisor


async def get_advice(
    request: AdviceRequest,
    advisor: Advisor | None = None,
    timeout: float | None = None,
) -> Advice:
    """
    Ask the advisor for a hint.

    Any advisor failure, or no answer within ``timeout`` seconds, degrades to
    the configured fallback message; a hint never blocks play.
    """
    advisor = advisor or get_advisor()
    timeout = config.advice.timeout if timeout is None else timeout
    try:
        return Advice(text=await asyncio.wait_for(advisor.advise(request), timeout))
    except Exception:
        logger.warning("advice service failed; using fallback", exc_info=True)
        return Advice(text=config.advice.fallback_message, fallback=True)
