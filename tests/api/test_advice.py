"""Tests for hit/stand hints."""

import asyncio
from types import SimpleNamespace

import pytest

import api.advice as advice_module
from api.advice import (
    Advisor,
    GeminiAdvisor,
    RuleOfThumbAdvisor,
    get_advice,
    get_advisor,
)
from blackjack.game import AdviceRequest
from blackjack.hand import hand_value
from config import AdviceConfig, config

from table_helpers import make_cards


def request_for(player, dealer):
    cards = make_cards(player)
    return AdviceRequest(
        player_hand=tuple(cards),
        dealer_card=make_cards(dealer)[0],
        player_value=hand_value(cards),
    )


class FakeModels:
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.calls = []

    async def generate_content(self, model, contents):
        self.calls.append((model, contents))
        if self.error:
            raise self.error
        return SimpleNamespace(text=self.text)


def fake_client(models):
    return SimpleNamespace(aio=SimpleNamespace(models=models))


class BrokenAdvisor(Advisor):
    async def advise(self, request):
        raise ConnectionError("advice service unreachable")


class HungAdvisor(Advisor):
    async def advise(self, request):
        await asyncio.Event().wait()


class TestRuleOfThumbAdvisor:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "player,dealer,word",
        [
            ("5S 6H", "10D", "Hit"),
            ("10S 7H", "AD", "Stand"),
            ("10S 4H", "9D", "Hit"),
            ("10S 4H", "5D", "Stand"),
        ],
    )
    async def test_thresholds(self, player, dealer, word):
        advice = await RuleOfThumbAdvisor().advise(request_for(player, dealer))
        assert advice.startswith(word)


class TestGeminiAdvisor:
    def test_prompt_mentions_hand_and_dealer(self):
        prompt = GeminiAdvisor.build_prompt(request_for("10S 6H", "9D"))

        assert "Player's hand value: 16" in prompt
        assert "9 of diamonds" in prompt
        assert "HIT or STAND" in prompt

    @pytest.mark.asyncio
    async def test_uses_configured_model(self):
        models = FakeModels(text="  Hit - 16 against a 9 is weak.  ")
        advisor = GeminiAdvisor(client=fake_client(models), model="test-model")

        text = await advisor.advise(request_for("10S 6H", "9D"))

        assert text == "Hit - 16 against a 9 is weak."
        assert models.calls[0][0] == "test-model"

    @pytest.mark.asyncio
    async def test_empty_reply_is_an_error(self):
        advisor = GeminiAdvisor(client=fake_client(FakeModels(text="")), model="m")
        with pytest.raises(ValueError):
            await advisor.advise(request_for("10S 6H", "9D"))


class TestGetAdvice:
    @pytest.mark.asyncio
    async def test_success(self):
        advice = await get_advice(request_for("10S 7H", "9D"), RuleOfThumbAdvisor())
        assert advice.fallback is False

    @pytest.mark.asyncio
    async def test_failure_returns_fallback(self):
        advice = await get_advice(request_for("10S 6H", "9D"), BrokenAdvisor())

        assert advice.fallback is True
        assert advice.text == config.advice.fallback_message

    @pytest.mark.asyncio
    async def test_model_error_returns_fallback(self):
        advisor = GeminiAdvisor(
            client=fake_client(FakeModels(error=RuntimeError("quota"))), model="m"
        )
        advice = await get_advice(request_for("10S 6H", "9D"), advisor)
        assert advice.fallback is True

    @pytest.mark.asyncio
    async def test_slow_advisor_times_out(self):
        advice = await get_advice(request_for("10S 6H", "9D"), HungAdvisor(), timeout=0.05)

        assert advice.fallback is True
        assert advice.text == config.advice.fallback_message

    def test_offline_advisor_without_api_key(self, monkeypatch):
        monkeypatch.setattr(advice_module, "_advisor", None)
        monkeypatch.setattr(advice_module, "config", SimpleNamespace(advice=AdviceConfig(api_key=None)))

        assert isinstance(get_advisor(), RuleOfThumbAdvisor)
