"""Tests for display timing of round events."""

from blackjack.game import EventType, RoundState
from blackjack.game.events import GameEvent
from blackjack.game.playback import (
    PlaybackTiming,
    build_playback,
    hidden_card_count,
    visible_dealer_cards,
)

from table_helpers import make_cards, scripted_round


def card_frames(frames):
    return [f.at_ms for f in frames if f.event.event_type == EventType.CARD_DEALT]


class TestBuildPlayback:
    def test_opening_deal_is_staggered(self):
        round_ = scripted_round("10S 6H 9D")
        round_.place_bet(10)

        frames = build_playback(round_.events.history)

        assert card_frames(frames) == [100, 300, 500]

    def test_dealer_draws_one_second_apart(self):
        round_ = scripted_round("10S 8H 6D 10C 9H")
        round_.place_bet(10)
        round_.events.clear_history()
        round_.stand()

        frames = build_playback(round_.events.history)

        assert card_frames(frames) == [1000, 2000]
        ended = [f for f in frames if f.event.event_type == EventType.ROUND_ENDED]
        assert ended[0].at_ms == 2500

    def test_result_follows_natural(self):
        round_ = scripted_round("AS KH 9D")
        round_.place_bet(10)

        frames = build_playback(round_.events.history)
        results = [
            f.at_ms
            for f in frames
            if f.event.event_type in (EventType.PLAYER_WINS, EventType.ROUND_ENDED)
        ]

        assert results == [1000, 1000]

    def test_player_hit_is_immediate(self):
        round_ = scripted_round("10S 2H 9D 5C")
        round_.place_bet(10)
        round_.events.clear_history()
        round_.hit()

        frames = build_playback(round_.events.history)

        assert card_frames(frames) == [0]

    def test_rejections_are_not_scheduled(self):
        events = [
            GameEvent(EventType.INVALID_ACTION, {"message": "no"}),
            GameEvent(EventType.INSUFFICIENT_FUNDS, {"required": 5, "available": 1}),
        ]
        assert build_playback(events) == []

    def test_frames_keep_event_order(self):
        round_ = scripted_round("10S 8H 6D 10C 9H")
        round_.place_bet(10)
        round_.stand()

        frames = build_playback(round_.events.history)

        assert [f.event for f in frames] == round_.events.history
        times = [f.at_ms for f in frames]
        assert times == sorted(times)

    def test_zero_timing(self):
        round_ = scripted_round("10S 8H 6D 10C 9H")
        round_.place_bet(10)
        round_.stand()

        timing = PlaybackTiming(first_card=0, between_deal_cards=0, dealer_draw=0, result=0)
        frames = build_playback(round_.events.history, timing)

        assert all(f.at_ms == 0 for f in frames)


class TestDealerVisibility:
    def test_hole_is_hidden_during_player_turn(self):
        cards = make_cards("9D 7C")
        assert visible_dealer_cards(RoundState.PLAYER_TURN, cards) == tuple(cards[:1])
        assert hidden_card_count(RoundState.PLAYER_TURN) == 1

    def test_everything_shown_once_resolved(self):
        cards = make_cards("9D 7C 2H")
        assert visible_dealer_cards(RoundState.RESOLVED, cards) == tuple(cards)
        assert hidden_card_count(RoundState.RESOLVED) == 0

    def test_betting_has_nothing_hidden(self):
        assert visible_dealer_cards(RoundState.BETTING, []) == ()
        assert hidden_card_count(RoundState.BETTING) == 0

    def test_internal_hand_is_untouched(self):
        round_ = scripted_round("10S 6H 9D")
        round_.place_bet(10)
        visible_dealer_cards(round_.state, round_.dealer_hand.cards)
        assert len(round_.dealer_hand) == 1
