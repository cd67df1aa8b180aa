"""Tests for MatchOutcome: score/glyph mapping and win/loss inversion."""

import pytest

from domain.enums import SYMBOLS, MatchOutcome


class TestInvert:
    @pytest.mark.parametrize("o", list(MatchOutcome))
    def test_involution(self, o):
        assert o.invert().invert() is o

    def test_wins_map_to_losses(self):
        assert MatchOutcome.WIN_2_0.invert() is MatchOutcome.LOSS_0_2
        assert MatchOutcome.WIN_2_1.invert() is MatchOutcome.LOSS_1_2
        assert {o.invert() for o in MatchOutcome if o.is_win} == {MatchOutcome.LOSS_0_2, MatchOutcome.LOSS_1_2}

    def test_fixed_points(self):
        assert MatchOutcome.UNPLAYED.invert() is MatchOutcome.UNPLAYED
        assert MatchOutcome.UNPLAYABLE.invert() is MatchOutcome.UNPLAYABLE


class TestFromText:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("2-0", MatchOutcome.WIN_2_0),
            ("2-1", MatchOutcome.WIN_2_1),
            ("1-2", MatchOutcome.LOSS_1_2),
            ("0-2", MatchOutcome.LOSS_0_2),
            ("0-0", MatchOutcome.UNPLAYED),
            (":full_moon:", MatchOutcome.WIN_2_0),
            (":cloud:", MatchOutcome.UNPLAYED),
            (":black_small_square:", MatchOutcome.UNPLAYABLE),
        ],
    )
    def test_known(self, text, expected):
        assert MatchOutcome.from_text(text) is expected

    @pytest.mark.parametrize("text", ["", "3-0", ":sun:", "win", None])
    def test_unknown_is_unplayable(self, text):
        assert MatchOutcome.from_text(text) is MatchOutcome.UNPLAYABLE

    def test_six_distinct_symbols(self):
        assert len(set(SYMBOLS.values())) == 6
        for o in MatchOutcome:
            assert MatchOutcome.from_text(o.symbol) is o


def test_played_and_wins():
    assert [o for o in MatchOutcome if o.is_win] == [MatchOutcome.WIN_2_0, MatchOutcome.WIN_2_1]
    assert not MatchOutcome.UNPLAYED.is_played
    assert not MatchOutcome.UNPLAYABLE.is_played
    assert MatchOutcome.LOSS_0_2.is_played
