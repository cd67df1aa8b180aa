# domain/enums.py
from __future__ import annotations

from enum import Enum


class MatchOutcome(str, Enum):
    UNPLAYED = "0-0"
    WIN_2_0 = "2-0"
    WIN_2_1 = "2-1"
    LOSS_1_2 = "1-2"
    LOSS_0_2 = "0-2"
    UNPLAYABLE = "-"    # diagonal, or anything we could not read back

    @classmethod
    def from_text(cls, text: str) -> "MatchOutcome":
        """
        Accepts a score string ("2-1") or a grid glyph (":waning_gibbous_moon:").
        Anything else is UNPLAYABLE.
        """
        t = (text or "").strip()
        hit = _BY_TEXT.get(t)
        return hit if hit is not None else cls.UNPLAYABLE

    @property
    def score(self) -> str:
        return self.value

    @property
    def symbol(self) -> str:
        return SYMBOLS[self]

    def invert(self) -> "MatchOutcome":
        return _INVERSE[self]

    @property
    def is_win(self) -> bool:
        return self in (MatchOutcome.WIN_2_0, MatchOutcome.WIN_2_1)

    @property
    def is_played(self) -> bool:
        return self in (
            MatchOutcome.WIN_2_0,
            MatchOutcome.WIN_2_1,
            MatchOutcome.LOSS_1_2,
            MatchOutcome.LOSS_0_2,
        )


SYMBOLS: dict[MatchOutcome, str] = {
    MatchOutcome.UNPLAYED: ":cloud:",
    MatchOutcome.WIN_2_0: ":full_moon:",
    MatchOutcome.WIN_2_1: ":waning_gibbous_moon:",
    MatchOutcome.LOSS_1_2: ":waxing_crescent_moon:",
    MatchOutcome.LOSS_0_2: ":new_moon:",
    MatchOutcome.UNPLAYABLE: ":black_small_square:",
}

_INVERSE: dict[MatchOutcome, MatchOutcome] = {
    MatchOutcome.UNPLAYED: MatchOutcome.UNPLAYED,
    MatchOutcome.WIN_2_0: MatchOutcome.LOSS_0_2,
    MatchOutcome.WIN_2_1: MatchOutcome.LOSS_1_2,
    MatchOutcome.LOSS_1_2: MatchOutcome.WIN_2_1,
    MatchOutcome.LOSS_0_2: MatchOutcome.WIN_2_0,
    MatchOutcome.UNPLAYABLE: MatchOutcome.UNPLAYABLE,
}

# UNPLAYABLE has no score string; its glyph is the only way in.
_BY_TEXT: dict[str, MatchOutcome] = {}
for _o, _sym in SYMBOLS.items():
    _BY_TEXT[_sym] = _o
    if _o is not MatchOutcome.UNPLAYABLE:
        _BY_TEXT[_o.value] = _o
del _o, _sym

# Score choices offered to players, in display order.
REPORTABLE_SCORES: list[tuple[str, MatchOutcome]] = [
    ("2-0 (Win)", MatchOutcome.WIN_2_0),
    ("2-1 (Win)", MatchOutcome.WIN_2_1),
    ("1-2 (Loss)", MatchOutcome.LOSS_1_2),
    ("0-2 (Loss)", MatchOutcome.LOSS_0_2),
    ("0-0 (No result)", MatchOutcome.UNPLAYED),
]
