# renderers/grid_view.py
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import AbstractSet, Sequence

from domain.enums import SYMBOLS, MatchOutcome
from domain.errors import InsufficientSymbolsError, RenderBlockMismatchError, UnexpectedSymbolCountError
from domain.models import MatchMatrix, Participant, ResultsTable

NO_BELL = ":no_bell:"
CONTINUATION = "\u200b"   # zero-width space; keeps empty blocks postable and marks the end
LEGEND_SYMBOLS = 6

RE_RESULT_SYMBOL = re.compile("|".join(re.escape(s) for s in SYMBOLS.values()))


def index_glyph(name: str) -> str:
    """
    Legend square for a player: first ascii letter/digit of the lowercased name.
    """
    for c in (name or "").lower():
        if c.isascii() and c.isalnum():
            if c.isalpha():
                return f":regional_indicator_{c}:"
            return f":number_{c}:"
    return ":asterisk:"


def _row_line(row: Participant, participants: Sequence[Participant], table: ResultsTable, suppressed: AbstractSet[int]) -> str:
    wins = 0
    played = 0
    cells: list[str] = []
    for col in participants:
        o = table[(row.user_id, col.user_id)]
        cells.append(o.symbol)
        cells.append(" ")
        if o.is_win:
            wins += 1
        if o.is_played:
            played += 1
    marker = NO_BELL if row.user_id in suppressed else ""
    return "".join(cells) + f"{wins}/{played} {row.name}{marker}"


@dataclass
class GridParseResult:
    results: ResultsTable
    suppressed: set[int] = field(default_factory=set)
    leftover: int = 0

    @property
    def legend_present(self) -> bool:
        return self.leftover == LEGEND_SYMBOLS


class GridView:
    """
    Emoji results grid for Discord, split over a fixed number of messages.

    Row y reads y's result against each column player, followed by "wins/played name".
    The last message ends with an index row of lettered squares (not read back by parse).
    """

    def render(
        self,
        *,
        participants: Sequence[Participant],
        results: ResultsTable,
        suppressed: AbstractSet[int],
        title: str,
        blocks: int,
    ) -> list[str]:
        if blocks < 1:
            raise RenderBlockMismatchError(0, blocks)

        rows = [_row_line(y, participants, results, suppressed) for y in participants]
        # +1 keeps room for the index row in the final block
        per_block = max(1, math.ceil((len(participants) + 1) / blocks))

        out: list[str] = []
        for i in range(blocks):
            is_last = i == blocks - 1
            chunk = rows[i * per_block :] if is_last else rows[i * per_block : (i + 1) * per_block]

            lines: list[str] = []
            if i == 0:
                lines.append(title)
            lines.extend(chunk)
            if is_last:
                lines.append("".join(index_glyph(p.name) + " " for p in participants) + CONTINUATION)
            out.append("\n".join(lines) if lines else CONTINUATION)
        return out

    def render_matrix(self, matrix: MatchMatrix, *, blocks: int, show_suppressed: bool = True) -> list[str]:
        return self.render(
            participants=matrix.participants,
            results=matrix.results,
            suppressed=matrix.suppressed if show_suppressed else frozenset(),
            title=matrix.title,
            blocks=blocks,
        )

    def parse(self, text: str, participants: Sequence[Participant]) -> GridParseResult:
        """
        Reads a grid back from the concatenated text of its messages.

        Tokens are consumed row by row in participant order. Anything after the
        last grid token is either the legend message (exactly six symbols) or nothing.
        """
        tokens = list(RE_RESULT_SYMBOL.finditer(text or ""))
        n = len(participants)
        expected = n * n
        if len(tokens) < expected:
            raise InsufficientSymbolsError(len(tokens), expected)

        leftover = len(tokens) - expected
        if leftover not in (0, LEGEND_SYMBOLS):
            raise UnexpectedSymbolCountError(leftover)

        results: ResultsTable = {}
        suppressed: set[int] = set()
        pos = 0
        for y in participants:
            for x in participants:
                results[(y.user_id, x.user_id)] = MatchOutcome.from_text(tokens[pos].group(0))
                pos += 1

            suffix_end = tokens[pos].start() if pos < len(tokens) else len(text)
            suffix = text[tokens[pos - 1].end() : suffix_end]
            if f"{y.name}{NO_BELL}" in suffix:
                suppressed.add(y.user_id)

        return GridParseResult(results=results, suppressed=suppressed, leftover=leftover)

    @staticmethod
    def symbol_counts(blocks: Sequence[str]) -> list[int]:
        return [len(RE_RESULT_SYMBOL.findall(b or "")) for b in blocks]
