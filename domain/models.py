# domain/models.py
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, Optional

from domain.enums import MatchOutcome
from domain.errors import DuplicateParticipantError, SelfMatchError, UnknownParticipantError

# Rough characters per grid cell (glyph shortcode + space) and per message.
CELL_CHARS = 25
BLOCK_CHAR_BUDGET = 1800
MESSAGE_CHAR_LIMIT = 2000

# (row_user_id, col_user_id) -> outcome for the row player
ResultsTable = dict[tuple[int, int], MatchOutcome]


def block_count(n_participants: int, *, char_budget: int = BLOCK_CHAR_BUDGET) -> int:
    """
    How many messages a grid of n players needs.
    (n+1)^2 cells (rows + header/index row) at ~25 chars each, split into ~1800 char messages.

    Rows are dealt out ceil((n+1)/blocks) per message, which can overshoot the
    budget, so the count grows until the fullest message fits Discord's limit.
    Somewhere past 80 players a single row is already over the limit.
    """
    side = n_participants + 1
    blocks = (side * side * CELL_CHARS) // char_budget + 1
    while blocks < side and math.ceil(side / blocks) * side * CELL_CHARS > MESSAGE_CHAR_LIMIT:
        blocks += 1
    return blocks


@dataclass(frozen=True)
class Participant:
    user_id: int
    name: str   # display name snapshot taken when added

    @property
    def mention(self) -> str:
        return f"<@{int(self.user_id)}>"


@dataclass(frozen=True)
class BlockHandle:
    location_id: int
    message_id: int


@dataclass
class SetupDraft:
    title: str
    shortname: str
    participants: list[Participant] = field(default_factory=list)

    def has(self, user_id: int) -> bool:
        return any(p.user_id == user_id for p in self.participants)


def initial_table(participants: Iterable[Participant]) -> ResultsTable:
    ps = list(participants)
    seen: set[int] = set()
    for p in ps:
        if p.user_id in seen:
            raise DuplicateParticipantError(p.user_id)
        seen.add(p.user_id)

    table: ResultsTable = {}
    for row in ps:
        for col in ps:
            table[(row.user_id, col.user_id)] = (
                MatchOutcome.UNPLAYABLE if row.user_id == col.user_id else MatchOutcome.UNPLAYED
            )
    return table


@dataclass
class MatchMatrix:
    """
    One round-robin group: fixed participant order, the full pairwise table,
    findable opt-outs and the messages currently showing the grid.

    Cell (a, b) is a's result against b, shown on a's row in b's column.
    """

    shortname: str
    title: str
    location_id: int
    participants: list[Participant]
    results: ResultsTable
    suppressed: set[int] = field(default_factory=set)
    handles: list[BlockHandle] = field(default_factory=list)

    @classmethod
    def initialize(
        cls,
        participants: Iterable[Participant],
        *,
        shortname: str,
        title: str,
        location_id: int,
    ) -> "MatchMatrix":
        ps = list(participants)
        return cls(
            shortname=shortname,
            title=title,
            location_id=location_id,
            participants=ps,
            results=initial_table(ps),
        )

    # -------------------------
    # Lookups
    # -------------------------

    def participant(self, user_id: int) -> Optional[Participant]:
        for p in self.participants:
            if p.user_id == user_id:
                return p
        return None

    def require(self, user_id: int) -> Participant:
        p = self.participant(user_id)
        if p is None:
            raise UnknownParticipantError(user_id)
        return p

    def outcome(self, row_id: int, col_id: int) -> MatchOutcome:
        return self.results[(row_id, col_id)]

    # -------------------------
    # Mutations
    # -------------------------

    def report_result(self, reporter_id: int, opponent_id: int, outcome: MatchOutcome) -> None:
        """
        Sets (reporter, opponent) to invert(outcome) and (opponent, reporter) to outcome.
        Validation happens first so either both cells change or neither does.
        """
        if reporter_id == opponent_id:
            raise SelfMatchError()
        self.require(reporter_id)
        self.require(opponent_id)

        self.results[(reporter_id, opponent_id)] = outcome.invert()
        self.results[(opponent_id, reporter_id)] = outcome

    def set_visibility(self, user_id: int, visible: bool) -> bool:
        self.require(user_id)
        if visible:
            if user_id not in self.suppressed:
                return False
            self.suppressed.discard(user_id)
            return True
        if user_id in self.suppressed:
            return False
        self.suppressed.add(user_id)
        return True

    # -------------------------
    # Derived
    # -------------------------

    def summary_for(self, user_id: int) -> tuple[int, int]:
        wins = 0
        played = 0
        for col in self.participants:
            o = self.results[(user_id, col.user_id)]
            if o.is_win:
                wins += 1
            if o.is_played:
                played += 1
        return wins, played

    def unplayed_opponents(self, user_id: int) -> list[Participant]:
        # the diagonal is UNPLAYABLE so the player never lists themself
        return [p for p in self.participants if self.results[(user_id, p.user_id)] is MatchOutcome.UNPLAYED]

    def is_symmetric(self) -> bool:
        for a in self.participants:
            if self.results[(a.user_id, a.user_id)] is not MatchOutcome.UNPLAYABLE:
                return False
            for b in self.participants:
                if self.results[(a.user_id, b.user_id)] is not self.results[(b.user_id, a.user_id)].invert():
                    return False
        return True
