# services/matrix_service.py
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

from domain.enums import MatchOutcome
from domain.errors import (
    DraftAlreadyInProgressError,
    InvalidShortnameError,
    MatrixNotFoundError,
    NoDraftError,
)
from domain.models import BLOCK_CHAR_BUDGET, MatchMatrix, Participant, SetupDraft, block_count
from renderers.grid_view import GridView
from renderers.messages import LEGEND, FindAMatch, find_a_match, intro_text, mentions, report_line
from services.ports import IdentityResolver, MessageSink

logger = logging.getLogger(__name__)

# Discord application command naming: letters/digits of any script, '-' and '_'.
# \w misses combining vowel signs, so Devanagari and Thai blocks are listed whole.
RE_SHORTNAME = re.compile(r"[-\w\u0900-\u097F\u0E00-\u0E7F]{1,32}")


def normalize_shortname(shortname: str) -> str:
    s = (shortname or "").strip().lower()
    if not RE_SHORTNAME.fullmatch(s):
        raise InvalidShortnameError(shortname)
    return s


@dataclass
class GroupState:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    draft: Optional[SetupDraft] = None
    matrices: dict[str, MatchMatrix] = field(default_factory=dict)


@dataclass(frozen=True)
class AddResult:
    added: list[Participant]
    already_present: list[Participant]
    roster: list[Participant]

    def describe(self) -> str:
        extra = "".join(f"{p.name} already included.\n" for p in self.already_present)
        names = ", ".join(p.name for p in self.roster)
        return f"{extra}Added {len(self.added)} new players. Full list of {len(self.roster)}: {names}"


class MatrixService:
    """
    Setup flow + running match matrices, one exclusive cell per group (guild).

      begin -> add* -> create      (cancel drops the draft at any point)
      report / set_findable         mutate a running matrix, then re-render it
      end                           final snapshot, then forget the matrix

    In-memory matrices are only a cache of what is posted in chat;
    ReprocessService rebuilds them from history after a restart.

    Mutations happen before the chat edit. If the edit fails the grid in chat is
    stale until the next successful render or a /reprocess.
    """

    def __init__(
        self,
        *,
        sink: MessageSink,
        resolver: IdentityResolver,
        grid_view: GridView | None = None,
        char_budget: int = BLOCK_CHAR_BUDGET,
    ) -> None:
        self._sink = sink
        self._resolver = resolver
        self._grid = grid_view or GridView()
        self._char_budget = int(char_budget)
        self._groups: dict[int, GroupState] = {}

    # -------------------------
    # Group cells
    # -------------------------

    def _state(self, group_id: int) -> GroupState:
        return self._groups.setdefault(int(group_id), GroupState())

    def group_lock(self, group_id: int) -> asyncio.Lock:
        return self._state(group_id).lock

    def block_count(self, n_participants: int) -> int:
        return block_count(n_participants, char_budget=self._char_budget)

    def draft(self, group_id: int) -> Optional[SetupDraft]:
        return self._state(group_id).draft

    def list_matrices(self, group_id: int) -> dict[str, str]:
        return {k: m.title for k, m in self._state(group_id).matrices.items()}

    def matrices(self, group_id: int) -> list[MatchMatrix]:
        return list(self._state(group_id).matrices.values())

    def get_matrix(self, group_id: int, shortname: str) -> MatchMatrix:
        m = self._state(group_id).matrices.get((shortname or "").lower())
        if m is None:
            raise MatrixNotFoundError(f"/{shortname}")
        return m

    def find_by_location(self, group_id: int, location_id: int) -> MatchMatrix:
        for m in self._state(group_id).matrices.values():
            if m.location_id == int(location_id):
                return m
        raise MatrixNotFoundError("this channel")

    def register(self, group_id: int, matrix: MatchMatrix) -> None:
        """Register (or replace) a matrix. Caller holds the group lock."""
        self._state(group_id).matrices[matrix.shortname] = matrix

    # -------------------------
    # Setup flow
    # -------------------------

    async def begin(self, *, group_id: int, title: str, shortname: str) -> SetupDraft:
        state = self._state(group_id)
        async with state.lock:
            if state.draft is not None:
                raise DraftAlreadyInProgressError()
            draft = SetupDraft(title=title.strip(), shortname=normalize_shortname(shortname))
            state.draft = draft
            logger.info("Group %s: began setup of %r (/%s)", group_id, draft.title, draft.shortname)
            return draft

    async def add_participants(self, *, group_id: int, user_ids: Iterable[int]) -> AddResult:
        state = self._state(group_id)
        async with state.lock:
            draft = state.draft
            if draft is None:
                raise NoDraftError()

            # resolve everyone first so a resolver failure leaves the draft untouched
            resolved: list[Participant] = []
            for uid in user_ids:
                name = await self._resolver.resolve_display_name(group_id, int(uid))
                resolved.append(Participant(user_id=int(uid), name=name))

            added: list[Participant] = []
            already: list[Participant] = []
            for p in resolved:
                if draft.has(p.user_id):
                    already.append(p)
                    continue
                draft.participants.append(p)
                added.append(p)

            return AddResult(added=added, already_present=already, roster=list(draft.participants))

    async def cancel(self, *, group_id: int) -> None:
        state = self._state(group_id)
        async with state.lock:
            if state.draft is None:
                raise NoDraftError()
            logger.info("Group %s: cancelled setup of /%s", group_id, state.draft.shortname)
            state.draft = None

    async def create(self, *, group_id: int, location_id: int) -> MatchMatrix:
        """
        Posts intro, grid blocks and legend to location_id.
        The matrix is registered and the draft consumed only if every post succeeded.
        """
        state = self._state(group_id)
        async with state.lock:
            draft = state.draft
            if draft is None:
                raise NoDraftError()

            matrix = MatchMatrix.initialize(
                draft.participants,
                shortname=draft.shortname,
                title=draft.title,
                location_id=int(location_id),
            )
            texts = self._grid.render_matrix(matrix, blocks=self.block_count(len(matrix.participants)))

            await self._sink.post_blocks(
                matrix.location_id,
                [intro_text(matrix.participants, matrix.shortname)],
                mention_ids=[p.user_id for p in matrix.participants],
                silent=True,
            )
            matrix.handles = await self._sink.post_blocks(matrix.location_id, texts)
            await self._sink.post_blocks(matrix.location_id, [LEGEND])

            state.matrices[matrix.shortname] = matrix
            state.draft = None
            logger.info(
                "Group %s: created /%s with %d players in %d block(s)",
                group_id,
                matrix.shortname,
                len(matrix.participants),
                len(matrix.handles),
            )
            return matrix

    # -------------------------
    # Running matrices
    # -------------------------

    async def _refresh(self, matrix: MatchMatrix) -> None:
        n = len(matrix.handles)
        expected = self.block_count(len(matrix.participants))
        if n != expected:
            logger.warning(
                "/%s is shown in %d block(s) but the size budget asks for %d; keeping %d",
                matrix.shortname,
                n,
                expected,
                n,
            )
        texts = self._grid.render_matrix(matrix, blocks=n)
        for handle, text in zip(matrix.handles, texts):
            await self._sink.edit_block(handle, text)

    def _resolve_target(self, group_id: int, *, shortname: str | None, location_id: int | None) -> MatchMatrix:
        if shortname:
            return self.get_matrix(group_id, shortname)
        if location_id is not None:
            return self.find_by_location(group_id, location_id)
        raise MatrixNotFoundError("this channel")

    async def report(
        self,
        *,
        group_id: int,
        reporter_id: int,
        opponent_id: int,
        score: str,
        shortname: str | None = None,
        location_id: int | None = None,
        player_id: int | None = None,
    ) -> MatchMatrix:
        """
        score is from the player's side ("you first"). player defaults to the reporter.
        Without a shortname the matrix living in location_id is used (/result).
        """
        outcome = MatchOutcome.from_text(score)
        player_id = int(player_id if player_id is not None else reporter_id)

        state = self._state(group_id)
        async with state.lock:
            matrix = self._resolve_target(group_id, shortname=shortname, location_id=location_id)
            player = matrix.require(player_id)
            opponent = matrix.require(int(opponent_id))

            # the opponent's cell takes the inverted score, so the player's row shows `score`
            matrix.report_result(opponent.user_id, player.user_id, outcome)
            logger.info(
                "Group %s /%s: %s reported %s %s %s",
                group_id,
                matrix.shortname,
                reporter_id,
                player.name,
                outcome.score,
                opponent.name,
            )

            await self._sink.post_blocks(
                matrix.location_id,
                [report_line(reporter_id, player, score, opponent)],
            )
            await self._refresh(matrix)
            return matrix

    async def set_findable(
        self,
        *,
        group_id: int,
        user_id: int,
        enabled: bool,
        shortname: str | None = None,
    ) -> int:
        """Returns how many matrices actually changed (only those are re-rendered)."""
        state = self._state(group_id)
        async with state.lock:
            if shortname and shortname.lower() not in state.matrices:
                raise MatrixNotFoundError(f"/{shortname}")

            changed = 0
            for name, matrix in state.matrices.items():
                if shortname and name != shortname.lower():
                    continue
                if matrix.participant(int(user_id)) is None:
                    continue
                if matrix.set_visibility(int(user_id), bool(enabled)):
                    changed += 1
                    await self._refresh(matrix)
            return changed

    async def end(self, *, group_id: int, shortname: str, location_id: int) -> MatchMatrix:
        state = self._state(group_id)
        async with state.lock:
            matrix = self.get_matrix(group_id, shortname)

            texts = self._grid.render_matrix(
                matrix,
                blocks=self.block_count(len(matrix.participants)),
                show_suppressed=False,
            )
            await self._sink.post_blocks(int(location_id), texts)
            del state.matrices[matrix.shortname]
            logger.info("Group %s: ended /%s", group_id, matrix.shortname)
            return matrix

    async def ping(self, *, group_id: int, shortname: str, location_id: int) -> None:
        state = self._state(group_id)
        async with state.lock:
            matrix = self.get_matrix(group_id, shortname)
            participants = list(matrix.participants)

        await self._sink.post_blocks(
            int(location_id),
            [mentions(participants)],
            mention_ids=[p.user_id for p in participants],
            silent=True,
        )

    async def find_a_match(
        self,
        *,
        group_id: int,
        user_id: int,
        location_id: int,
        shortname: str | None = None,
    ) -> FindAMatch:
        state = self._state(group_id)
        async with state.lock:
            if shortname:
                selected = [self.get_matrix(group_id, shortname)]
            else:
                selected = list(state.matrices.values())
            fam = find_a_match(int(user_id), selected)

        await self._sink.post_blocks(int(location_id), [fam.text], mention_ids=fam.mention_ids)
        return fam
