# services/reprocess_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from domain.errors import IntroNotFoundError, NoGridBlocksError
from domain.models import MatchMatrix, Participant
from renderers.grid_view import CONTINUATION, GridView
from renderers.messages import LEGEND, IntroMatch, has_colon_token, match_intro
from services.matrix_service import MatrixService, normalize_shortname
from services.ports import HistoryMessage, IdentityResolver, MessageSink

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 100


@dataclass(frozen=True)
class ReprocessResult:
    matrix: MatchMatrix
    running: int            # matrices now running in the group
    legend_repaired: bool
    blocks_rewritten: int

    def describe(self) -> str:
        m = self.matrix
        return (
            f"Processed {m.title} ({m.shortname}) with {len(m.participants)} users - "
            f"currently running {self.running} tournaments"
        )


def locate_intro(history_newest_first: Sequence[HistoryMessage]) -> tuple[int, IntroMatch]:
    for i, msg in enumerate(history_newest_first):
        hit = match_intro(msg.text)
        if hit is not None:
            return i, hit
    raise IntroNotFoundError()


def collect_grid_blocks(history_newest_first: Sequence[HistoryMessage], intro_index: int) -> list[HistoryMessage]:
    """
    Messages posted right after the intro, oldest first, for as long as they are
    ours and look like emoji text.
    """
    blocks: list[HistoryMessage] = []
    for msg in reversed(history_newest_first[:intro_index]):
        if not msg.author_is_self:
            break
        # an empty middle block is just the continuation marker
        if not has_colon_token(msg.text) and CONTINUATION not in msg.text:
            break
        blocks.append(msg)
    return blocks


class ReprocessService:
    """
    Rebuilds a matrix purely from what is posted in a channel:

      1. newest intro message -> participant ids + shortname
      2. bot messages right after it -> grid blocks (+ maybe the legend)
      3. GridView.parse -> results + findable opt-outs
      4. legend bookkeeping, re-render into the kept blocks, register
    """

    def __init__(
        self,
        *,
        sink: MessageSink,
        resolver: IdentityResolver,
        matrix_service: MatrixService,
        grid_view: GridView | None = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> None:
        self._sink = sink
        self._resolver = resolver
        self._matrices = matrix_service
        self._grid = grid_view or GridView()
        self._history_limit = int(history_limit)

    async def reprocess(self, *, group_id: int, location_id: int) -> ReprocessResult:
        history = await self._sink.fetch_recent_history(int(location_id), self._history_limit)

        intro_index, intro = locate_intro(history)
        shortname = normalize_shortname(intro.shortname)
        blocks = collect_grid_blocks(history, intro_index)
        if not blocks:
            raise NoGridBlocksError()

        participants: list[Participant] = []
        for uid in intro.user_ids:
            name = await self._resolver.resolve_display_name(group_id, uid)
            participants.append(Participant(user_id=uid, name=name))

        texts = [b.text for b in blocks]
        parsed = self._grid.parse("\n".join(texts), participants)

        legend_repaired = False
        if parsed.legend_present:
            grid_blocks = blocks[:-1]
        else:
            counts = self._grid.symbol_counts(texts)
            expected = len(participants) ** 2
            # a trailing message with no cells is the old legend slot, unless it is the
            # final grid block (index row only), which always ends with the marker
            if len(blocks) >= 2 and sum(counts[:-1]) >= expected and CONTINUATION not in blocks[-1].text:
                await self._sink.edit_block(blocks[-1].handle, LEGEND)
                grid_blocks = blocks[:-1]
            else:
                await self._sink.post_blocks(int(location_id), [LEGEND])
                grid_blocks = blocks
            legend_repaired = True
            logger.warning("Group %s /%s: legend message was missing, regenerated it", group_id, shortname)

        if not grid_blocks:
            raise NoGridBlocksError()

        title_line = grid_blocks[0].text.split("\n", 1)[0].strip()
        matrix = MatchMatrix(
            shortname=shortname,
            title=title_line or shortname,
            location_id=int(location_id),
            participants=participants,
            results=parsed.results,
            suppressed=parsed.suppressed,
            handles=[b.handle for b in grid_blocks],
        )

        lock = self._matrices.group_lock(group_id)
        async with lock:
            rewritten = 0
            rendered = self._grid.render_matrix(matrix, blocks=len(matrix.handles))
            for msg, text in zip(grid_blocks, rendered):
                if msg.text != text:
                    await self._sink.edit_block(msg.handle, text)
                    rewritten += 1

            self._matrices.register(group_id, matrix)
            running = len(self._matrices.list_matrices(group_id))

        logger.info(
            "Group %s: reprocessed /%s with %d players from %d block(s), %d rewritten",
            group_id,
            shortname,
            len(participants),
            len(matrix.handles),
            rewritten,
        )
        return ReprocessResult(
            matrix=matrix,
            running=running,
            legend_repaired=legend_repaired,
            blocks_rewritten=rewritten,
        )
