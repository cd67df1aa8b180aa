# services/ports.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Protocol, Sequence

from domain.models import BlockHandle


@dataclass(frozen=True)
class HistoryMessage:
    author_is_self: bool
    text: str
    handle: BlockHandle


class MessageSink(Protocol):
    """
    Where rendered text goes. The chat transcript is the only durable store,
    so every state the bot has must be readable back through fetch_recent_history.
    """

    async def post_blocks(
        self,
        location_id: int,
        texts: Sequence[str],
        *,
        mention_ids: Iterable[int] = (),
        silent: bool = False,
    ) -> list[BlockHandle]:
        ...

    async def edit_block(self, handle: BlockHandle, text: str) -> None:
        ...

    async def fetch_recent_history(self, location_id: int, max_count: int) -> list[HistoryMessage]:
        """Newest first."""
        ...


class IdentityResolver(Protocol):
    async def resolve_display_name(self, group_id: int, user_id: int) -> str:
        ...
