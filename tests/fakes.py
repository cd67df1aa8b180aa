# tests/fakes.py
from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from domain.errors import NotAMemberError, SinkError
from domain.models import BlockHandle, Participant
from services.ports import HistoryMessage


@dataclass
class PostedMessage:
    handle: BlockHandle
    text: str
    by_bot: bool = True
    mention_ids: tuple[int, ...] = ()
    silent: bool = False


@dataclass
class FakeSink:
    """In-memory chat: one ordered transcript per location, oldest first."""

    fail_after_posts: int | None = None
    fail_edits: bool = False
    messages: dict[int, list[PostedMessage]] = field(default_factory=dict)
    edits: list[tuple[BlockHandle, str]] = field(default_factory=list)
    _ids: itertools.count = field(default_factory=lambda: itertools.count(1000))
    _posts: int = 0

    def transcript(self, location_id: int) -> list[PostedMessage]:
        return self.messages.setdefault(location_id, [])

    def texts(self, location_id: int) -> list[str]:
        return [m.text for m in self.transcript(location_id)]

    def add_human_message(self, location_id: int, text: str) -> None:
        self.transcript(location_id).append(
            PostedMessage(handle=BlockHandle(location_id, next(self._ids)), text=text, by_bot=False)
        )

    def text_of(self, handle: BlockHandle) -> str:
        for m in self.transcript(handle.location_id):
            if m.handle == handle:
                return m.text
        raise KeyError(handle)

    async def post_blocks(
        self,
        location_id: int,
        texts: Sequence[str],
        *,
        mention_ids: Iterable[int] = (),
        silent: bool = False,
    ) -> list[BlockHandle]:
        handles = []
        for text in texts:
            if self.fail_after_posts is not None and self._posts >= self.fail_after_posts:
                raise SinkError("simulated post failure")
            self._posts += 1
            h = BlockHandle(location_id, next(self._ids))
            self.transcript(location_id).append(
                PostedMessage(handle=h, text=text, mention_ids=tuple(mention_ids), silent=silent)
            )
            handles.append(h)
        return handles

    async def edit_block(self, handle: BlockHandle, text: str) -> None:
        if self.fail_edits:
            raise SinkError("simulated edit failure")
        for m in self.transcript(handle.location_id):
            if m.handle == handle:
                m.text = text
                self.edits.append((handle, text))
                return
        raise SinkError(f"unknown message {handle.message_id}")

    async def fetch_recent_history(self, location_id: int, max_count: int) -> list[HistoryMessage]:
        msgs = self.transcript(location_id)[-max_count:]
        return [HistoryMessage(author_is_self=m.by_bot, text=m.text, handle=m.handle) for m in reversed(msgs)]


@dataclass
class FakeResolver:
    names: dict[int, str] = field(default_factory=dict)

    async def resolve_display_name(self, group_id: int, user_id: int) -> str:
        if user_id not in self.names:
            raise NotAMemberError(user_id)
        return self.names[user_id]


def players(*names: str, start: int = 1) -> list[Participant]:
    return [Participant(user_id=start + i, name=n) for i, n in enumerate(names)]
