# services/identity_service.py
from __future__ import annotations

import logging
from typing import Iterable, Sequence

import discord

from domain.errors import NotAMemberError, SinkError
from domain.models import BlockHandle
from services.ports import HistoryMessage

logger = logging.getLogger(__name__)


class DiscordIdentityResolver:
    """
    user id -> display name in a guild.
    Prefers the cached Member, falls back to one API fetch.
    """

    def __init__(self, client: discord.Client) -> None:
        self._client = client

    async def resolve_display_name(self, group_id: int, user_id: int) -> str:
        try:
            guild = self._client.get_guild(group_id) or await self._client.fetch_guild(group_id)
            member = guild.get_member(user_id)
            if member is None:
                member = await guild.fetch_member(user_id)
        except discord.NotFound as e:
            raise NotAMemberError(user_id) from e
        except discord.HTTPException as e:
            raise SinkError(f"Could not look up user {user_id}: {e}") from e
        return member.display_name


class DiscordMessageSink:
    """
    Posts / edits / reads plain text messages in a channel or thread.
    Every Discord failure surfaces as SinkError so the cog can report it.
    """

    def __init__(self, client: discord.Client) -> None:
        self._client = client

    async def _channel(self, location_id: int) -> discord.abc.Messageable:
        ch = self._client.get_channel(location_id)
        if ch is None:
            try:
                ch = await self._client.fetch_channel(location_id)
            except discord.HTTPException as e:
                raise SinkError(f"Channel {location_id} is not reachable: {e}") from e
        return ch  # type: ignore[return-value]

    async def post_blocks(
        self,
        location_id: int,
        texts: Sequence[str],
        *,
        mention_ids: Iterable[int] = (),
        silent: bool = False,
    ) -> list[BlockHandle]:
        ch = await self._channel(location_id)
        ids = list(mention_ids)
        if ids:
            allowed = discord.AllowedMentions(
                everyone=False,
                roles=False,
                users=[discord.Object(id=int(u)) for u in ids],
            )
        else:
            allowed = discord.AllowedMentions.none()

        handles: list[BlockHandle] = []
        for text in texts:
            try:
                msg = await ch.send(content=text, allowed_mentions=allowed, silent=silent)
            except discord.HTTPException as e:
                raise SinkError(f"Failed to post message {len(handles) + 1}/{len(texts)}: {e}") from e
            handles.append(BlockHandle(location_id=int(location_id), message_id=msg.id))
        return handles

    async def edit_block(self, handle: BlockHandle, text: str) -> None:
        ch = await self._channel(handle.location_id)
        try:
            await ch.get_partial_message(handle.message_id).edit(content=text)  # type: ignore[attr-defined]
        except discord.HTTPException as e:
            raise SinkError(f"Failed to edit message {handle.message_id}: {e}") from e

    async def fetch_recent_history(self, location_id: int, max_count: int) -> list[HistoryMessage]:
        ch = await self._channel(location_id)
        me = self._client.user.id if self._client.user else None
        out: list[HistoryMessage] = []
        try:
            async for msg in ch.history(limit=max_count):
                out.append(
                    HistoryMessage(
                        author_is_self=msg.author.id == me,
                        text=msg.content,
                        handle=BlockHandle(location_id=int(location_id), message_id=msg.id),
                    )
                )
        except discord.HTTPException as e:
            raise SinkError(f"Failed to read channel history: {e}") from e
        logger.debug("Read %d messages from %s", len(out), location_id)
        return out
