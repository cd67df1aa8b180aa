# renderers/embeds.py
from __future__ import annotations

from dataclasses import dataclass

import discord


@dataclass(frozen=True)
class EmbedTheme:
    primary: int = 0x6C7A89   # slate
    success: int = 0x2ECC71
    danger: int = 0xE74C3C


class Embeds:
    """
    Command responses. The grid itself is plain message text, never an embed,
    because it has to be read back by /reprocess.
    """

    def __init__(self, *, theme: EmbedTheme | None = None, footer: str = "Match Matrix") -> None:
        self._theme = theme or EmbedTheme()
        self._footer = footer

    def base(self, *, title: str, description: str | None = None, color: int | None = None) -> discord.Embed:
        e = discord.Embed(
            title=title,
            description=(description or "")[:4096] or None,
            color=color if color is not None else self._theme.primary,
        )
        e.set_footer(text=self._footer)
        return e

    def success(self, *, title: str, description: str | None = None) -> discord.Embed:
        return self.base(title=title, description=description, color=self._theme.success)

    def error(self, *, title: str, description: str | None = None) -> discord.Embed:
        return self.base(title=title, description=description, color=self._theme.danger)
