# main.py
from __future__ import annotations

import asyncio
import logging
import signal

import discord
from discord.ext import commands

from config import load_config

from services.identity_service import DiscordIdentityResolver, DiscordMessageSink
from services.matrix_service import MatrixService
from services.reprocess_service import ReprocessService

from renderers.embeds import Embeds
from renderers.grid_view import GridView

from cogs.matrix_cog import setup as setup_matrix_cog


class MatrixBot(commands.Bot):
    def __init__(self) -> None:
        self.cfg = load_config()

        intents = discord.Intents.default()
        # /reprocess reads the grid back out of channel history
        intents.message_content = True
        super().__init__(
            command_prefix=self.cfg.command_prefix,
            intents=intents,
            allowed_mentions=discord.AllowedMentions.none(),
        )

    async def setup_hook(self) -> None:
        logging.info("Starting setup_hook...")

        # --- Ports ---
        sink = DiscordMessageSink(self)
        resolver = DiscordIdentityResolver(self)

        # --- Services ---
        grid_view = GridView()
        matrix_service = MatrixService(
            sink=sink,
            resolver=resolver,
            grid_view=grid_view,
            char_budget=self.cfg.block_char_budget,
        )
        reprocess_service = ReprocessService(
            sink=sink,
            resolver=resolver,
            matrix_service=matrix_service,
            grid_view=grid_view,
            history_limit=self.cfg.history_limit,
        )

        # --- Cogs ---
        await setup_matrix_cog(
            self,
            matrix_service=matrix_service,
            reprocess_service=reprocess_service,
            embeds=Embeds(),
        )

        # --- Slash sync ---
        if self.cfg.dev_guild_id:
            guild = discord.Object(id=self.cfg.dev_guild_id)
            self.tree.copy_global_to(guild=guild)
            await self.tree.sync(guild=guild)
            logging.info("Slash commands synced to DEV guild %s", self.cfg.dev_guild_id)
        else:
            await self.tree.sync()
            logging.info("Slash commands synced globally")

        logging.info("setup_hook complete. Running matrices are rebuilt per channel with /reprocess.")


async def _run_bot() -> None:
    cfg = load_config()

    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    bot = MatrixBot()

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def _request_stop(*_args) -> None:
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _request_stop)
        except NotImplementedError:
            pass

    async with bot:
        runner = asyncio.create_task(bot.start(cfg.token))
        await stop_event.wait()
        await bot.close()
        await runner


def main() -> None:
    asyncio.run(_run_bot())


if __name__ == "__main__":
    main()
