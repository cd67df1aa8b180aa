# cogs/matrix_cog.py
from __future__ import annotations

import functools
import logging
from typing import Any, Awaitable, Callable, Optional

import discord
from discord import app_commands
from discord.ext import commands

from domain.enums import REPORTABLE_SCORES
from domain.errors import MatrixBotError, NoDraftError
from domain.models import MatchMatrix
from renderers.embeds import Embeds
from services.matrix_service import MatrixService
from services.reprocess_service import ReprocessService

logger = logging.getLogger(__name__)

SCORE_CHOICES = [app_commands.Choice(name=label, value=o.score) for label, o in REPORTABLE_SCORES]
ALL_TOURNAMENTS = app_commands.Choice(name="All tournaments", value="")
MAX_CHOICES = 25


async def create_in_thread(
    matrices: MatrixService,
    *,
    group_id: int,
    location_id: int,
    open_thread: Optional[Callable[[], Awaitable[Any]]] = None,
) -> MatchMatrix:
    """
    Creates the matrix, in a fresh thread when open_thread is given.
    The thread is deleted again if create fails.
    """
    thread = await open_thread() if open_thread is not None else None
    if thread is not None:
        location_id = thread.id

    try:
        return await matrices.create(group_id=group_id, location_id=location_id)
    except Exception:
        if thread is not None:
            try:
                await thread.delete()
            except discord.HTTPException:
                logger.warning("Could not delete thread %s after a failed create", thread.id)
        raise


class MatrixCog(commands.Cog):
    """
    Slash commands for round-robin match matrices.

    Fixed commands live here; every running matrix additionally gets its own
    guild command /<shortname> (score + opponent choices), rebuilt whenever the
    set of matrices in a guild changes.
    """

    def __init__(
        self,
        bot: commands.Bot,
        *,
        matrix_service: MatrixService,
        reprocess_service: ReprocessService,
        embeds: Embeds,
    ) -> None:
        self.bot = bot
        self.matrices = matrix_service
        self.reprocessor = reprocess_service
        self.embeds = embeds
        self._report_commands: dict[int, set[str]] = {}

    # -----------------------------
    # Helpers
    # -----------------------------

    async def _run(
        self,
        interaction: discord.Interaction,
        title: str,
        action: Callable[[discord.Guild], Awaitable[str]],
    ) -> None:
        if not interaction.guild:
            await interaction.response.send_message("Use this in a server.", ephemeral=True)
            return
        await interaction.response.defer(ephemeral=True, thinking=True)

        try:
            text = await action(interaction.guild)
        except MatrixBotError as ex:
            logger.info("/%s failed for %s: %s", interaction.command.name if interaction.command else "?", interaction.user.id, ex)
            await interaction.followup.send(embed=self.embeds.error(title=f"{title} failed", description=str(ex)), ephemeral=True)
            return
        except Exception as ex:
            logger.exception("Unexpected error in /%s", interaction.command.name if interaction.command else "?")
            await interaction.followup.send(embed=self.embeds.error(title=f"{title} failed", description=str(ex)), ephemeral=True)
            return

        await interaction.followup.send(embed=self.embeds.success(title=title, description=text), ephemeral=True)

    async def _tournament_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        if interaction.guild_id is None:
            return []
        cur = (current or "").strip().lower()
        out = [
            app_commands.Choice(name=title[:100], value=shortname)
            for shortname, title in self.matrices.list_matrices(interaction.guild_id).items()
            if not cur or cur in shortname or cur in title.lower()
        ]
        return out[:MAX_CHOICES]

    async def _tournament_or_all_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        return [ALL_TOURNAMENTS] + (await self._tournament_autocomplete(interaction, current))[: MAX_CHOICES - 1]

    def _build_report_command(self, matrix: MatchMatrix) -> app_commands.Command:
        shortname = matrix.shortname

        async def report_for_matrix(interaction: discord.Interaction, score: str, opponent: str) -> None:
            async def action(guild: discord.Guild) -> str:
                m = await self.matrices.report(
                    group_id=guild.id,
                    shortname=shortname,
                    reporter_id=interaction.user.id,
                    opponent_id=int(opponent),
                    score=score,
                )
                return f"Recorded {score} against <@{int(opponent)}> in **{m.title}**."

            await self._run(interaction, "Result recorded", action)

        # Discord caps choices at 25; bigger groups report through /result instead
        opponents = [
            app_commands.Choice(name=p.name[:100], value=str(p.user_id)) for p in matrix.participants[:MAX_CHOICES]
        ]
        report_for_matrix = app_commands.describe(
            score="What was the match score (you first)",
            opponent="Who was your opponent",
        )(report_for_matrix)
        report_for_matrix = app_commands.choices(score=SCORE_CHOICES, opponent=opponents)(report_for_matrix)

        return app_commands.Command(
            name=shortname,
            description=f"Submit result for {matrix.title}"[:100],
            callback=report_for_matrix,
        )

    async def _sync_report_commands(self, guild_id: int) -> None:
        guild = discord.Object(id=guild_id)
        registered = self._report_commands.setdefault(guild_id, set())
        for name in registered:
            self.bot.tree.remove_command(name, guild=guild)
        registered.clear()

        for matrix in self.matrices.matrices(guild_id):
            self.bot.tree.add_command(self._build_report_command(matrix), guild=guild, override=True)
            registered.add(matrix.shortname)

        await self.bot.tree.sync(guild=guild)
        logger.info("Guild %s: synced %d report command(s)", guild_id, len(registered))

    # -----------------------------
    # Setup flow
    # -----------------------------

    @app_commands.command(name="begin", description="Begin setting up a new match matrix")
    @app_commands.default_permissions(moderate_members=True)
    @app_commands.describe(title="The name of the thread to make", cmd="The new command-name for results (lower case, no spaces)")
    async def begin(self, interaction: discord.Interaction, title: str, cmd: str) -> None:
        async def action(guild: discord.Guild) -> str:
            draft = await self.matrices.begin(group_id=guild.id, title=title, shortname=cmd)
            return f"Setting up **{draft.title}** (`/{draft.shortname}`). Add players with /add, then /create."

        await self._run(interaction, "Setup started", action)

    @app_commands.command(name="add", description="Add user(s) for setup")
    @app_commands.default_permissions(moderate_members=True)
    async def add(
        self,
        interaction: discord.Interaction,
        player: discord.Member,
        player2: Optional[discord.Member] = None,
        player3: Optional[discord.Member] = None,
        player4: Optional[discord.Member] = None,
        player5: Optional[discord.Member] = None,
        player6: Optional[discord.Member] = None,
        player7: Optional[discord.Member] = None,
        player8: Optional[discord.Member] = None,
        player9: Optional[discord.Member] = None,
        player10: Optional[discord.Member] = None,
    ) -> None:
        members = [m for m in (player, player2, player3, player4, player5, player6, player7, player8, player9, player10) if m]

        async def action(guild: discord.Guild) -> str:
            res = await self.matrices.add_participants(group_id=guild.id, user_ids=[m.id for m in members])
            return res.describe()

        await self._run(interaction, "Players added", action)

    @app_commands.command(name="cancel", description="Cancel the current match matrix setup")
    @app_commands.default_permissions(moderate_members=True)
    async def cancel(self, interaction: discord.Interaction) -> None:
        async def action(guild: discord.Guild) -> str:
            await self.matrices.cancel(group_id=guild.id)
            return "Setup cancelled."

        await self._run(interaction, "Cancelled", action)

    @app_commands.command(name="create", description="Create the match results matrix thread in this channel")
    @app_commands.default_permissions(moderate_members=True)
    async def create(self, interaction: discord.Interaction) -> None:
        async def action(guild: discord.Guild) -> str:
            draft = self.matrices.draft(guild.id)
            if draft is None:
                raise NoDraftError()

            # a thread per matrix; inside an existing thread, post right there
            channel = interaction.channel
            open_thread = None
            if isinstance(channel, discord.TextChannel):
                open_thread = functools.partial(
                    channel.create_thread,
                    name=draft.title[:100],
                    type=discord.ChannelType.public_thread,
                )

            matrix = await create_in_thread(
                self.matrices,
                group_id=guild.id,
                location_id=interaction.channel_id,
                open_thread=open_thread,
            )
            await self._sync_report_commands(guild.id)
            return f"Created **{matrix.title}** in <#{matrix.location_id}>. Players report with `/{matrix.shortname}` or `/result`."

        await self._run(interaction, "Match matrix created", action)

    # -----------------------------
    # Running matrices
    # -----------------------------

    @app_commands.command(name="result", description="Report a match result with arbitrary users for the current results thread")
    @app_commands.describe(
        score="What was the match score",
        opponent="The second player in the match",
        player="Use an alternative first player in the match (otherwise assumed to be you)",
    )
    @app_commands.choices(score=SCORE_CHOICES)
    async def result(
        self,
        interaction: discord.Interaction,
        score: str,
        opponent: discord.Member,
        player: Optional[discord.Member] = None,
    ) -> None:
        async def action(guild: discord.Guild) -> str:
            m = await self.matrices.report(
                group_id=guild.id,
                location_id=interaction.channel_id,
                reporter_id=interaction.user.id,
                player_id=player.id if player else None,
                opponent_id=opponent.id,
                score=score,
            )
            return f"Recorded {score} against {opponent.display_name} in **{m.title}**."

        await self._run(interaction, "Result recorded", action)

    @app_commands.command(name="end", description="End a match matrix, posting final results in this channel")
    @app_commands.default_permissions(moderate_members=True)
    @app_commands.describe(tournament="The tournament to end")
    @app_commands.autocomplete(tournament=_tournament_autocomplete)
    async def end(self, interaction: discord.Interaction, tournament: str) -> None:
        async def action(guild: discord.Guild) -> str:
            m = await self.matrices.end(group_id=guild.id, shortname=tournament, location_id=interaction.channel_id)
            await self._sync_report_commands(guild.id)
            return f"Ended **{m.title}**. `/{m.shortname}` has been removed."

        await self._run(interaction, "Match matrix ended", action)

    @app_commands.command(name="reprocess", description="Read this channel's matrix info into storage. Also resets unavailable report commands")
    @app_commands.default_permissions(moderate_members=True)
    async def reprocess(self, interaction: discord.Interaction) -> None:
        async def action(guild: discord.Guild) -> str:
            res = await self.reprocessor.reprocess(group_id=guild.id, location_id=interaction.channel_id)
            await self._sync_report_commands(guild.id)
            return res.describe()

        await self._run(interaction, "Reprocessed", action)

    @app_commands.command(name="ping", description="Silent ping all players of a tournament")
    @app_commands.default_permissions(moderate_members=True)
    @app_commands.describe(tournament="Ping a tournament")
    @app_commands.autocomplete(tournament=_tournament_autocomplete)
    async def ping(self, interaction: discord.Interaction, tournament: str) -> None:
        async def action(guild: discord.Guild) -> str:
            await self.matrices.ping(group_id=guild.id, shortname=tournament, location_id=interaction.channel_id)
            return "Pinged."

        await self._run(interaction, "Ping sent", action)

    @app_commands.command(name="fam", description="Find A Match: Ping other players that you haven't played yet")
    @app_commands.describe(tournament="Ping which opponents")
    @app_commands.autocomplete(tournament=_tournament_or_all_autocomplete)
    async def fam(self, interaction: discord.Interaction, tournament: str = "") -> None:
        async def action(guild: discord.Guild) -> str:
            await self.matrices.find_a_match(
                group_id=guild.id,
                user_id=interaction.user.id,
                location_id=interaction.channel_id,
                shortname=tournament or None,
            )
            return "Looking for opponents."

        await self._run(interaction, "Find a match", action)

    @app_commands.command(name="findable", description="Enable or disable pinging for Find A Match")
    @app_commands.describe(
        tournament="Which tournaments to enable/disable Find A Match pings?",
        findable="Do you want to allow pings (true) or disable them (false)?",
    )
    @app_commands.autocomplete(tournament=_tournament_or_all_autocomplete)
    async def findable(self, interaction: discord.Interaction, tournament: str, findable: bool) -> None:
        async def action(guild: discord.Guild) -> str:
            n = await self.matrices.set_findable(
                group_id=guild.id,
                user_id=interaction.user.id,
                enabled=findable,
                shortname=tournament or None,
            )
            return f"{n} findable statuses changed"

        await self._run(interaction, "Findable updated", action)


async def setup(
    bot: commands.Bot,
    *,
    matrix_service: MatrixService,
    reprocess_service: ReprocessService,
    embeds: Embeds,
) -> None:
    await bot.add_cog(
        MatrixCog(
            bot,
            matrix_service=matrix_service,
            reprocess_service=reprocess_service,
            embeds=embeds,
        )
    )
