from __future__ import annotations

import logging

import discord
from discord.ext import commands

from application.services import (
    ExternalContext,
    OperationResult,
    RoomDirectory,
    change_username,
    clear_all,
    clear_estimate,
    describe_table,
    submit_estimate,
    toggle_reveal,
    toggle_spectator,
)
from domain.models import ESTIMATE_LABELS
from infrastructure.names import generate_room_id

logger = logging.getLogger(__name__)


def _build_external_context(user: discord.abc.User) -> ExternalContext:
    """Create an `ExternalContext` from a Discord user."""

    return ExternalContext(
        provider="discord",
        provider_user_id=str(user.id),
        display_name=user.display_name or user.name,
    )


def _room_id(ctx: commands.Context) -> str:
    # One room per channel.
    return f"discord-{ctx.channel.id}"


async def _send_result(ctx: commands.Context, result: OperationResult, fallback: str) -> None:
    if not result.success:
        await ctx.send(result.error_message or fallback)
        return

    if result.broadcasts:
        for broadcast in result.broadcasts:
            await ctx.send(broadcast.text)
    else:
        await ctx.message.add_reaction("\N{WHITE HEAVY CHECK MARK}")


def create_discord_bot(directory: RoomDirectory) -> commands.Bot:
    """
    Configure and return a Discord bot that hosts one planning poker
    room per channel.
    """

    intents = discord.Intents.default()
    intents.message_content = True
    intents.guilds = True

    # Disable the default help command so we can provide our own `!help`.
    bot = commands.Bot(command_prefix="!", intents=intents, help_command=None)

    def client_for(ctx: commands.Context):
        return directory.get_or_join(_build_external_context(ctx.author), _room_id(ctx))

    @bot.event
    async def on_ready():
        logger.info("Discord bot logged in as %s (id=%s)", bot.user, bot.user.id)

    @bot.command(name="help")
    async def help_cmd(ctx: commands.Context):
        await ctx.send(
            f"!vote <{'|'.join(ESTIMATE_LABELS)}>  - submit your estimate\n"
            "!reveal            - reveal or hide all estimates\n"
            "!clear             - clear your estimate\n"
            "!clearall          - start a new round\n"
            "!spectate          - switch between voting and spectating\n"
            "!name <username>   - change your name\n"
            "!table             - show who has voted\n"
            "!newroom           - suggest a name for a new room\n"
            "!leave             - leave this channel's room\n"
        )

    @bot.command(name="vote")
    async def vote_cmd(ctx: commands.Context, label: str):
        result = submit_estimate(client_for(ctx), label)
        await _send_result(ctx, result, "Vote failed.")

    @bot.command(name="reveal")
    async def reveal_cmd(ctx: commands.Context):
        result = toggle_reveal(client_for(ctx))
        await _send_result(ctx, result, "Reveal failed.")

    @bot.command(name="clear")
    async def clear_cmd(ctx: commands.Context):
        result = clear_estimate(client_for(ctx))
        await _send_result(ctx, result, "Clear failed.")

    @bot.command(name="clearall")
    async def clear_all_cmd(ctx: commands.Context):
        result = clear_all(client_for(ctx))
        await _send_result(ctx, result, "Clear all failed.")

    @bot.command(name="spectate")
    async def spectate_cmd(ctx: commands.Context):
        result = toggle_spectator(client_for(ctx))
        await _send_result(ctx, result, "Spectate failed.")

    @bot.command(name="name")
    async def name_cmd(ctx: commands.Context, *, username: str):
        result = change_username(client_for(ctx), username)
        await _send_result(ctx, result, "Rename failed.")

    @bot.command(name="table")
    async def table_cmd(ctx: commands.Context):
        await ctx.send(describe_table(client_for(ctx)))

    @bot.command(name="newroom")
    async def new_room_cmd(ctx: commands.Context):
        await ctx.send(f"How about a channel called #{generate_room_id()}?")

    @bot.command(name="leave")
    async def leave_cmd(ctx: commands.Context):
        if directory.leave(_build_external_context(ctx.author), _room_id(ctx)):
            await ctx.send(f"{ctx.author.display_name} left the table.")
        else:
            await ctx.send("You are not at this table.")

    @bot.event
    async def on_command_error(ctx: commands.Context, error: commands.CommandError):
        if isinstance(error, commands.MissingRequiredArgument):
            await ctx.send(f"Missing argument: {error.param.name}. Type !help for usage.")
            return
        logger.error("Command %s failed: %s", ctx.command, error)
        await ctx.send(str(error))

    return bot
