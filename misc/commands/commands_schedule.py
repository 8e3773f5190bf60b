from __future__ import annotations

import secrets
import time
from datetime import datetime, timezone

import discord
from discord.ext import commands
from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from misc.discord_timestamps import MEETING_INPUT_FORMAT
from misc.discord_timestamps import datetime_to_epoch_ms
from misc.discord_timestamps import format_local_time
from misc.discord_timestamps import parse_meeting_time
from scheduler.models import CLEAR_ALL
from scheduler.models import CLEAR_MEETING
from scheduler.models import CLEAR_MEMOS
from scheduler.models import CLEAR_SCOPES
from scheduler.models import InvalidInput
from scheduler.models import MemoEntry
from scheduler.models import MentionScope
from scheduler.models import Snapshot


MTG_USAGE = f"Usage: `!mtg.set {MEETING_INPUT_FORMAT} [here|everyone|role:<id>|user:<id>]`"
TODO_USAGE = "Usage: `!todo.set <text>`"
CLEAR_USAGE = "Usage: `!schedule.clear [memos|meeting|all]`"


def new_trace_id() -> str:
    return secrets.token_hex(8)


def parse_mtg_args(raw: str) -> tuple[str, str | None]:
    """Split `YYYY/MM/DD HH:MM [mention]` into (when, mention_token)."""
    tokens = (raw or "").split()
    if len(tokens) < 2 or len(tokens) > 3:
        raise InvalidInput("Invalid arguments.")
    return (f"{tokens[0]} {tokens[1]}", tokens[2] if len(tokens) == 3 else None)


def author_display_name(author) -> str:
    for attr in ("global_name", "display_name", "name"):
        value = getattr(author, attr, None)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return "unknown"


def format_memo_lines(memos: list[MemoEntry]) -> list[str]:
    return [f"- {memo.display_author}: {memo.text}" for memo in memos]


def format_meeting_status(snapshot: Snapshot, *, timezone_name: str, timezone_label: str | None) -> str:
    if snapshot.head is None:
        return "🗓️ No meeting reminders pending."
    head = snapshot.head
    lines = [
        "🗓️ Meeting reminders",
        f"- pending: {snapshot.queue_size}",
        f"- next:    {head.stage} at {format_local_time(head.fire_at, timezone_name, timezone_label)}",
        f"- start:   {format_local_time(head.target_time, timezone_name, timezone_label)}",
        f"- notify:  {head.mention_scope.to_token()}",
    ]
    return "\n".join(lines)


def format_memo_list(snapshot: Snapshot) -> str:
    if not snapshot.memos:
        return "📝 No TODO set yet."
    return "\n".join([f"📝 TODO ({len(snapshot.memos)})"] + format_memo_lines(snapshot.memos))


def _key_parts(ctx: commands.Context) -> tuple[int | None, int]:
    guild = getattr(ctx, "guild", None)
    guild_id = int(guild.id) if guild is not None else None
    return (guild_id, int(ctx.channel.id))


def register(
    bot: commands.Bot,
    *,
    deps: CommandDeps,
    gates: CommandGates,
) -> None:
    def now_ms() -> int:
        return deps.clock() if deps.clock else int(time.time() * 1000)

    def actor_for(ctx: commands.Context):
        guild_id, channel_id = _key_parts(ctx)
        return deps.registry.for_channel(guild_id, channel_id)

    async def reply_internal_error(ctx: commands.Context, command_name: str, exc: Exception) -> None:
        trace_id = new_trace_id()
        print(f"[Commands] {command_name} error trace={trace_id}: {exc!r}")
        await ctx.send(f"⚠️ Internal error. trace:{trace_id}")

    @bot.command(name="mtg.set")
    async def mtg_set(ctx: commands.Context, *, raw: str = ""):
        if not gates.in_allowed_channel(ctx):
            return
        try:
            when_str, mention_token = parse_mtg_args(raw)
        except InvalidInput:
            await ctx.send(f"❗ Invalid arguments. {MTG_USAGE}")
            return
        try:
            when_local = parse_meeting_time(when_str, deps.timezone_name)
        except ValueError:
            await ctx.send(f"❗ Invalid format. {MTG_USAGE}")
            return
        try:
            scope = MentionScope.parse(mention_token, default_user_id=int(ctx.author.id))
        except InvalidInput as e:
            await ctx.send(f"❗ {e} {MTG_USAGE}")
            return

        target_ms = datetime_to_epoch_ms(when_local)
        if target_ms <= now_ms():
            await ctx.send("❗ That meeting time has already passed.")
            return

        try:
            await actor_for(ctx).schedule_meeting(
                target_time=target_ms,
                channel_id=str(ctx.channel.id),
                requester_id=str(ctx.author.id),
                mention_scope=scope,
            )
        except Exception as e:
            await reply_internal_error(ctx, "mtg.set", e)
            return

        when_utc = when_local.astimezone(timezone.utc)
        lines = [
            "🗓️ Meeting scheduled",
            f"- input:  {when_str}",
            f"- utc:    {when_utc.isoformat()}",
            f"- local:  {format_local_time(target_ms, deps.timezone_name, deps.timezone_label)}",
            f"- epoch:  {target_ms // 1000}",
            f"- notify: {scope.to_token()}",
        ]
        await ctx.send("\n".join(lines), allowed_mentions=discord.AllowedMentions.none())

    @bot.command(name="mtg.get")
    async def mtg_get(ctx: commands.Context):
        if not gates.in_allowed_channel(ctx):
            return
        try:
            snapshot = await actor_for(ctx).get_snapshot()
        except Exception as e:
            await reply_internal_error(ctx, "mtg.get", e)
            return
        await ctx.send(
            format_meeting_status(snapshot, timezone_name=deps.timezone_name, timezone_label=deps.timezone_label)
        )

    @bot.command(name="todo.set")
    async def todo_set(ctx: commands.Context, *, text: str = ""):
        if not gates.in_allowed_channel(ctx):
            return
        try:
            entry = await actor_for(ctx).upsert_memo(
                text=text,
                author_id=str(ctx.author.id),
                author_name=author_display_name(ctx.author),
            )
        except InvalidInput:
            await ctx.send(f"❗ Invalid arguments. {TODO_USAGE}")
            return
        except Exception as e:
            await reply_internal_error(ctx, "todo.set", e)
            return
        await ctx.send(
            f"📝 TODO saved\n- text: {entry.text}\n- by:   {entry.author_name} ({entry.author_id})",
            allowed_mentions=discord.AllowedMentions.none(),
        )

    @bot.command(name="todo.list")
    async def todo_list(ctx: commands.Context):
        if not gates.in_allowed_channel(ctx):
            return
        try:
            snapshot = await actor_for(ctx).get_snapshot()
        except Exception as e:
            await reply_internal_error(ctx, "todo.list", e)
            return
        await deps.send_chunked(ctx.channel, format_memo_list(snapshot))

    async def clear_scope(ctx: commands.Context, scope: str, command_name: str) -> None:
        try:
            await actor_for(ctx).clear(scope)
        except Exception as e:
            await reply_internal_error(ctx, command_name, e)
            return
        label = {CLEAR_MEMOS: "TODO list", CLEAR_MEETING: "meeting reminders", CLEAR_ALL: "meeting reminders and TODO list"}
        await ctx.send(f"🧹 Cleared {label[scope]}.")

    @bot.command(name="mtg.clear")
    async def mtg_clear(ctx: commands.Context):
        if not gates.in_allowed_channel(ctx):
            return
        await clear_scope(ctx, CLEAR_MEETING, "mtg.clear")

    @bot.command(name="todo.clear")
    async def todo_clear(ctx: commands.Context):
        if not gates.in_allowed_channel(ctx):
            return
        await clear_scope(ctx, CLEAR_MEMOS, "todo.clear")

    @bot.command(name="schedule.clear")
    async def schedule_clear(ctx: commands.Context, scope: str = CLEAR_ALL):
        if not gates.in_allowed_channel(ctx):
            return
        clean = (scope or CLEAR_ALL).strip().lower()
        if clean not in CLEAR_SCOPES:
            await ctx.send(f"❗ Unknown scope. {CLEAR_USAGE}")
            return
        await clear_scope(ctx, clean, "schedule.clear")

    @bot.command(name="schedule.ping")
    async def schedule_ping(ctx: commands.Context):
        if not gates.in_allowed_channel(ctx):
            return
        started = time.perf_counter()
        trace_id = new_trace_id()
        created_at = getattr(getattr(ctx, "message", None), "created_at", None)
        age_ms = "n/a"
        if isinstance(created_at, datetime):
            age_ms = max(0, int((datetime.now(timezone.utc) - created_at).total_seconds() * 1000))
        process_ms = int((time.perf_counter() - started) * 1000)
        print(f"[Commands] pong trace={trace_id} age_ms={age_ms} process_ms={process_ms}")
        await ctx.send(
            "\n".join(
                [
                    "👋 Hello!",
                    f"process: {process_ms}ms",
                    f"age: {age_ms}ms",
                    f"actors: {len(deps.registry)}",
                    f"trace: {trace_id}",
                ]
            )
        )
