from __future__ import annotations

import asyncio

from discord.ext import commands
from misc.runtime_deps import RuntimeBootDeps
from misc.runtime_deps import RuntimeDeps
from scheduler.store import next_alarm_at_sync


def describe_pending_alarm(next_alarm_ms: int | None, now_ms: int) -> str:
    if next_alarm_ms is None:
        return "none armed"
    delta_s = (int(next_alarm_ms) - int(now_ms)) // 1000
    if delta_s <= 0:
        return f"overdue by {-delta_s}s"
    return f"next in {delta_s}s"


def register_runtime_events(
    bot: commands.Bot,
    *,
    deps: RuntimeDeps,
    boot: RuntimeBootDeps,
) -> None:
    @bot.event
    async def on_ready():
        print(f"Scheduler bot is online as {bot.user}")
        async with deps.db_lock:
            next_alarm_ms = await asyncio.to_thread(next_alarm_at_sync, deps.db_conn)
        print(f"[Timer] pending alarms at boot: {describe_pending_alarm(next_alarm_ms, deps.clock())}")

        # on_ready fires again after reconnects; keep a single timer task.
        if not getattr(bot, "_alarm_task", None):
            bot._alarm_task = asyncio.create_task(boot.alarm_loop_func())
            print("[Timer] alarm loop started")

    @bot.event
    async def on_command_error(ctx: commands.Context, error: commands.CommandError):
        if isinstance(error, commands.CommandNotFound):
            return
        command_name = getattr(getattr(ctx, "command", None), "qualified_name", "?")
        print(f"[Commands] {command_name} failed: {error!r}")
