from __future__ import annotations

import asyncio
import importlib
import os


class _PrintSender:
    async def send(self, notification):
        print(f"[Smoke] would send to channel={notification.channel_id}: {notification.content!r}")


def _try_import_or_skip(module_name: str, pip_name: str | None = None) -> bool:
    try:
        importlib.import_module(module_name)
        return True
    except ModuleNotFoundError:
        install_name = pip_name or module_name
        print(
            f"Smoke wiring check skipped: missing dependency '{module_name}'. "
            f"Install requirements and retry (e.g. `pip install {install_name}` "
            f"or `pip install -e .`)."
        )
        return False


async def _noop_async(*args, **kwargs):
    return None


def _main() -> int:
    if not _try_import_or_skip("discord", "discord.py"):
        return 0

    import discord
    from discord.ext import commands
    from db.migrate import open_sqlite
    from misc.runtime_wiring import wire_bot_runtime
    from scheduler.registry import ActorRegistry

    repo_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    intents = discord.Intents.none()
    bot = commands.Bot(command_prefix="!", intents=intents)
    db_lock = asyncio.Lock()
    db_conn = open_sqlite(":memory:", os.path.join(repo_root, "migrations"))
    registry = ActorRegistry(db_lock=db_lock, db_conn=db_conn, sender=_PrintSender())

    wire_bot_runtime(
        bot,
        allowed_channel_ids=set(),
        db_lock=db_lock,
        db_conn=db_conn,
        registry=registry,
        send_chunked=_noop_async,
        clock=lambda: 0,
        timezone_name="Asia/Tokyo",
        timezone_label="JST",
        alarm_loop_func=_noop_async,
    )

    expected_commands = {
        "mtg.set",
        "mtg.get",
        "mtg.clear",
        "todo.set",
        "todo.list",
        "todo.clear",
        "schedule.clear",
        "schedule.ping",
    }
    existing_commands = set(bot.all_commands.keys())
    missing = sorted(expected_commands - existing_commands)
    if missing:
        raise RuntimeError(f"Missing expected commands: {missing}")

    if not callable(getattr(bot, "on_ready", None)):
        raise RuntimeError("Runtime events were not registered")

    db_conn.close()
    print("Smoke wiring check passed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(_main())
