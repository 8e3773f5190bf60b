import os
import asyncio
import discord
from discord.ext import commands
from config.defaults import COMMAND_PREFIX
from config.defaults import DEFAULT_ALLOWED_CHANNEL_IDS
from config.defaults import DEFAULT_DB_PATH
from config.defaults import DEFAULT_TICK_SECONDS
from config.defaults import DEFAULT_TIMEZONE
from config.defaults import DEFAULT_TIMEZONE_LABEL
from config.defaults import MIN_TICK_SECONDS
from config.env import env_flag
from config.env import env_int
from config.env import env_str
from config.env import parse_id_set
from db.migrate import open_sqlite
from jobs.alarms import alarm_loop as alarm_loop_service
from misc.discord_timestamps import require_timezone
from misc.runtime_wiring import wire_bot_runtime
from scheduler.actor import epoch_ms_now
from scheduler.discord_sender import DiscordNotificationSender
from scheduler.registry import ActorRegistry
from scheduler.templates import default_templates_path
from scheduler.templates import load_reminder_templates

# =========================
# ENV
# =========================
DISCORD_TOKEN = os.getenv("DISCORD_TOKEN")

if not DISCORD_TOKEN:
    raise RuntimeError("Missing DISCORD_TOKEN env var")

DB_PATH = env_str("SCHEDULER_DB_PATH", DEFAULT_DB_PATH)
TICK_SECONDS = env_int("SCHEDULER_TICK_SECONDS", DEFAULT_TICK_SECONDS, minimum=MIN_TICK_SECONDS)
DRY_RUN = env_flag("SCHEDULER_DRY_RUN")
ALLOWED_CHANNEL_IDS = parse_id_set(os.getenv("SCHEDULER_ALLOWED_CHANNEL_IDS", DEFAULT_ALLOWED_CHANNEL_IDS))

TIMEZONE_NAME = env_str("SCHEDULER_TIMEZONE", DEFAULT_TIMEZONE)
TIMEZONE_LABEL = env_str("SCHEDULER_TIMEZONE_LABEL", DEFAULT_TIMEZONE_LABEL)
try:
    require_timezone(TIMEZONE_NAME)
except ValueError as e:
    print(f"[CFG] {e}; falling back to {DEFAULT_TIMEZONE!r}")
    TIMEZONE_NAME = DEFAULT_TIMEZONE
    TIMEZONE_LABEL = DEFAULT_TIMEZONE_LABEL

TEMPLATES_PATH = os.getenv("SCHEDULER_TEMPLATES_PATH", default_templates_path())
REMINDER_TEMPLATES, TEMPLATES_WARNING = load_reminder_templates(TEMPLATES_PATH)

print(
    f"[CFG] db={DB_PATH} tz={TIMEZONE_NAME} label={TIMEZONE_LABEL} tick_s={TICK_SECONDS} "
    f"dry_run={DRY_RUN} allowed_channels={len(ALLOWED_CHANNEL_IDS) or 'all'}"
)
print(f"[CFG] reminder_templates={REMINDER_TEMPLATES.version} path={TEMPLATES_PATH}")
if TEMPLATES_WARNING:
    print(f"[CFG] {TEMPLATES_WARNING}")

DISCORD_MAX_MESSAGE_LEN = 1900  # keep under 2000 hard limit


def chunk_text(text: str, limit: int = DISCORD_MAX_MESSAGE_LEN) -> list[str]:
    text = text or ""
    if len(text) <= limit:
        return [text]

    chunks = []
    remaining = text
    while len(remaining) > limit:
        # Prefer splitting on newline, then space
        split_at = remaining.rfind("\n", 0, limit)
        if split_at == -1:
            split_at = remaining.rfind(" ", 0, limit)
        if split_at == -1:
            split_at = limit
        chunk = remaining[:split_at].strip()
        if chunk:
            chunks.append(chunk)
        remaining = remaining[split_at:].strip()

    if remaining:
        chunks.append(remaining)
    return chunks


async def send_chunked(channel: discord.abc.Messageable, text: str) -> None:
    for part in chunk_text(text, DISCORD_MAX_MESSAGE_LEN):
        await channel.send(part, allowed_mentions=discord.AllowedMentions.none())


# =========================
# SQLITE
# =========================
MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "migrations")
db_conn = open_sqlite(DB_PATH, MIGRATIONS_DIR)
db_lock = asyncio.Lock()

# =========================
# DISCORD BOT
# =========================
intents = discord.Intents.default()
intents.message_content = True

bot = commands.Bot(command_prefix=COMMAND_PREFIX, intents=intents)

registry = ActorRegistry(
    db_lock=db_lock,
    db_conn=db_conn,
    sender=DiscordNotificationSender(bot=bot, dry_run=DRY_RUN),
    templates=REMINDER_TEMPLATES,
    timezone_name=TIMEZONE_NAME,
    timezone_label=TIMEZONE_LABEL,
    clock=epoch_ms_now,
)


async def alarm_loop() -> None:
    return await alarm_loop_service(
        registry=registry,
        db_lock=db_lock,
        db_conn=db_conn,
        clock=epoch_ms_now,
        interval_seconds=TICK_SECONDS,
    )


wire_bot_runtime(
    bot,
    allowed_channel_ids=ALLOWED_CHANNEL_IDS,
    db_lock=db_lock,
    db_conn=db_conn,
    registry=registry,
    send_chunked=send_chunked,
    clock=epoch_ms_now,
    timezone_name=TIMEZONE_NAME,
    timezone_label=TIMEZONE_LABEL,
    alarm_loop_func=alarm_loop,
)

bot.run(DISCORD_TOKEN)
