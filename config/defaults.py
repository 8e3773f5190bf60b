from __future__ import annotations

DEFAULT_DB_PATH = "scheduler_state.db"

# Meeting times are typed and shown in this zone.
DEFAULT_TIMEZONE = "Asia/Tokyo"
DEFAULT_TIMEZONE_LABEL = "JST"

DEFAULT_TICK_SECONDS = 5
MIN_TICK_SECONDS = 1

# Empty means every channel the bot can see.
DEFAULT_ALLOWED_CHANNEL_IDS = ""

COMMAND_PREFIX = "!"
