from __future__ import annotations

"""Meeting time parsing and rendering: local wall-clock input, epoch-ms storage, Discord <t:...> tags for display."""

import re
from datetime import datetime
from datetime import timezone
from zoneinfo import ZoneInfo
from zoneinfo import ZoneInfoNotFoundError


DISCORD_TIMESTAMP_STYLES = {"t", "T", "d", "D", "f", "F", "R"}
MEETING_INPUT_PATTERN = re.compile(r"^(\d{4})/(\d{2})/(\d{2})\s+(\d{2}):(\d{2})$")
MEETING_INPUT_FORMAT = "YYYY/MM/DD HH:MM"


def _validate_style(style: str) -> str:
    clean = str(style or "").strip() or "f"
    if clean not in DISCORD_TIMESTAMP_STYLES:
        raise ValueError(f"Invalid Discord timestamp style: {clean}")
    return clean


def _require_aware_datetime(value: datetime, *, arg_name: str) -> datetime:
    if not isinstance(value, datetime):
        raise ValueError(f"{arg_name} must be a datetime")
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{arg_name} must be timezone-aware")
    return value


def require_timezone(timezone_name: str) -> ZoneInfo:
    clean = str(timezone_name or "").strip()
    if not clean:
        raise ValueError("Unknown timezone_name: ''")
    try:
        return ZoneInfo(clean)
    except ZoneInfoNotFoundError as exc:
        raise ValueError(f"Unknown timezone_name: {clean}") from exc


def format_discord_timestamp(dt: datetime, style: str = "f") -> str:
    aware = _require_aware_datetime(dt, arg_name="dt")
    style_clean = _validate_style(style)
    return f"<t:{int(aware.timestamp())}:{style_clean}>"


def epoch_ms_to_datetime(epoch_ms: int) -> datetime:
    return datetime.fromtimestamp(int(epoch_ms) / 1000, tz=timezone.utc)


def datetime_to_epoch_ms(dt: datetime) -> int:
    aware = _require_aware_datetime(dt, arg_name="dt")
    return int(aware.timestamp() * 1000)


def parse_meeting_time(text: str, timezone_name: str) -> datetime:
    """
    Parse "YYYY/MM/DD HH:MM" as wall-clock time in timezone_name.

    Raises ValueError for anything else, including impossible calendar values
    such as 2026/02/30 or 25:00.
    """
    m = MEETING_INPUT_PATTERN.match((text or "").strip())
    if not m:
        raise ValueError(f"Expected {MEETING_INPUT_FORMAT}, got: {text!r}")
    tz = require_timezone(timezone_name)
    year, month, day, hour, minute = (int(part) for part in m.groups())
    try:
        return datetime(year, month, day, hour, minute, tzinfo=tz)
    except ValueError as exc:
        raise ValueError(f"Invalid date/time: {text!r}") from exc


def format_local_time(epoch_ms: int, timezone_name: str, label: str | None = None) -> str:
    local = epoch_ms_to_datetime(epoch_ms).astimezone(require_timezone(timezone_name))
    suffix = (label or "").strip() or local.tzname() or timezone_name
    return f"{local:%Y/%m/%d %H:%M} {suffix}"


def relative_timestamp_tag(epoch_ms: int) -> str:
    return format_discord_timestamp(epoch_ms_to_datetime(epoch_ms), style="R")
