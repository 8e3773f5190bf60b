from __future__ import annotations

from dataclasses import dataclass

from misc.discord_timestamps import format_local_time
from misc.discord_timestamps import relative_timestamp_tag
from scheduler.models import MemoEntry
from scheduler.models import ReminderItem
from scheduler.templates import ReminderTemplates


DISCORD_MAX_MESSAGE_LEN = 1900  # keep under 2000 hard limit


@dataclass(frozen=True, slots=True)
class Notification:
    channel_id: str
    stage: str
    content: str
    allowed_mentions: dict[str, list[str]]


def render_memo_block(memos: list[MemoEntry], header: str) -> str:
    if not memos:
        return ""
    lines = [f"- {memo.display_author}: {memo.text}" for memo in memos]
    return f"\n{header}\n" + "\n".join(lines)


def build_notification(
    item: ReminderItem,
    memos: list[MemoEntry],
    *,
    templates: ReminderTemplates,
    timezone_name: str,
    timezone_label: str | None = None,
) -> Notification:
    start = format_local_time(item.target_time, timezone_name, timezone_label)
    content = (
        f"{item.mention_scope.mention_text()} {templates.headline_for(item.stage)} "
        f"({templates.start_label}: {start} {relative_timestamp_tag(item.target_time)})"
        f"{render_memo_block(memos, templates.memo_header)}"
    )
    return Notification(
        channel_id=item.channel_id,
        stage=item.stage,
        content=content[:DISCORD_MAX_MESSAGE_LEN],
        allowed_mentions=item.mention_scope.allowed_mentions(),
    )
