from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any


STAGE_PRE = "PRE"
STAGE_AT = "AT"
STAGES = (STAGE_PRE, STAGE_AT)

PRE_OFFSET_MS = 10 * 60 * 1000

CLEAR_MEMOS = "memos"
CLEAR_MEETING = "meeting"
CLEAR_ALL = "all"
CLEAR_SCOPES = (CLEAR_MEMOS, CLEAR_MEETING, CLEAR_ALL)

GLOBAL_GUILD = "global"

_ROLE_MENTION_RE = re.compile(r"^<@&(\d{1,20})>$")
_USER_MENTION_RE = re.compile(r"^<@!?(\d{1,20})>$")
_SCOPED_TOKEN_RE = re.compile(r"^(role|user):(\d{1,20})$")


class InvalidInput(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class ScheduleKey:
    guild_id: str
    channel_id: str

    @classmethod
    def of(cls, guild_id: Any, channel_id: Any) -> "ScheduleKey":
        guild = str(guild_id).strip() if guild_id is not None else ""
        return cls(guild_id=guild or GLOBAL_GUILD, channel_id=str(channel_id).strip())

    @property
    def storage_key(self) -> str:
        return f"{self.guild_id}:{self.channel_id}"

    @classmethod
    def from_storage_key(cls, value: str) -> "ScheduleKey":
        guild, sep, channel = str(value or "").partition(":")
        if not sep or not channel:
            raise ValueError(f"Invalid actor key: {value!r}")
        return cls(guild_id=guild, channel_id=channel)


@dataclass(frozen=True, slots=True)
class MentionScope:
    """Who a notification may ping: everyone, here, one role, or one user."""

    kind: str
    target_id: str | None = None

    @classmethod
    def everyone(cls) -> "MentionScope":
        return cls("everyone")

    @classmethod
    def here(cls) -> "MentionScope":
        return cls("here")

    @classmethod
    def role(cls, role_id: Any) -> "MentionScope":
        return cls("role", str(role_id))

    @classmethod
    def user(cls, user_id: Any) -> "MentionScope":
        return cls("user", str(user_id))

    @classmethod
    def parse(cls, token: str | None, *, default_user_id: Any = None) -> "MentionScope":
        text = (token or "").strip()
        if not text:
            if default_user_id is None:
                raise InvalidInput("Mention scope is required when no requester is known.")
            return cls.user(default_user_id)
        lowered = text.lower().lstrip("@")
        if lowered == "everyone":
            return cls.everyone()
        if lowered == "here":
            return cls.here()
        m = _SCOPED_TOKEN_RE.match(lowered)
        if m:
            return cls(m.group(1), m.group(2))
        m = _ROLE_MENTION_RE.match(text)
        if m:
            return cls.role(m.group(1))
        m = _USER_MENTION_RE.match(text)
        if m:
            return cls.user(m.group(1))
        raise InvalidInput(f"Unknown mention scope: {text}")

    def to_token(self) -> str:
        if self.kind in {"role", "user"}:
            return f"{self.kind}:{self.target_id}"
        return self.kind

    def mention_text(self) -> str:
        if self.kind == "everyone":
            return "@everyone"
        if self.kind == "here":
            return "@here"
        if self.kind == "role":
            return f"<@&{self.target_id}>"
        return f"<@{self.target_id}>"

    def allowed_mentions(self) -> dict[str, list[str]]:
        # Discord's allowed_mentions wire shape; `here` rides on the everyone flag.
        out: dict[str, list[str]] = {"parse": [], "users": [], "roles": []}
        if self.kind in {"everyone", "here"}:
            out["parse"].append("everyone")
        elif self.kind == "role":
            out["roles"].append(str(self.target_id))
        else:
            out["users"].append(str(self.target_id))
        return out


@dataclass(frozen=True, slots=True)
class ReminderItem:
    target_time: int
    stage: str
    fire_at: int
    channel_id: str
    requester_id: str
    mention_scope: MentionScope
    # Memo text stored on the item by older deployments, before memo lists existed.
    legacy_memo: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out = {
            "target_time_ms": int(self.target_time),
            "stage": self.stage,
            "fire_at_ms": int(self.fire_at),
            "channel_id": self.channel_id,
            "requester_id": self.requester_id,
            "mention": self.mention_scope.to_token(),
        }
        if self.legacy_memo:
            out["todo"] = self.legacy_memo
        return out

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ReminderItem":
        stage = str(raw["stage"])
        if stage not in STAGES:
            raise ValueError(f"Unknown reminder stage: {stage}")
        requester_id = str(raw.get("requester_id") or "")
        todo = raw.get("todo")
        return cls(
            target_time=int(raw["target_time_ms"]),
            stage=stage,
            fire_at=int(raw["fire_at_ms"]),
            channel_id=str(raw["channel_id"]),
            requester_id=requester_id,
            mention_scope=MentionScope.parse(raw.get("mention"), default_user_id=requester_id or None),
            legacy_memo=(todo.strip() or None) if isinstance(todo, str) else None,
        )


@dataclass(frozen=True, slots=True)
class MemoEntry:
    text: str
    author_id: str | None = None
    author_name: str | None = None

    @property
    def display_author(self) -> str:
        return self.author_name or self.author_id or "unknown"

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"text": self.text}
        if self.author_id is not None:
            out["author_id"] = self.author_id
        if self.author_name is not None:
            out["author_name"] = self.author_name
        return out


@dataclass(frozen=True, slots=True)
class Snapshot:
    queue_size: int
    head: ReminderItem | None
    memos: list[MemoEntry]


def stage_fire_at(target_time: int, stage: str, now: int) -> int:
    natural = int(target_time) - PRE_OFFSET_MS if stage == STAGE_PRE else int(target_time)
    return max(int(now), natural)


def build_meeting_items(
    *,
    target_time: int,
    channel_id: str,
    requester_id: str,
    mention_scope: MentionScope,
    now: int,
) -> list[ReminderItem]:
    return [
        ReminderItem(
            target_time=int(target_time),
            stage=stage,
            fire_at=stage_fire_at(target_time, stage, now),
            channel_id=str(channel_id),
            requester_id=str(requester_id),
            mention_scope=mention_scope,
        )
        for stage in STAGES
    ]


def sort_queue(items: list[ReminderItem]) -> list[ReminderItem]:
    # sorted() is stable, so PRE stays ahead of AT when both were clipped to the same instant
    return sorted(items, key=lambda item: item.fire_at)


def normalize_queue(raw: Any) -> list[ReminderItem]:
    if not isinstance(raw, list):
        return []
    out: list[ReminderItem] = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        try:
            out.append(ReminderItem.from_dict(entry))
        except (KeyError, TypeError, ValueError):
            continue
    return out


def _optional_id(value: Any) -> str | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (str, int)):
        text = str(value).strip()
        return text or None
    return None


def _memo_from_mapping(raw: dict[str, Any]) -> MemoEntry | None:
    text = raw.get("text")
    if not isinstance(text, str) or not text.strip():
        return None
    name = raw.get("author_name")
    return MemoEntry(
        text=text.strip(),
        author_id=_optional_id(raw.get("author_id")),
        author_name=(name.strip() or None) if isinstance(name, str) else None,
    )


def normalize_memos(raw: Any) -> list[MemoEntry]:
    """
    Read a stored memo record into entries.

    Older records may hold a bare string or a single object instead of a list;
    blank and malformed entries are dropped.
    """
    if not raw:
        return []
    if isinstance(raw, str):
        return [MemoEntry(text=raw.strip())] if raw.strip() else []
    if isinstance(raw, dict):
        entry = _memo_from_mapping(raw)
        return [entry] if entry else []
    if not isinstance(raw, list):
        return []
    out: list[MemoEntry] = []
    for item in raw:
        if isinstance(item, dict):
            entry = _memo_from_mapping(item)
            if entry:
                out.append(entry)
    return out


def make_memo_entry(text: Any, author_id: Any = None, author_name: Any = None) -> MemoEntry:
    clean = text.strip() if isinstance(text, str) else ""
    if not clean:
        raise InvalidInput("Memo text must not be empty.")
    name = author_name.strip() if isinstance(author_name, str) else ""
    return MemoEntry(text=clean, author_id=_optional_id(author_id), author_name=name or None)


def find_memo_index(memos: list[MemoEntry], entry: MemoEntry) -> int:
    if entry.author_id:
        for idx, cur in enumerate(memos):
            if cur.author_id and cur.author_id == entry.author_id:
                return idx
    # Name fallback only reaches entries that never recorded an id; equal display
    # names recorded before any id will merge.
    if entry.author_name:
        for idx, cur in enumerate(memos):
            if not cur.author_id and cur.author_name and cur.author_name == entry.author_name:
                return idx
    return -1


def merge_memo(memos: list[MemoEntry], entry: MemoEntry) -> list[MemoEntry]:
    out = list(memos)
    idx = find_memo_index(out, entry)
    if idx < 0:
        out.append(entry)
        return out
    cur = out[idx]
    out[idx] = MemoEntry(
        text=entry.text,
        author_id=cur.author_id,
        author_name=entry.author_name or cur.author_name,
    )
    return out
