from __future__ import annotations

import asyncio
import time
from typing import Callable

from scheduler.models import CLEAR_ALL
from scheduler.models import CLEAR_MEETING
from scheduler.models import CLEAR_MEMOS
from scheduler.models import CLEAR_SCOPES
from scheduler.models import InvalidInput
from scheduler.models import MemoEntry
from scheduler.models import MentionScope
from scheduler.models import ReminderItem
from scheduler.models import ScheduleKey
from scheduler.models import Snapshot
from scheduler.models import build_meeting_items
from scheduler.models import make_memo_entry
from scheduler.models import merge_memo
from scheduler.models import normalize_memos
from scheduler.models import normalize_queue
from scheduler.models import sort_queue
from scheduler.notifications import build_notification
from scheduler.store import MEMOS_FIELD
from scheduler.store import QUEUE_FIELD
from scheduler.store import ActorStorage
from scheduler.templates import ReminderTemplates
from scheduler.templates import default_reminder_templates


def epoch_ms_now() -> int:
    return int(time.time() * 1000)


def _dump_queue(queue: list[ReminderItem]) -> list[dict]:
    return [item.to_dict() for item in queue]


def _dump_memos(memos: list[MemoEntry]) -> list[dict]:
    return [memo.to_dict() for memo in memos]


class SchedulingActor:
    """
    Reminder queue and memo list for one (guild, channel) key.

    Every public operation holds the actor's lock for its whole read-modify-write,
    so operations on one key never interleave. Nothing is cached between calls:
    each operation reads durable state, and its writes land in one transaction
    (queue and alarm together) or not at all.
    """

    def __init__(
        self,
        *,
        key: ScheduleKey,
        storage: ActorStorage,
        sender,
        templates: ReminderTemplates | None = None,
        timezone_name: str = "Asia/Tokyo",
        timezone_label: str | None = "JST",
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.key = key
        self.storage = storage
        self.sender = sender
        self.templates = templates or default_reminder_templates()
        self.timezone_name = timezone_name
        self.timezone_label = timezone_label
        self.clock = clock or epoch_ms_now
        self._lock = asyncio.Lock()

    async def _load_queue(self) -> list[ReminderItem]:
        return normalize_queue(await self.storage.get(QUEUE_FIELD))

    async def _load_memos(self) -> list[MemoEntry]:
        return normalize_memos(await self.storage.get(MEMOS_FIELD))

    async def schedule_meeting(
        self,
        *,
        target_time: int,
        channel_id: str,
        requester_id: str,
        mention_scope: MentionScope,
    ) -> list[ReminderItem]:
        async with self._lock:
            created = build_meeting_items(
                target_time=target_time,
                channel_id=channel_id,
                requester_id=requester_id,
                mention_scope=mention_scope,
                now=self.clock(),
            )
            queue = sort_queue(await self._load_queue() + created)
            await self.storage.commit(put={QUEUE_FIELD: _dump_queue(queue)}, alarm_at=queue[0].fire_at)
        print(
            f"[Scheduler] scheduled key={self.key.storage_key} target_ms={int(target_time)} "
            f"queue={len(queue)} next_fire_ms={queue[0].fire_at}"
        )
        return created

    async def upsert_memo(self, *, text: str, author_id: str | None = None, author_name: str | None = None) -> MemoEntry:
        entry = make_memo_entry(text, author_id=author_id, author_name=author_name)
        async with self._lock:
            memos = merge_memo(await self._load_memos(), entry)
            await self.storage.commit(put={MEMOS_FIELD: _dump_memos(memos)})
        return entry

    async def clear(self, scope: str = CLEAR_ALL) -> None:
        clean = (scope or CLEAR_ALL).strip().lower()
        if clean not in CLEAR_SCOPES:
            raise InvalidInput(f"Unknown clear scope: {scope}")

        put: dict[str, list] = {}
        delete: list[str] = []
        if clean in {CLEAR_MEMOS, CLEAR_ALL}:
            delete.append(MEMOS_FIELD)
        async with self._lock:
            if clean in {CLEAR_MEETING, CLEAR_ALL}:
                put[QUEUE_FIELD] = []
                await self.storage.commit(put=put, delete=delete, alarm_at=None)
            else:
                await self.storage.commit(delete=delete)
        print(f"[Scheduler] cleared key={self.key.storage_key} scope={clean}")

    async def get_snapshot(self) -> Snapshot:
        async with self._lock:
            queue = await self._load_queue()
            memos = await self._load_memos()
        return Snapshot(queue_size=len(queue), head=queue[0] if queue else None, memos=memos)

    async def on_wake_up(self) -> ReminderItem | None:
        async with self._lock:
            return await self._wake_up_locked()

    async def fire_if_due(self, now: int | None = None) -> ReminderItem | None:
        """Timer entry point: run a wake-up only if the armed deadline is still due."""
        async with self._lock:
            now_ms = self.clock() if now is None else int(now)
            armed_at = await self.storage.get_alarm()
            if armed_at is None or armed_at > now_ms:
                return None
            fired = await self._wake_up_locked()
            if fired is None:
                # Alarm armed over an empty queue; disarm so the timer stops seeing it.
                await self.storage.commit(alarm_at=None)
            return fired

    async def _wake_up_locked(self) -> ReminderItem | None:
        queue = await self._load_queue()
        if not queue:
            return None

        head, rest = queue[0], queue[1:]
        memos = await self._load_memos()
        if not memos and head.legacy_memo:
            memos = [MemoEntry(text=head.legacy_memo)]
        notification = build_notification(
            head,
            memos,
            templates=self.templates,
            timezone_name=self.timezone_name,
            timezone_label=self.timezone_label,
        )
        try:
            await self.sender.send(notification)
        except Exception as e:
            print(
                f"[Scheduler] delivery failed key={self.key.storage_key} "
                f"channel={head.channel_id} stage={head.stage} error={e!r}"
            )

        await self.storage.commit(
            put={QUEUE_FIELD: _dump_queue(rest)},
            alarm_at=rest[0].fire_at if rest else None,
        )
        print(
            f"[Scheduler] fired key={self.key.storage_key} stage={head.stage} "
            f"remaining={len(rest)}"
        )
        return head
