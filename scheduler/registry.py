from __future__ import annotations

from typing import Callable

from scheduler.actor import SchedulingActor
from scheduler.models import ScheduleKey
from scheduler.store import ActorStorage
from scheduler.templates import ReminderTemplates


class ActorRegistry:
    """Resolves a (guild, channel) key to its single in-process actor."""

    def __init__(
        self,
        *,
        db_lock,
        db_conn,
        sender,
        templates: ReminderTemplates | None = None,
        timezone_name: str = "Asia/Tokyo",
        timezone_label: str | None = "JST",
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.db_lock = db_lock
        self.db_conn = db_conn
        self.sender = sender
        self.templates = templates
        self.timezone_name = timezone_name
        self.timezone_label = timezone_label
        self.clock = clock
        self._actors: dict[ScheduleKey, SchedulingActor] = {}

    def get(self, key: ScheduleKey) -> SchedulingActor:
        actor = self._actors.get(key)
        if actor is None:
            actor = SchedulingActor(
                key=key,
                storage=ActorStorage(db_lock=self.db_lock, db_conn=self.db_conn, actor_key=key.storage_key),
                sender=self.sender,
                templates=self.templates,
                timezone_name=self.timezone_name,
                timezone_label=self.timezone_label,
                clock=self.clock,
            )
            self._actors[key] = actor
        return actor

    def for_channel(self, guild_id, channel_id) -> SchedulingActor:
        return self.get(ScheduleKey.of(guild_id, channel_id))

    def for_storage_key(self, storage_key: str) -> SchedulingActor:
        return self.get(ScheduleKey.from_storage_key(storage_key))

    def __len__(self) -> int:
        return len(self._actors)
