from __future__ import annotations

import asyncio

from scheduler.store import commit_batch_sync
from scheduler.store import list_due_alarms_sync
from scheduler.store import next_alarm_at_sync


MIN_SLEEP_SECONDS = 0.1


async def _drain_actor(registry, actor_key: str, *, now_ms: int, max_fires: int) -> int:
    actor = registry.for_storage_key(actor_key)
    fired = 0
    # One item per wake-up; a head re-armed to an already-due time gets the next wake-up right away.
    for _ in range(max(1, int(max_fires))):
        try:
            item = await actor.fire_if_due(now_ms)
        except Exception as e:
            print(f"[Timer] wake-up error key={actor_key} error={e!r}")
            break
        if item is None:
            break
        fired += 1
    return fired


async def fire_due_alarms(
    *,
    registry,
    db_lock,
    db_conn,
    now_ms: int,
    max_fires_per_key: int = 10,
    batch_limit: int = 100,
) -> int:
    async with db_lock:
        due = await asyncio.to_thread(list_due_alarms_sync, db_conn, now_ms, batch_limit)
    if not due:
        return 0

    tasks = []
    for actor_key, _fire_at in due:
        try:
            registry.for_storage_key(actor_key)
        except ValueError as e:
            print(f"[Timer] dropping alarm with bad key={actor_key!r}: {e}")
            async with db_lock:
                await asyncio.to_thread(commit_batch_sync, db_conn, actor_key, alarm_at=None)
            continue
        tasks.append(_drain_actor(registry, actor_key, now_ms=now_ms, max_fires=max_fires_per_key))

    # Keys are independent; each actor serializes its own wake-ups.
    results = await asyncio.gather(*tasks)
    return sum(results)


def sleep_seconds_until(next_alarm_ms: int | None, now_ms: int, interval_seconds: float) -> float:
    cap = max(1.0, float(interval_seconds))
    if next_alarm_ms is None:
        return cap
    return min(cap, max(MIN_SLEEP_SECONDS, (int(next_alarm_ms) - int(now_ms)) / 1000))


async def alarm_loop(
    *,
    registry,
    db_lock,
    db_conn,
    clock,
    interval_seconds: float = 5,
) -> None:
    while True:
        next_alarm_ms: int | None = None
        try:
            fired = await fire_due_alarms(registry=registry, db_lock=db_lock, db_conn=db_conn, now_ms=clock())
            if fired:
                print(f"[Timer] delivered {fired} reminder(s)")
            async with db_lock:
                next_alarm_ms = await asyncio.to_thread(next_alarm_at_sync, db_conn)
        except Exception as e:
            print(f"[Timer] loop error: {e}")
        await asyncio.sleep(sleep_seconds_until(next_alarm_ms, clock(), interval_seconds))
