from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable


@dataclass(frozen=True)
class RuntimeDeps:
    # core
    db_lock: Any
    db_conn: Any
    registry: Any

    # time
    clock: Callable[[], int]


@dataclass(frozen=True)
class RuntimeBootDeps:
    alarm_loop_func: Callable
