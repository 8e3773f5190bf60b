from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field
from typing import Any
from typing import Callable


def _default_true(*args, **kwargs) -> bool:
    return True


@dataclass(frozen=True)
class CommandDeps:
    # Core/shared
    registry: Any = None
    send_chunked: Callable | None = None
    clock: Callable[[], int] | None = None

    # Time input/rendering
    timezone_name: str = "Asia/Tokyo"
    timezone_label: str | None = "JST"


@dataclass(frozen=True)
class CommandGates:
    in_allowed_channel: Callable = _default_true
    allowed_channel_ids: set[int] = field(default_factory=set)
