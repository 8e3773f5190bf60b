from __future__ import annotations

import os
import re


def parse_id_set(raw: str | None) -> set[int]:
    if not raw:
        return set()
    out: set[int] = set()
    for tok in re.split(r"[\s,;]+", raw.strip()):
        if re.fullmatch(r"\d{8,22}", tok or ""):
            out.add(int(tok))
    return out


def env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip() == "1"


def env_int(name: str, default: int, *, minimum: int | None = None) -> int:
    raw = (os.getenv(name) or "").strip()
    try:
        value = int(raw) if raw else int(default)
    except ValueError:
        print(f"[CFG] invalid {name}={raw!r}; falling back to {default}")
        value = int(default)
    if minimum is not None:
        value = max(int(minimum), value)
    return value


def env_str(name: str, default: str) -> str:
    return (os.getenv(name) or "").strip() or default
