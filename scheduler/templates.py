from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from scheduler.models import STAGE_PRE


@dataclass(slots=True)
class ReminderTemplates:
    version: str = "reminder_templates_v1"
    pre_headline: str = "⏰ The meeting starts in 10 minutes!"
    at_headline: str = "🟢 The meeting is starting!"
    start_label: str = "Start"
    memo_header: str = "📝 TODO:"

    def headline_for(self, stage: str) -> str:
        return self.pre_headline if stage == STAGE_PRE else self.at_headline


def default_reminder_templates() -> ReminderTemplates:
    return ReminderTemplates()


def _text_or(value: Any, fallback: str) -> str:
    text = str(value or "").strip() if isinstance(value, (str, int, float)) else ""
    return text or fallback


def load_reminder_templates(path: str | Path | None) -> tuple[ReminderTemplates, str | None]:
    """
    Returns (templates, warning_message). warning_message is None on clean load.
    """
    defaults = default_reminder_templates()
    if not path:
        return (defaults, "Reminder templates path missing; using built-in defaults.")

    p = Path(path)
    if not p.exists():
        return (defaults, f"Reminder templates file not found at {p}; using built-in defaults.")

    try:
        payload = yaml.safe_load(p.read_text(encoding="utf-8"))
    except Exception as exc:
        return (defaults, f"Failed to read reminder templates from {p}: {exc}; using built-in defaults.")

    if not isinstance(payload, dict):
        return (defaults, f"Invalid reminder templates format in {p}; using built-in defaults.")

    stages = payload.get("stages") if isinstance(payload.get("stages"), dict) else {}
    templates = ReminderTemplates(
        version=_text_or(payload.get("version"), defaults.version),
        pre_headline=_text_or(stages.get("pre"), defaults.pre_headline),
        at_headline=_text_or(stages.get("at"), defaults.at_headline),
        start_label=_text_or(payload.get("start_label"), defaults.start_label),
        memo_header=_text_or(payload.get("memo_header"), defaults.memo_header),
    )
    return (templates, None)


def default_templates_path() -> str:
    # Resolves to repo-root/config when running from a source checkout.
    return str(Path(__file__).resolve().parents[1] / "config" / "reminder_templates.yml")
