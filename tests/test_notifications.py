from __future__ import annotations

import unittest

from scheduler.models import STAGE_AT
from scheduler.models import STAGE_PRE
from scheduler.models import MemoEntry
from scheduler.models import MentionScope
from scheduler.models import ReminderItem
from scheduler.notifications import DISCORD_MAX_MESSAGE_LEN
from scheduler.notifications import build_notification
from scheduler.notifications import render_memo_block
from scheduler.templates import ReminderTemplates
from scheduler.templates import default_reminder_templates


# 2026/10/20 15:00 JST
T = 1_792_476_000_000


def _item(stage: str, scope: MentionScope) -> ReminderItem:
    return ReminderItem(
        target_time=T,
        stage=stage,
        fire_at=T,
        channel_id="123",
        requester_id="42",
        mention_scope=scope,
    )


class BuildNotificationTests(unittest.TestCase):
    def _build(self, item, memos=None, templates=None):
        return build_notification(
            item,
            memos or [],
            templates=templates or default_reminder_templates(),
            timezone_name="Asia/Tokyo",
            timezone_label="JST",
        )

    def test_pre_stage_without_memos(self):
        note = self._build(_item(STAGE_PRE, MentionScope.user("42")))

        self.assertEqual(
            note.content,
            f"<@42> ⏰ The meeting starts in 10 minutes! (Start: 2026/10/20 15:00 JST <t:{T // 1000}:R>)",
        )
        self.assertEqual(note.channel_id, "123")
        self.assertEqual(note.stage, STAGE_PRE)
        self.assertEqual(note.allowed_mentions, {"parse": [], "users": ["42"], "roles": []})

    def test_at_stage_with_memos(self):
        memos = [
            MemoEntry(text="bring slides", author_id="42", author_name="alice"),
            MemoEntry(text="book room", author_id="43"),
        ]
        note = self._build(_item(STAGE_AT, MentionScope.role("777")), memos)

        self.assertEqual(
            note.content,
            f"<@&777> 🟢 The meeting is starting! (Start: 2026/10/20 15:00 JST <t:{T // 1000}:R>)\n"
            "📝 TODO:\n- alice: bring slides\n- 43: book room",
        )
        self.assertEqual(note.allowed_mentions, {"parse": [], "users": [], "roles": ["777"]})

    def test_here_scope_pings_with_everyone_flag(self):
        note = self._build(_item(STAGE_AT, MentionScope.here()))
        self.assertTrue(note.content.startswith("@here "))
        self.assertEqual(note.allowed_mentions["parse"], ["everyone"])

    def test_custom_templates(self):
        templates = ReminderTemplates(pre_headline="soon", at_headline="now", start_label="Begins", memo_header="Notes:")
        note = self._build(_item(STAGE_PRE, MentionScope.everyone()), [MemoEntry(text="x")], templates)
        self.assertEqual(
            note.content,
            f"@everyone soon (Begins: 2026/10/20 15:00 JST <t:{T // 1000}:R>)\nNotes:\n- unknown: x",
        )

    def test_long_memo_lists_are_truncated(self):
        memos = [MemoEntry(text="x" * 200, author_id=str(i)) for i in range(20)]
        note = self._build(_item(STAGE_AT, MentionScope.everyone()), memos)
        self.assertEqual(len(note.content), DISCORD_MAX_MESSAGE_LEN)

    def test_empty_memo_block(self):
        self.assertEqual(render_memo_block([], "📝 TODO:"), "")


if __name__ == "__main__":
    unittest.main()
