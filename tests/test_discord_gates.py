from __future__ import annotations

import unittest
from types import SimpleNamespace
from unittest import mock

try:
    from misc.discord_gates import ctx_in_allowed_channels
except ModuleNotFoundError:
    ctx_in_allowed_channels = None


@unittest.skipIf(ctx_in_allowed_channels is None, "discord.py not installed")
class DiscordGatesTests(unittest.TestCase):
    def test_empty_allowlist_allows_everything(self):
        ctx = SimpleNamespace(guild=SimpleNamespace(id=1), channel=SimpleNamespace(id=999))
        self.assertTrue(ctx_in_allowed_channels(ctx, set()))

    def test_dm_is_allowed_without_channel_allowlist(self):
        ctx = SimpleNamespace(guild=None, channel=SimpleNamespace(id=999))
        self.assertTrue(ctx_in_allowed_channels(ctx, {123}))

    def test_allowed_channel_is_allowed(self):
        ctx = SimpleNamespace(guild=SimpleNamespace(id=1), channel=SimpleNamespace(id=123))
        self.assertTrue(ctx_in_allowed_channels(ctx, {123}))

    def test_disallowed_channel_is_blocked(self):
        ctx = SimpleNamespace(guild=SimpleNamespace(id=1), channel=SimpleNamespace(id=999))
        self.assertFalse(ctx_in_allowed_channels(ctx, {123}))

    def test_thread_parent_allowlist_is_honored(self):
        class FakeThread:
            def __init__(self, channel_id: int, parent_id: int):
                self.id = int(channel_id)
                self.parent = SimpleNamespace(id=int(parent_id))

        ctx = SimpleNamespace(guild=SimpleNamespace(id=1), channel=FakeThread(channel_id=777, parent_id=123))
        with mock.patch("misc.discord_gates.discord.Thread", FakeThread):
            self.assertTrue(ctx_in_allowed_channels(ctx, {123}))
            self.assertFalse(ctx_in_allowed_channels(ctx, {456}))


if __name__ == "__main__":
    unittest.main()
