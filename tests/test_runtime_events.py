from __future__ import annotations

import unittest

try:
    import discord
    from discord.ext import commands
except ModuleNotFoundError:
    discord = None
    commands = None

if commands is not None:
    from misc.events_runtime import describe_pending_alarm
    from scheduler.discord_sender import DiscordNotificationSender
    from scheduler.discord_sender import to_discord_allowed_mentions
    from scheduler.notifications import Notification


@unittest.skipIf(commands is None, "discord.py not installed")
class PendingAlarmDescriptionTests(unittest.TestCase):
    def test_descriptions(self):
        self.assertEqual(describe_pending_alarm(None, 0), "none armed")
        self.assertEqual(describe_pending_alarm(65_000, 5_000), "next in 60s")
        self.assertEqual(describe_pending_alarm(5_000, 65_000), "overdue by 60s")


@unittest.skipIf(commands is None, "discord.py not installed")
class DiscordSenderTests(unittest.IsolatedAsyncioTestCase):
    def test_allowed_mentions_translation(self):
        out = to_discord_allowed_mentions({"parse": [], "users": ["42"], "roles": []})
        self.assertFalse(out.everyone)
        self.assertEqual([u.id for u in out.users], [42])
        self.assertEqual(out.roles, [])

        out = to_discord_allowed_mentions({"parse": ["everyone"], "users": [], "roles": []})
        self.assertTrue(out.everyone)
        self.assertEqual((out.users, out.roles), ([], []))

    async def test_send_posts_to_cached_channel(self):
        class FakeChannel:
            def __init__(self):
                self.sent = []

            async def send(self, content, **kwargs):
                self.sent.append((content, kwargs))

        channel = FakeChannel()

        class FakeBot:
            def get_channel(self, channel_id):
                return channel if channel_id == 123 else None

            async def fetch_channel(self, channel_id):
                raise AssertionError("cache hit expected")

        sender = DiscordNotificationSender(bot=FakeBot())
        await sender.send(
            Notification(
                channel_id="123",
                stage="AT",
                content="<@&5> go",
                allowed_mentions={"parse": [], "users": [], "roles": ["5"]},
            )
        )

        self.assertEqual(len(channel.sent), 1)
        content, kwargs = channel.sent[0]
        self.assertEqual(content, "<@&5> go")
        self.assertEqual([r.id for r in kwargs["allowed_mentions"].roles], [5])

    async def test_dry_run_skips_discord(self):
        class ExplodingBot:
            def get_channel(self, channel_id):
                raise AssertionError("dry run must not touch discord")

        sender = DiscordNotificationSender(bot=ExplodingBot(), dry_run=True)
        await sender.send(Notification(channel_id="1", stage="PRE", content="x", allowed_mentions={}))

    async def test_missing_channel_raises(self):
        class EmptyBot:
            def get_channel(self, channel_id):
                return None

            async def fetch_channel(self, channel_id):
                return None

        sender = DiscordNotificationSender(bot=EmptyBot())
        with self.assertRaises(RuntimeError):
            await sender.send(Notification(channel_id="9", stage="AT", content="x", allowed_mentions={}))


if __name__ == "__main__":
    unittest.main()
