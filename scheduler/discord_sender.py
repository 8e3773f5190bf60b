from __future__ import annotations

import discord

from scheduler.notifications import Notification


def to_discord_allowed_mentions(descriptor: dict[str, list[str]]) -> discord.AllowedMentions:
    return discord.AllowedMentions(
        everyone="everyone" in (descriptor.get("parse") or []),
        users=[discord.Object(id=int(uid)) for uid in descriptor.get("users") or []],
        roles=[discord.Object(id=int(rid)) for rid in descriptor.get("roles") or []],
        replied_user=False,
    )


class DiscordNotificationSender:
    """Posts reminder notifications to a channel through the bot connection."""

    def __init__(self, *, bot, dry_run: bool = False) -> None:
        self.bot = bot
        self.dry_run = bool(dry_run)

    async def _get_channel(self, channel_id: int):
        if channel_id <= 0:
            return None
        ch = self.bot.get_channel(int(channel_id))
        if ch is not None:
            return ch
        return await self.bot.fetch_channel(int(channel_id))

    async def send(self, notification: Notification) -> None:
        if self.dry_run:
            print(
                f"[Scheduler] dry-run channel={notification.channel_id} "
                f"stage={notification.stage} chars={len(notification.content)}"
            )
            return
        channel = await self._get_channel(int(notification.channel_id))
        if channel is None:
            raise RuntimeError(f"Channel not found: {notification.channel_id}")
        await channel.send(
            notification.content,
            allowed_mentions=to_discord_allowed_mentions(notification.allowed_mentions),
        )
