from __future__ import annotations

import discord


def channel_in_allowed_channels(channel, guild, allowed_channel_ids: set[int]) -> bool:
    # An empty allowlist means every channel; DMs are always allowed.
    if not allowed_channel_ids or guild is None:
        return True

    channel_id = int(getattr(channel, "id", 0) or 0)
    if channel_id in allowed_channel_ids:
        return True
    # thread: allow if parent is allowed
    if isinstance(channel, discord.Thread) and channel.parent:
        return int(channel.parent.id) in allowed_channel_ids
    return False


def ctx_in_allowed_channels(ctx, allowed_channel_ids: set[int]) -> bool:
    return channel_in_allowed_channels(
        getattr(ctx, "channel", None),
        getattr(ctx, "guild", None),
        allowed_channel_ids,
    )
