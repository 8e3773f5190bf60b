from __future__ import annotations

from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from misc.commands.commands_schedule import register as register_schedule
from misc.discord_gates import ctx_in_allowed_channels
from misc.events_runtime import register_runtime_events
from misc.runtime_deps import RuntimeBootDeps
from misc.runtime_deps import RuntimeDeps


def wire_bot_runtime(
    bot,
    *,
    allowed_channel_ids: set[int],
    db_lock,
    db_conn,
    registry,
    send_chunked,
    clock,
    timezone_name: str,
    timezone_label: str | None,
    alarm_loop_func,
) -> None:
    def in_allowed_channel(ctx) -> bool:
        try:
            return ctx_in_allowed_channels(ctx, allowed_channel_ids)
        except Exception:
            return False

    command_deps = CommandDeps(
        registry=registry,
        send_chunked=send_chunked,
        clock=clock,
        timezone_name=timezone_name,
        timezone_label=timezone_label,
    )
    command_gates = CommandGates(
        in_allowed_channel=in_allowed_channel,
        allowed_channel_ids=allowed_channel_ids,
    )

    register_schedule(
        bot,
        deps=command_deps,
        gates=command_gates,
    )

    register_runtime_events(
        bot,
        deps=RuntimeDeps(
            db_lock=db_lock,
            db_conn=db_conn,
            registry=registry,
            clock=clock,
        ),
        boot=RuntimeBootDeps(
            alarm_loop_func=alarm_loop_func,
        ),
    )
