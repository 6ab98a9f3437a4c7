"""Remote command dispatch onto the transport engine."""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from walkman_player.events import EventBus, RemoteCommandReceived
from walkman_player.services.transport_engine import TransportEngine

logger = logging.getLogger(__name__)

CommandKind = Literal["play", "pause", "toggle", "next", "previous"]

WIRE_COMMANDS: dict[str, CommandKind] = {
    "playpause": "toggle",
    "toggle": "toggle",
    "play": "play",
    "pause": "pause",
    "next": "next",
    "prev": "previous",
    "previous": "previous",
}


@dataclass(frozen=True)
class RemoteCommand:
    kind: CommandKind
    received_at: float = field(default_factory=time.time)


def parse_command(raw: object) -> RemoteCommand | None:
    """Map a wire command name to a `RemoteCommand`; unknown names give None."""
    if not isinstance(raw, str):
        return None
    kind = WIRE_COMMANDS.get(raw.strip().lower())
    if kind is None:
        return None
    return RemoteCommand(kind)


class CommandDispatcher:
    """Apply remote commands to the engine.

    `toggle` flips on the engine's current `is_playing` at dispatch time; the
    remote never sends the state it expects.
    """

    def __init__(self, engine: TransportEngine, bus: EventBus | None = None) -> None:
        self._engine = engine
        self._bus = bus

    async def handle_message(self, payload: Mapping[str, Any]) -> RemoteCommand | None:
        """Handle one inbound `command` frame."""
        raw = payload.get("command")
        command = parse_command(raw)
        if command is None:
            logger.warning("Ignoring unknown remote command %r", raw)
            return None
        logger.info(
            "Remote command received",
            extra={"command": command.kind, "raw": raw},
        )
        if self._bus is not None:
            await self._bus.publish(RemoteCommandReceived(command, str(raw)))
        await self.dispatch(command)
        return command

    async def dispatch(self, command: RemoteCommand) -> None:
        engine = self._engine
        try:
            if command.kind == "play":
                if not engine.state.is_playing:
                    await engine.play()
            elif command.kind == "pause":
                if engine.state.is_playing:
                    await engine.pause()
            elif command.kind == "toggle":
                await engine.toggle()
            elif command.kind == "next":
                await engine.advance("next")
            elif command.kind == "previous":
                await engine.advance("previous")
        except Exception:
            logger.exception(
                "Remote command failed", extra={"command": command.kind}
            )
