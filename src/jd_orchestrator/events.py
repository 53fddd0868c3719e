from __future__ import annotations

from typing import Any, Protocol

import structlog

log = structlog.get_logger()


class EventSink(Protocol):
    async def log_event(self, kind: str, details: str, source: str) -> None: ...


class StructlogEventSink:
    """Default sink: error events go to the structured log only."""

    async def log_event(self, kind: str, details: str, source: str) -> None:
        log.warning("error_event", kind=kind, details=details, source=source)


class SideChannel:
    """
    Fire-and-forget wrapper around an EventSink.

    `emit` never raises; it returns False when the sink failed so callers
    may inspect it, but are not required to.
    """

    def __init__(self, sink: EventSink | None = None):
        self._sink: EventSink = sink or StructlogEventSink()

    async def emit(self, kind: str, details: str, source: str, /, **context: Any) -> bool:
        if context:
            details = f"{details} | " + ", ".join(f"{k}={v}" for k, v in sorted(context.items()))
        try:
            await self._sink.log_event(kind, details, source)
        except Exception as e:
            log.debug("event_sink_failed", kind=kind, error=str(e))
            return False
        return True
