# core/stream_consumer.py
"""
StreamConsumer - drains one Run into accumulated text + event log lines.

Only the Execution phase passes on_update; Planning and Guidance accumulate
silently. Provider failures are not raised here, they show up as the Run's
failed outcome once the stream is drained.
"""

from typing import Callable, Optional

from core.event_log import EventLog
from core.models import TurnSource
from core.runs import (
    AGENT_UPDATED,
    MESSAGE_OUTPUT_CREATED,
    PHASE_STARTED,
    REASONING_ITEM_CREATED,
    TEXT_DELTA,
    TOOL_APPROVAL_REQUESTED,
    TOOL_CALLED,
    TOOL_OUTPUT,
    Run,
    StreamEvent,
)
from utils.formatting import format_event_args, format_event_output


class StreamConsumer:
    def __init__(self, event_log: EventLog):
        self.event_log = event_log

    async def consume(
        self,
        run: Run,
        source: TurnSource,
        on_update: Optional[Callable[[str], None]] = None,
    ) -> str:
        full = ""
        async for event in run:
            self.log_event(source, event)
            if event.kind == TEXT_DELTA:
                delta = event.data.get("delta") or ""
                if delta:
                    full += delta
                    if on_update is not None:
                        on_update(full)
        return full

    def log_event(self, source: TurnSource, event: StreamEvent):
        line = self.describe(event)
        if line:
            self.event_log.append(source, line)

    @staticmethod
    def describe(event: StreamEvent) -> Optional[str]:
        """Project one event to a compact log line (None = not logged)."""
        prefix = f"{event.agent}: " if event.agent else ""
        tool_name = event.data.get("tool") or "unknown_tool"

        if event.kind == TEXT_DELTA:
            return None
        if event.kind == TOOL_CALLED:
            args = format_event_args(event.data.get("arguments"))
            return f"{prefix}tool_called {tool_name}" + (f" args={args}" if args else "")
        if event.kind == TOOL_OUTPUT:
            output = format_event_output(event.data.get("output"))
            return f"{prefix}tool_output {tool_name}" + (f" → {output}" if output else "")
        if event.kind == TOOL_APPROVAL_REQUESTED:
            return f"{prefix}tool_approval_requested {tool_name}"
        if event.kind == AGENT_UPDATED:
            return f"agent_updated {event.agent or 'unknown_agent'}"
        if event.kind == PHASE_STARTED:
            return f"phase_started {event.data.get('phase', 'unknown')}"
        if event.kind in (REASONING_ITEM_CREATED, MESSAGE_OUTPUT_CREATED):
            return f"{prefix}{event.kind}"
        return f"raw_model_event {event.kind}"
