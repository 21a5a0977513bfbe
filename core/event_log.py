# core/event_log.py
"""
EventLog - capped, append-only operator log.

Observability only: nothing in the control flow reads it back.
"""

from collections import deque
from datetime import datetime
from typing import Callable, Deque, List, Optional

from config import EVENT_LOG_LIMIT
from core.models import EventLogEntry, TurnSource
from utils.logger import log_debug


class EventLog:
    def __init__(self, limit: int = EVENT_LOG_LIMIT, on_append: Optional[Callable[[], None]] = None):
        self._entries: Deque[EventLogEntry] = deque(maxlen=max(1, limit))
        self._on_append = on_append

    def set_listener(self, callback: Optional[Callable[[], None]]):
        self._on_append = callback

    def append(self, source: TurnSource, text: str) -> EventLogEntry:
        entry = EventLogEntry(timestamp=datetime.now(), source=source, text=text)
        self._entries.append(entry)
        log_debug(f"[EventLog] [{source.value}] {text}")
        if self._on_append is not None:
            self._on_append()
        return entry

    def tail(self, n: Optional[int] = None) -> List[EventLogEntry]:
        items = list(self._entries)
        return items if n is None else items[-n:]

    def lines(self, n: Optional[int] = None) -> List[str]:
        return [e.format() for e in self.tail(n)]

    def texts(self, source: Optional[TurnSource] = None) -> List[str]:
        """Plain entry texts, optionally filtered by source."""
        return [e.text for e in self._entries if source is None or e.source == source]

    def __len__(self) -> int:
        return len(self._entries)
