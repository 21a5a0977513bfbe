# core/session.py
"""
ChatSession - observable state shared with the presentation surfaces.

Holds the caller-visible message history, the live Execution text, the event
log and the approval queue. Every state change ends with notify(); surfaces
subscribe with a plain callback and receive an immutable SessionSnapshot.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from core.approval_queue import ApprovalQueue
from core.event_log import EventLog
from core.models import Message, PendingApproval, TurnSource
from utils.logger import log_error

EVENT_TAIL = 10


@dataclass(frozen=True)
class SessionSnapshot:
    messages: Tuple[Message, ...]
    live_text: Optional[str]
    is_streaming: bool
    active_source: Optional[TurnSource]
    pending: Tuple[PendingApproval, ...]
    cursor: int
    event_tail: Tuple[str, ...]

    def to_dict(self) -> dict:
        return {
            "messages": [m.to_dict() for m in self.messages],
            "live_text": self.live_text,
            "is_streaming": self.is_streaming,
            "active_source": self.active_source.value if self.active_source else None,
            "pending": [p.to_dict() for p in self.pending],
            "cursor": self.cursor,
            "event_tail": list(self.event_tail),
        }


Subscriber = Callable[[SessionSnapshot], None]


class ChatSession:
    def __init__(self, event_log: Optional[EventLog] = None, event_tail: int = EVENT_TAIL):
        self._messages: List[Message] = []
        self._subscribers: List[Subscriber] = []
        self._event_tail = event_tail
        self.live_text: Optional[str] = None
        self.is_streaming = False
        self.active_source: Optional[TurnSource] = None
        self.event_log = event_log or EventLog()
        self.event_log.set_listener(self.notify)
        self.approvals = ApprovalQueue(self.event_log, on_change=self.notify)

    # ═══════════════════════════════════════════════════════
    # MESSAGES
    # ═══════════════════════════════════════════════════════

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    def append(self, *messages: Message):
        self._messages.extend(messages)
        self.notify()

    def set_live_text(self, text: Optional[str]):
        self.live_text = text
        self.notify()

    def set_streaming(self, source: Optional[TurnSource]):
        self.active_source = source
        self.is_streaming = source is not None
        self.notify()

    # ═══════════════════════════════════════════════════════
    # SUBSCRIPTIONS
    # ═══════════════════════════════════════════════════════

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def _unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            messages=tuple(self._messages),
            live_text=self.live_text,
            is_streaming=self.is_streaming,
            active_source=self.active_source,
            pending=tuple(self.approvals.items),
            cursor=self.approvals.cursor,
            event_tail=tuple(self.event_log.lines(self._event_tail)),
        )

    def notify(self):
        # approvals is created after the event log hook is wired
        if not self._subscribers or not hasattr(self, "approvals"):
            return
        snap = self.snapshot()
        for callback in list(self._subscribers):
            try:
                callback(snap)
            except Exception as e:
                log_error(f"[ChatSession] Subscriber failed: {type(e).__name__}: {e}")
