# core/approval_queue.py
"""
ApprovalQueue - global FIFO of tool calls waiting for a human decision.

Chat and linger approvals share one list, ordered by arrival. The cursor is
re-clamped inside every mutating method, so a surface never sees it point past
the end of the list.
"""

import uuid
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from core.errors import ApprovalApplicationError, ContinuationConsumedError
from core.event_log import EventLog
from core.models import PendingApproval, TurnSource
from core.runs import ApprovalRequest, Continuation
from utils.formatting import format_event_args
from utils.logger import log_info, log_warning


@dataclass
class ApprovalDecision:
    """What happened when a decision was submitted."""
    applied: bool
    approved: bool = False
    always: bool = False
    entry: Optional[PendingApproval] = None
    remaining: List[PendingApproval] = field(default_factory=list)
    # Set when the decided entry was the last one of its continuation
    resume: Optional[Continuation] = None
    error: Optional[str] = None


class ApprovalQueue:
    def __init__(self, event_log: EventLog, on_change: Optional[Callable[[], None]] = None):
        self._items: List[PendingApproval] = []
        self._cursor = 0
        self._event_log = event_log
        self._on_change = on_change

    # ═══════════════════════════════════════════════════════
    # READ
    # ═══════════════════════════════════════════════════════

    @property
    def items(self) -> List[PendingApproval]:
        return list(self._items)

    @property
    def cursor(self) -> int:
        return self._cursor

    def __len__(self) -> int:
        return len(self._items)

    def selected(self) -> Optional[PendingApproval]:
        return self._items[self._cursor] if self._items else None

    def get(self, approval_id: str) -> Optional[PendingApproval]:
        for entry in self._items:
            if entry.id == approval_id:
                return entry
        return None

    # ═══════════════════════════════════════════════════════
    # MUTATE
    # ═══════════════════════════════════════════════════════

    def enqueue(
        self,
        source: TurnSource,
        continuation: Continuation,
        requests: Sequence[ApprovalRequest],
    ) -> List[PendingApproval]:
        if not requests:
            return []
        was_empty = not self._items
        taken = {e.id for e in self._items}
        entries = []
        for request in requests:
            entry = PendingApproval(
                id=self._unique_id(request, taken),
                tool_name=request.tool_name or "unknown_tool",
                args_summary=format_event_args(request.arguments),
                source=source,
                continuation=continuation,
                request=request,
            )
            taken.add(entry.id)
            entries.append(entry)

        self._items.extend(entries)
        self._clamp(was_empty)
        self._event_log.append(
            source, f"interruption_pending {', '.join(e.tool_name for e in entries)}"
        )
        log_info(f"[ApprovalQueue] +{len(entries)} pending ({source.value}), total={len(self._items)}")
        self._changed()
        return entries

    def select(self, index: int) -> int:
        self._cursor = index
        self._clamp(False)
        self._changed()
        return self._cursor

    def move(self, delta: int) -> int:
        return self.select(self._cursor + delta)

    def decide(self, index: Optional[int] = None, approve: bool = True, always: bool = False) -> ApprovalDecision:
        """Decide the entry at index (default: the cursor)."""
        idx = self._cursor if index is None else index
        if not 0 <= idx < len(self._items):
            return self._unknown(f"#{idx}")
        return self._apply(self._items[idx], approve, always)

    def decide_by_id(self, approval_id: str, approve: bool = True, always: bool = False) -> ApprovalDecision:
        entry = self.get(approval_id)
        if entry is None:
            return self._unknown(approval_id)
        return self._apply(entry, approve, always)

    # ═══════════════════════════════════════════════════════
    # INTERNALS
    # ═══════════════════════════════════════════════════════

    def _apply(self, entry: PendingApproval, approve: bool, always: bool) -> ApprovalDecision:
        try:
            if approve:
                entry.continuation.approve(entry.request, always=always)
            else:
                entry.continuation.reject(entry.request, always=always)
        except (ApprovalApplicationError, ContinuationConsumedError) as e:
            self._event_log.append(entry.source, f"approval_error {e}")
            log_warning(f"[ApprovalQueue] Could not apply decision for {entry.tool_name}: {e}")
            return ApprovalDecision(
                applied=False, approved=approve, always=always, entry=entry,
                remaining=self.items, error=str(e),
            )

        self._items = [e for e in self._items if e is not entry]
        self._clamp(False)

        verb = "approval_granted" if approve else "approval_rejected"
        suffix = " (always)" if always else ""
        self._event_log.append(entry.source, f"{verb} {entry.tool_name}{suffix}")

        still_pending = any(e.continuation is entry.continuation for e in self._items)
        self._changed()
        return ApprovalDecision(
            applied=True,
            approved=approve,
            always=always,
            entry=entry,
            remaining=self.items,
            resume=None if still_pending else entry.continuation,
        )

    def _unknown(self, ref: str) -> ApprovalDecision:
        # Already decided or never existed: report, but change nothing
        source = self._items[0].source if self._items else TurnSource.CHAT
        self._event_log.append(source, f"approval_error unknown approval {ref}")
        return ApprovalDecision(applied=False, remaining=self.items, error=f"unknown approval {ref}")

    def _clamp(self, was_empty: bool):
        if not self._items:
            self._cursor = 0
        elif was_empty:
            self._cursor = 0
        else:
            self._cursor = max(0, min(self._cursor, len(self._items) - 1))

    def _unique_id(self, request: ApprovalRequest, taken: set) -> str:
        base = str(request.call_id or f"{request.tool_name}-{uuid.uuid4().hex[:8]}")
        candidate, n = base, 1
        while candidate in taken:
            n += 1
            candidate = f"{base}-{n}"
        return candidate

    def _changed(self):
        if self._on_change is not None:
            self._on_change()
