"""
TurnPostProcessor - bookkeeping after every turn outcome.

Runs for completed, suspended and failed turns alike:
  1. auto-resolve outstanding todos
  2. refresh hooks (surfaces re-read derived state, e.g. the todo panel)
  3. final stream_complete / stream_error event
Every step reports failures to the event log. Nothing here raises.
"""

from typing import Callable, List, Optional, Protocol

from core.event_log import EventLog
from core.lifecycle.task import get_todo_store
from core.models import TurnOutcome, TurnSource, TurnStatus
from utils.logger import log_error


class TaskList(Protocol):
    def auto_resolve_outstanding(self) -> list:
        ...


RefreshHook = Callable[[], None]


class TurnPostProcessor:
    def __init__(
        self,
        event_log: EventLog,
        task_list: Optional[TaskList] = None,
        refresh_hooks: Optional[List[RefreshHook]] = None,
    ):
        self.event_log = event_log
        self.task_list = task_list if task_list is not None else get_todo_store()
        self.refresh_hooks: List[RefreshHook] = list(refresh_hooks or [])

    def add_refresh_hook(self, hook: RefreshHook):
        self.refresh_hooks.append(hook)

    def run(self, source: TurnSource, outcome: TurnOutcome):
        try:
            resolved = self.task_list.auto_resolve_outstanding()
            if resolved:
                ids = ", ".join(f"#{getattr(t, 'id', t)}" for t in resolved)
                self.event_log.append(source, f"todos_autoresolved {ids}")
        except Exception as e:
            log_error(f"[PostTurn] Todo auto-resolve failed: {e}")
            self.event_log.append(source, f"todos_autoresolve_error {e}")

        for hook in self.refresh_hooks:
            try:
                hook()
            except Exception as e:
                log_error(f"[PostTurn] Refresh hook failed: {e}")
                self.event_log.append(source, f"refresh_error {e}")

        if outcome.status == TurnStatus.FAILED:
            self.event_log.append(source, f"stream_error {outcome.error or 'unknown error'}")
        else:
            self.event_log.append(source, "stream_complete")
