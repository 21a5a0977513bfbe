from unittest.mock import MagicMock

from core.event_log import EventLog
from core.lifecycle.post_turn import TurnPostProcessor
from core.models import TurnOutcome, TurnSource, TurnStatus


def _outcome(status=TurnStatus.COMPLETED, error=None, source=TurnSource.CHAT):
    return TurnOutcome(status=status, source=source, error=error)


def test_autoresolved_todos_are_logged(todo_store):
    todo_store.add("water plants")
    todo_store.add("call mum")
    log = EventLog()

    TurnPostProcessor(log, todo_store).run(TurnSource.CHAT, _outcome())

    assert log.texts() == ["todos_autoresolved #1, #2", "stream_complete"]


def test_nothing_to_resolve_only_reports_completion(todo_store):
    log = EventLog()

    TurnPostProcessor(log, todo_store).run(TurnSource.LINGER, _outcome(source=TurnSource.LINGER))

    assert log.texts(TurnSource.LINGER) == ["stream_complete"]


def test_failures_are_reported_not_raised():
    log = EventLog()
    task_list = MagicMock()
    task_list.auto_resolve_outstanding.side_effect = OSError("disk full")
    hook = MagicMock(side_effect=RuntimeError("panel gone"))
    later_hook = MagicMock()
    processor = TurnPostProcessor(log, task_list, refresh_hooks=[hook])
    processor.add_refresh_hook(later_hook)

    processor.run(TurnSource.CHAT, _outcome(TurnStatus.FAILED, error="HTTP 500"))

    assert log.texts() == [
        "todos_autoresolve_error disk full",
        "refresh_error panel gone",
        "stream_error HTTP 500",
    ]
    later_hook.assert_called_once()


def test_suspended_turn_still_counts_as_stream_complete():
    log = EventLog()
    task_list = MagicMock()
    task_list.auto_resolve_outstanding.return_value = []

    TurnPostProcessor(log, task_list).run(TurnSource.CHAT, _outcome(TurnStatus.SUSPENDED))

    assert log.texts() == ["stream_complete"]
