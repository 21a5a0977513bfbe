import copy

import pytest

from core.approval_queue import ApprovalQueue
from core.errors import ContinuationConsumedError
from core.event_log import EventLog
from core.models import Phase, TurnSource
from core.runs import ApprovalPolicy, ApprovalRequest, Continuation


def _continuation(*tools, policy=None):
    requests = [ApprovalRequest(f"call_{t}", t, {"id": i}) for i, t in enumerate(tools, start=1)]
    return Continuation(phase=Phase.EXECUTION, requests=requests, policy=policy), requests


def _queue():
    log = EventLog()
    changes = []
    return ApprovalQueue(log, on_change=lambda: changes.append(1)), log, changes


def test_enqueue_keeps_fifo_across_sources():
    queue, log, changes = _queue()
    chat_cont, chat_reqs = _continuation("todo_remove")
    linger_cont, linger_reqs = _continuation("todo_clear_all", "todo_remove")

    queue.enqueue(TurnSource.CHAT, chat_cont, chat_reqs)
    queue.enqueue(TurnSource.LINGER, linger_cont, linger_reqs)

    assert [(e.source, e.tool_name) for e in queue.items] == [
        (TurnSource.CHAT, "todo_remove"),
        (TurnSource.LINGER, "todo_clear_all"),
        (TurnSource.LINGER, "todo_remove"),
    ]
    assert queue.items[0].args_summary == '{"id": 1}'
    assert log.texts(TurnSource.LINGER) == ["interruption_pending todo_clear_all, todo_remove"]
    assert changes


def test_duplicate_call_ids_get_unique_entry_ids():
    queue, _, _ = _queue()
    first, reqs_a = _continuation("todo_remove")
    second, reqs_b = _continuation("todo_remove")

    queue.enqueue(TurnSource.CHAT, first, reqs_a)
    queue.enqueue(TurnSource.CHAT, second, reqs_b)

    assert [e.id for e in queue.items] == ["call_todo_remove", "call_todo_remove-2"]


def test_cursor_is_clamped_and_reset():
    queue, _, _ = _queue()
    assert queue.select(5) == 0

    cont, reqs = _continuation("a", "b", "c")
    queue.enqueue(TurnSource.CHAT, cont, reqs)
    assert queue.cursor == 0
    assert queue.select(10) == 2
    assert queue.move(-5) == 0

    queue.select(2)
    queue.decide()
    assert queue.cursor == 1
    queue.decide()
    queue.decide()
    assert len(queue) == 0
    assert queue.cursor == 0
    assert queue.selected() is None


def test_cursor_resets_when_list_refills():
    queue, _, _ = _queue()
    cont, reqs = _continuation("a", "b")
    queue.enqueue(TurnSource.CHAT, cont, reqs)
    queue.select(1)
    queue.decide(0)
    queue.decide(0)

    new_cont, new_reqs = _continuation("c", "d")
    queue.enqueue(TurnSource.LINGER, new_cont, new_reqs)

    assert queue.cursor == 0
    assert queue.selected().tool_name == "c"


def test_decide_reports_resume_only_for_last_entry_of_a_continuation():
    queue, log, _ = _queue()
    cont, reqs = _continuation("todo_remove", "todo_clear_all")
    queue.enqueue(TurnSource.CHAT, cont, reqs)

    first = queue.decide(approve=True)
    assert first.applied and first.resume is None
    assert [e.tool_name for e in first.remaining] == ["todo_clear_all"]

    second = queue.decide(approve=False, always=True)
    assert second.applied and second.resume is cont
    assert cont.decisions == {"call_todo_remove": True, "call_todo_clear_all": False}
    assert log.texts()[-2:] == ["approval_granted todo_remove", "approval_rejected todo_clear_all (always)"]


def test_always_updates_the_provider_policy():
    policy = ApprovalPolicy(lambda name: True)
    queue, _, _ = _queue()
    cont, reqs = _continuation("todo_remove", policy=policy)
    queue.enqueue(TurnSource.CHAT, cont, reqs)

    queue.decide(approve=True, always=True)

    assert policy.check("todo_remove") == ApprovalPolicy.ALLOW


def test_unknown_and_repeated_decisions_are_no_ops():
    queue, log, _ = _queue()
    cont, reqs = _continuation("todo_remove")
    queue.enqueue(TurnSource.CHAT, cont, reqs)
    entry_id = queue.items[0].id

    assert queue.decide_by_id(entry_id).applied
    again = queue.decide_by_id(entry_id)

    assert not again.applied
    assert cont.decisions == {"call_todo_remove": True}
    assert log.texts()[-1] == f"approval_error unknown approval {entry_id}"
    assert not queue.decide(3).applied


def test_failed_application_keeps_entry_queued():
    queue, log, _ = _queue()
    cont, reqs = _continuation("todo_remove")
    queue.enqueue(TurnSource.CHAT, cont, reqs)
    cont.consume()

    decision = queue.decide()

    assert not decision.applied
    assert len(queue) == 1
    assert log.texts()[-1].startswith("approval_error continuation")


def test_continuation_is_single_use_and_not_copyable():
    cont, reqs = _continuation("todo_remove")
    cont.consume()

    with pytest.raises(ContinuationConsumedError):
        cont.consume()
    with pytest.raises(ContinuationConsumedError):
        cont.approve(reqs[0])
    with pytest.raises(TypeError):
        copy.copy(cont)
    with pytest.raises(TypeError):
        copy.deepcopy(cont)
