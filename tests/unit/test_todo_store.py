import json

from core.lifecycle.task import AUTO_RESOLVE_NOTE, TodoStore


def test_add_assigns_ids_and_persists(todo_store):
    first = todo_store.add("  buy milk ", priority=2)
    second = todo_store.add("call mum", depends_on=[first.id])

    reloaded = TodoStore(str(todo_store.path))
    assert [t.id for t in reloaded.list()] == [1, 2]
    assert reloaded.get(1).text == "buy milk"
    assert reloaded.get(2).depends_on == [1]
    assert second.priority == 3


def test_list_orders_by_status_then_priority(todo_store):
    todo_store.add("low", priority=5)
    todo_store.add("high", priority=1)
    todo_store.add("started", priority=4)
    todo_store.add("finished", priority=1)
    todo_store.set_status(3, "in_progress")
    todo_store.complete(4)

    assert [t.text for t in todo_store.list()] == ["started", "high", "low", "finished"]
    assert [t.text for t in todo_store.list(include_completed=False)] == ["started", "high", "low"]


def test_invalid_priority_falls_back_to_default(todo_store):
    assert todo_store.add("x", priority=9).priority == 3


def test_blocked_reason_only_kept_while_blocked(todo_store):
    todo_store.add("deploy")

    blocked = todo_store.set_status(1, "blocked", "waiting on review")
    assert blocked.blocked_reason == "waiting on review"

    resumed = todo_store.set_status(1, "in_progress", "ignored")
    assert resumed.blocked_reason is None
    assert todo_store.set_status(42, "done") is None


def test_remove_drops_dependency_references(todo_store):
    todo_store.add("a")
    todo_store.add("b", depends_on=[1])

    removed = todo_store.remove(1)

    assert removed.text == "a"
    assert todo_store.get(2).depends_on == []
    assert todo_store.remove(1) is None


def test_clear_all_keeps_id_counter(todo_store):
    todo_store.add("a")
    todo_store.add("b")

    assert todo_store.clear_all() == 2
    assert todo_store.list() == []
    assert todo_store.add("c").id == 3


def test_auto_resolve_respects_dependencies_and_blocked(todo_store):
    todo_store.add("first")
    todo_store.add("second", depends_on=[1])
    todo_store.add("stuck")
    todo_store.set_status(3, "blocked", "no access")

    resolved = todo_store.auto_resolve_outstanding()

    # #2 waits for #1, which was still open when the pass started
    assert [t.id for t in resolved] == [1]
    assert todo_store.get(1).notes == [AUTO_RESOLVE_NOTE]
    assert todo_store.get(2).status == "todo"
    assert todo_store.get(3).status == "blocked"

    assert [t.id for t in todo_store.auto_resolve_outstanding()] == [2]
    assert todo_store.auto_resolve_outstanding() == []


def test_legacy_file_is_migrated(tmp_path):
    path = tmp_path / "legacy.json"
    path.write_text(json.dumps({
        "lastId": 2,
        "items": [
            {"id": 1, "text": "old done", "completed": True, "createdAt": "2024-01-01T00:00:00Z"},
            {"id": 2, "text": "old open", "completed": False, "dependsOn": [1]},
        ],
    }))

    store = TodoStore(str(path))

    assert store.get(1).status == "done"
    assert store.get(2).status == "todo"
    assert store.get(2).depends_on == [1]
    assert store.add("new").id == 3


def test_missing_file_is_empty(tmp_path):
    assert TodoStore(str(tmp_path / "nope.json")).list() == []


def test_link_dependency_requires_both_todos(todo_store):
    todo_store.add("a")
    todo_store.add("b")

    assert todo_store.link_dependency(2, 1).depends_on == [1]
    assert todo_store.link_dependency(2, 1).depends_on == [1]
    assert todo_store.link_dependency(2, 9) is None
    assert todo_store.link_dependency(9, 1) is None
    assert todo_store.link_dependency(1, 1) is None
    assert todo_store.unlink_dependency(2, 1).depends_on == []


def test_focus_ignores_unknown_ids_and_clears_on_done(todo_store):
    todo_store.add("a")

    assert todo_store.set_focus(1) == 1
    assert todo_store.set_focus(5) == 1
    todo_store.complete(1)
    assert todo_store.load().focused_id is None


def test_plan_appends_steps_in_order(todo_store):
    todo_store.add("goal")

    added = todo_store.plan([" step one ", "step two"])

    assert [(t.id, t.text) for t in added] == [(2, "step one"), (3, "step two")]
    assert TodoStore(str(todo_store.path)).load().last_id == 3
