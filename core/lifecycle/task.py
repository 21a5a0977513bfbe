"""
TodoStore - file-backed task list used by the todo tools and the turn
post-processor.

Stored as JSON next to the working directory (TODO_FILE, default
.gsio-todos.json). Legacy files with a boolean `completed` flag instead of
`status` are migrated on load.

Auto-resolve (called after every turn):
  - completes every todo that is not done and not blocked
  - but only when all of its dependencies are done
  - annotates each resolved todo with a note
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from config import TODO_FILE
from utils.logger import log_info, log_warning

# ═══════════════════════════════════════════════════════════
# CONSTANTS
# ═══════════════════════════════════════════════════════════

TodoStatus = Literal["todo", "in_progress", "blocked", "done"]

STATUS_ORDER: Dict[str, int] = {"in_progress": 0, "blocked": 1, "todo": 2, "done": 3}
AUTO_RESOLVE_NOTE = "Auto-completed after turn"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Todo(BaseModel):
    id: int
    text: str
    status: TodoStatus = "todo"
    priority: int = Field(default=3, ge=1, le=5)
    depends_on: List[int] = Field(default_factory=list)
    notes: List[str] = Field(default_factory=list)
    created_at: str = Field(default_factory=_now)
    completed_at: Optional[str] = None
    blocked_reason: Optional[str] = None

    @field_validator("priority", mode="before")
    @classmethod
    def _clamp_priority(cls, v: Any) -> int:
        try:
            v = int(v)
        except (TypeError, ValueError):
            return 3
        return v if 1 <= v <= 5 else 3

    def label(self) -> str:
        return f"#{self.id} [{self.status}] p{self.priority} {self.text}"


class TodoData(BaseModel):
    last_id: int = 0
    items: List[Todo] = Field(default_factory=list)
    focused_id: Optional[int] = None


class TodoStore:
    """Reads and writes the whole file per operation, like the original tool layer."""

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path or TODO_FILE).expanduser()

    # ═══════════════════════════════════════════════════════
    # PERSISTENCE
    # ═══════════════════════════════════════════════════════

    def load(self) -> TodoData:
        if not self.path.exists():
            return TodoData()
        raw = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        if not isinstance(raw, dict):
            return TodoData()
        return TodoData(
            last_id=raw.get("last_id", raw.get("lastId", 0)) or 0,
            items=[self._migrate(item) for item in raw.get("items", []) if isinstance(item, dict)],
            focused_id=raw.get("focused_id", raw.get("focusedId")),
        )

    def save(self, data: TodoData):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(data.model_dump_json(indent=2), encoding="utf-8")

    @staticmethod
    def _migrate(item: Dict[str, Any]) -> Todo:
        status = item.get("status") or ("done" if item.get("completed") else "todo")
        try:
            return Todo(
                id=int(item["id"]),
                text=str(item.get("text", "")),
                status=status,
                priority=item.get("priority", 3),
                depends_on=[int(d) for d in item.get("depends_on", item.get("dependsOn", [])) if isinstance(d, int)],
                notes=[str(n) for n in item.get("notes", [])],
                created_at=str(item.get("created_at", item.get("createdAt", _now()))),
                completed_at=item.get("completed_at", item.get("completedAt")),
                blocked_reason=item.get("blocked_reason", item.get("blockedReason")),
            )
        except (KeyError, ValueError, ValidationError) as e:
            raise ValueError(f"invalid todo entry {item!r}: {e}") from e

    # ═══════════════════════════════════════════════════════
    # PUBLIC API
    # ═══════════════════════════════════════════════════════

    def add(self, text: str, priority: int = 3, depends_on: Optional[List[int]] = None) -> Todo:
        data = self.load()
        data.last_id += 1
        todo = Todo(id=data.last_id, text=text.strip(), priority=priority, depends_on=depends_on or [])
        data.items.append(todo)
        self.save(data)
        return todo

    def list(self, include_completed: bool = True) -> List[Todo]:
        items = self.load().items
        if not include_completed:
            items = [t for t in items if t.status != "done"]
        return sorted(items, key=lambda t: (STATUS_ORDER[t.status], t.priority, t.id))

    def get(self, todo_id: int) -> Optional[Todo]:
        for todo in self.load().items:
            if todo.id == todo_id:
                return todo
        return None

    def complete(self, todo_id: int) -> Optional[Todo]:
        return self.set_status(todo_id, "done")

    def set_status(self, todo_id: int, status: TodoStatus, blocked_reason: Optional[str] = None) -> Optional[Todo]:
        data = self.load()
        todo = self._find(data, todo_id)
        if todo is None:
            return None
        todo.status = status
        todo.blocked_reason = blocked_reason if status == "blocked" else None
        if status == "done":
            todo.completed_at = _now()
            if data.focused_id == todo_id:
                data.focused_id = None
        self.save(data)
        return todo

    def add_note(self, todo_id: int, note: str) -> Optional[Todo]:
        data = self.load()
        todo = self._find(data, todo_id)
        if todo is None:
            return None
        todo.notes.append(note)
        self.save(data)
        return todo

    def update_text(self, todo_id: int, text: str) -> Optional[Todo]:
        data = self.load()
        todo = self._find(data, todo_id)
        if todo is None:
            return None
        todo.text = text.strip()
        self.save(data)
        return todo

    def set_priority(self, todo_id: int, priority: int) -> Optional[Todo]:
        data = self.load()
        todo = self._find(data, todo_id)
        if todo is None:
            return None
        todo.priority = priority
        self.save(data)
        return todo

    def link_dependency(self, todo_id: int, depends_on_id: int) -> Optional[Todo]:
        """None when either todo is missing or the link would point at itself."""
        data = self.load()
        todo = self._find(data, todo_id)
        if todo is None or todo_id == depends_on_id or self._find(data, depends_on_id) is None:
            return None
        if depends_on_id not in todo.depends_on:
            todo.depends_on.append(depends_on_id)
            self.save(data)
        return todo

    def unlink_dependency(self, todo_id: int, depends_on_id: int) -> Optional[Todo]:
        data = self.load()
        todo = self._find(data, todo_id)
        if todo is None:
            return None
        todo.depends_on = [d for d in todo.depends_on if d != depends_on_id]
        self.save(data)
        return todo

    def set_focus(self, todo_id: Optional[int]) -> Optional[int]:
        """Focus todo_id (None clears). Unknown ids keep the current focus."""
        data = self.load()
        if todo_id is not None and self._find(data, todo_id) is None:
            return data.focused_id
        data.focused_id = todo_id
        self.save(data)
        return data.focused_id

    def plan(self, steps: List[str]) -> List[Todo]:
        data = self.load()
        added: List[Todo] = []
        for step in steps:
            data.last_id += 1
            todo = Todo(id=data.last_id, text=step.strip())
            data.items.append(todo)
            added.append(todo)
        self.save(data)
        return added

    def remove(self, todo_id: int) -> Optional[Todo]:
        data = self.load()
        todo = self._find(data, todo_id)
        if todo is None:
            return None
        data.items = [t for t in data.items if t.id != todo_id]
        for other in data.items:
            other.depends_on = [d for d in other.depends_on if d != todo_id]
        if data.focused_id == todo_id:
            data.focused_id = None
        self.save(data)
        return todo

    def clear_all(self) -> int:
        data = self.load()
        count = len(data.items)
        self.save(TodoData(last_id=data.last_id))
        return count

    def auto_resolve_outstanding(self) -> List[Todo]:
        """Complete open todos whose dependencies are all done."""
        data = self.load()
        done_ids = {t.id for t in data.items if t.status == "done"}
        resolved: List[Todo] = []
        for todo in data.items:
            if todo.status in ("done", "blocked"):
                continue
            if any(dep not in done_ids for dep in todo.depends_on):
                continue
            todo.status = "done"
            todo.completed_at = _now()
            todo.notes.append(AUTO_RESOLVE_NOTE)
            resolved.append(todo)
        if resolved:
            if data.focused_id in {t.id for t in resolved}:
                data.focused_id = None
            self.save(data)
            log_info(f"[TodoStore] Auto-resolved {len(resolved)} todo(s)")
        return resolved

    @staticmethod
    def _find(data: TodoData, todo_id: int) -> Optional[Todo]:
        for todo in data.items:
            if todo.id == todo_id:
                return todo
        log_warning(f"[TodoStore] Todo #{todo_id} not found")
        return None


# ═══════════════════════════════════════════════════════════
# SINGLETON ACCESSOR
# ═══════════════════════════════════════════════════════════

_store_instance: Optional[TodoStore] = None


def get_todo_store() -> TodoStore:
    global _store_instance
    if _store_instance is None:
        _store_instance = TodoStore()
    return _store_instance
