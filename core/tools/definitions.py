from typing import Any, ClassVar, Dict, List, Optional

from pydantic import BaseModel, Field

from core.lifecycle.task import get_todo_store


class BaseNativeTool(BaseModel):
    """Base class for native tools. Subclasses set the class-level metadata."""
    tool_name: str = Field("", exclude=True)

    # Destructive tools ask the human first
    NEEDS_APPROVAL: ClassVar[bool] = False

    def execute(self) -> Any:
        raise NotImplementedError


def _todo_or_error(todo, todo_id: int) -> Any:
    if todo is None:
        raise ValueError(f"todo #{todo_id} not found")
    return todo.label()


# ==============================================================================
# TODO TOOLS
# ==============================================================================

class TodoAddTool(BaseNativeTool):
    """Add a new todo to the task list."""
    text: str = Field(..., description="What needs to be done.")
    priority: int = Field(3, ge=1, le=5, description="1 is highest, 5 lowest.")
    depends_on: List[int] = Field(default_factory=list, description="Ids this todo depends on.")

    def execute(self) -> str:
        return get_todo_store().add(self.text, self.priority, self.depends_on).label()


class TodoListTool(BaseNativeTool):
    """List todos sorted by status and priority."""
    include_completed: bool = Field(True, description="Include done items.")

    def execute(self) -> List[str]:
        return [t.label() for t in get_todo_store().list(self.include_completed)]


class TodoCompleteTool(BaseNativeTool):
    """Mark a todo as done."""
    id: int = Field(..., description="Todo id.")

    def execute(self) -> str:
        return _todo_or_error(get_todo_store().complete(self.id), self.id)


class TodoSetStatusTool(BaseNativeTool):
    """Set the status of a todo (todo, in_progress, blocked, done)."""
    id: int = Field(..., description="Todo id.")
    status: str = Field(..., pattern="^(todo|in_progress|blocked|done)$")
    blocked_reason: Optional[str] = Field(None, description="Why the todo is blocked.")

    def execute(self) -> str:
        return _todo_or_error(
            get_todo_store().set_status(self.id, self.status, self.blocked_reason), self.id
        )


class TodoAddNoteTool(BaseNativeTool):
    """Append a note to a todo."""
    id: int = Field(..., description="Todo id.")
    note: str = Field(..., description="Note text.")

    def execute(self) -> str:
        return _todo_or_error(get_todo_store().add_note(self.id, self.note), self.id)


class TodoUpdateTool(BaseNativeTool):
    """Update the text of a todo."""
    id: int = Field(..., description="Todo id.")
    text: str = Field(..., min_length=1, description="New text.")

    def execute(self) -> str:
        return _todo_or_error(get_todo_store().update_text(self.id, self.text), self.id)


class TodoSetPriorityTool(BaseNativeTool):
    """Set a todo's priority from 1 (highest) to 5 (lowest)."""
    id: int = Field(..., description="Todo id.")
    priority: int = Field(..., ge=1, le=5)

    def execute(self) -> str:
        return _todo_or_error(get_todo_store().set_priority(self.id, self.priority), self.id)


class TodoLinkDepTool(BaseNativeTool):
    """Make a todo depend on another one."""
    id: int = Field(..., description="Todo id.")
    depends_on_id: int = Field(..., description="Id of the todo it depends on.")

    def execute(self) -> str:
        todo = get_todo_store().link_dependency(self.id, self.depends_on_id)
        if todo is None:
            raise ValueError(f"cannot link #{self.id} to #{self.depends_on_id}")
        return f"{todo.label()} depends on {todo.depends_on}"


class TodoUnlinkDepTool(BaseNativeTool):
    """Remove a dependency from a todo."""
    id: int = Field(..., description="Todo id.")
    depends_on_id: int = Field(..., description="Id of the dependency to drop.")

    def execute(self) -> str:
        todo = get_todo_store().unlink_dependency(self.id, self.depends_on_id)
        if todo is None:
            raise ValueError(f"todo #{self.id} not found")
        return f"{todo.label()} depends on {todo.depends_on}"


class TodoFocusTool(BaseNativeTool):
    """Set the focused todo, or clear the focus with id 0."""
    id: int = Field(..., ge=0, description="Todo id, 0 clears.")

    def execute(self) -> str:
        focused = get_todo_store().set_focus(self.id or None)
        return f"focused on #{focused}" if focused else "focus cleared"


class TodoPlanTool(BaseNativeTool):
    """Add the steps of a plan as todos, in order."""
    steps: List[str] = Field(..., min_length=1, description="Steps in execution order.")

    def execute(self) -> List[str]:
        return [t.label() for t in get_todo_store().plan(self.steps)]


class TodoRemoveTool(BaseNativeTool):
    """Remove a todo permanently."""
    NEEDS_APPROVAL: ClassVar[bool] = True
    id: int = Field(..., description="Todo id.")

    def execute(self) -> str:
        return _todo_or_error(get_todo_store().remove(self.id), self.id)


class TodoClearAllTool(BaseNativeTool):
    """Remove every todo."""
    NEEDS_APPROVAL: ClassVar[bool] = True

    def execute(self) -> str:
        return f"removed {get_todo_store().clear_all()} todo(s)"


# ==============================================================================
# TOOL REGISTRY
# ==============================================================================

NATIVE_TOOLS: Dict[str, type] = {
    "todo_add": TodoAddTool,
    "todo_list": TodoListTool,
    "todo_complete": TodoCompleteTool,
    "todo_set_status": TodoSetStatusTool,
    "todo_add_note": TodoAddNoteTool,
    "todo_update": TodoUpdateTool,
    "todo_set_priority": TodoSetPriorityTool,
    "todo_link_dep": TodoLinkDepTool,
    "todo_unlink_dep": TodoUnlinkDepTool,
    "todo_focus": TodoFocusTool,
    "todo_plan": TodoPlanTool,
    "todo_remove": TodoRemoveTool,
    "todo_clear_all": TodoClearAllTool,
}


def tool_schema(name: str, tool_cls: type) -> Dict[str, Any]:
    """OpenAI function-tool definition for a native tool."""
    schema = tool_cls.model_json_schema()
    schema.pop("title", None)
    schema.get("properties", {}).pop("tool_name", None)
    for prop in schema.get("properties", {}).values():
        prop.pop("title", None)
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": (tool_cls.__doc__ or "").strip(),
            "parameters": schema,
        },
    }
