# core/layers/base.py
"""
Shared pieces of the three phase layers.

A layer does not talk to the provider itself any more; it only builds the
PhaseConfig (agent name, model, instructions, model settings) that the
orchestrator hands to ExecutionProvider.submit_run().
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from config import (
    REASONING_MODEL_PREFIXES,
    get_model,
    get_reasoning_settings,
    get_thinking_settings,
)
from core.models import Phase

TODO_TOOL_INSTRUCTIONS = [
    "You can manage a persistent todo list stored in the current working directory using tools:",
    "- todo_add(text, priority?, depends_on?): Add a new todo",
    "- todo_list(include_completed=true): List todos",
    "- todo_complete(id): Mark a todo done",
    "- todo_set_status(id, status, blocked_reason?): Set status",
    "- todo_add_note(id, note): Append a note",
    "- todo_update(id, text): Change the text",
    "- todo_set_priority(id, priority): 1 highest, 5 lowest",
    "- todo_link_dep(id, depends_on_id) / todo_unlink_dep(id, depends_on_id): Manage dependencies",
    "- todo_focus(id): Focus a todo, 0 clears",
    "- todo_plan(steps): Add ordered steps for a goal",
    "- todo_remove(id): Remove a todo (needs user approval)",
    "- todo_clear_all(): Remove all todos (needs user approval)",
    "Keep responses short and show the resulting list when appropriate.",
]


@dataclass
class ModelSettings:
    tool_choice: Optional[str] = None
    reasoning: Optional[Dict[str, str]] = None
    verbosity: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.tool_choice:
            payload["tool_choice"] = self.tool_choice
        if self.reasoning:
            payload["reasoning"] = dict(self.reasoning)
        if self.verbosity:
            payload["verbosity"] = self.verbosity
        return payload


@dataclass
class PhaseConfig:
    """Everything the provider needs to run one phase."""
    phase: Phase
    agent_name: str
    model: str
    instructions: str
    settings: ModelSettings = field(default_factory=ModelSettings)

    @property
    def has_reasoning(self) -> bool:
        return self.settings.reasoning is not None


@dataclass
class LayerContext:
    """Turn-level inputs that shape the instructions."""
    capability_enabled: bool = True
    memory_enabled: bool = False
    ambient_enabled: bool = False
    ambient_summary: str = ""


def supports_reasoning(model: str) -> bool:
    return any(model.startswith(p) for p in REASONING_MODEL_PREFIXES)


def reasoning_settings_for(model: str, ctx: LayerContext) -> Optional[Dict[str, str]]:
    if ctx.capability_enabled and supports_reasoning(model):
        return get_reasoning_settings()
    return None


def thinking_verbosity() -> Optional[str]:
    thinking = get_thinking_settings()
    return thinking["verbosity"] if thinking["enabled"] else None


def join_lines(lines: List[str]) -> str:
    return "\n".join(line for line in lines if line)


def context_lines(ctx: LayerContext, ambient_verb: str = "prefer incorporating",
                  memory_verb: str = "prioritize consistency with") -> List[str]:
    return [
        f"Audio context capture is enabled; {ambient_verb} relevant auditory information if provided."
        if ctx.ambient_enabled else "",
        f"Long-term memory is available; {memory_verb} recalled context."
        if ctx.memory_enabled else "",
        f"Recent audio context summary: {ctx.ambient_summary}" if ctx.ambient_summary else "",
    ]


__all__ = [
    "TODO_TOOL_INSTRUCTIONS",
    "LayerContext",
    "ModelSettings",
    "PhaseConfig",
    "context_lines",
    "get_model",
    "join_lines",
    "reasoning_settings_for",
    "supports_reasoning",
    "thinking_verbosity",
]
