# core/layers/planning.py
"""
LAYER 1: PlanningLayer (reasoning model)

Breaks the latest request down into a numbered plan. Never calls tools.
Uses the reasoning model with effort/summary settings while reasoning
summaries are available; once the capability is gone it plans with the
guidance model instead.
"""

from core.layers.base import (
    TODO_TOOL_INSTRUCTIONS,
    LayerContext,
    ModelSettings,
    PhaseConfig,
    context_lines,
    get_model,
    join_lines,
    reasoning_settings_for,
    thinking_verbosity,
)
from core.models import Phase

PLANNING_PROMPT = [
    "You are the planning specialist. Break down the latest user request into a concise, numbered plan before any work begins.",
    "Capture dependencies, data that must be gathered, and TODO updates when relevant. Do not execute tasks or modify files, only plan.",
]

SUMMARIES_DISABLED_LINE = "Reasoning summaries are currently disabled; produce a clear plan without them."


class PlanningLayer:
    agent_name = "Planner"

    def build_config(self, ctx: LayerContext) -> PhaseConfig:
        model = get_model("REASONING_MODEL") if ctx.capability_enabled else get_model("GUIDANCE_MODEL")
        instructions = join_lines([
            *PLANNING_PROMPT,
            "" if ctx.capability_enabled else SUMMARIES_DISABLED_LINE,
            *context_lines(ctx),
            *TODO_TOOL_INSTRUCTIONS,
        ])
        return PhaseConfig(
            phase=Phase.PLANNING,
            agent_name=self.agent_name,
            model=model,
            instructions=instructions,
            settings=ModelSettings(
                tool_choice="none",
                reasoning=reasoning_settings_for(model, ctx),
                verbosity=thinking_verbosity(),
            ),
        )
