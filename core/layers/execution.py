# core/layers/execution.py
"""
LAYER 3: ExecutionLayer (execution model)

The only phase with tools and the only one streamed live to the user.
"""

from config import get_reasoning_settings, get_thinking_settings
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

EXECUTION_PROMPT = [
    "You are a helpful assistant. Use tools when helpful. Prefer concise answers.",
    "Before responding, review the most recent plan and implementation guidance produced earlier in this turn. "
    "Follow them unless there is a compelling reason to adjust (and explain any adjustments).",
    "Use the TODO tools to navigate multi-step tasks: create a plan, set priorities, track status "
    "(todo/in_progress/blocked/done), and add notes. Keep the list updated as you work.",
]


class ExecutionLayer:
    agent_name = "Assistant"

    def build_config(self, ctx: LayerContext) -> PhaseConfig:
        model = get_model("EXECUTION_MODEL")
        reasoning = reasoning_settings_for(model, ctx)
        thinking = get_thinking_settings()

        if reasoning:
            loop = get_reasoning_settings()
            reasoning_line = (
                f"Reasoning loop is mandatory (effort: {loop['effort']}, summary: {loop['summary']}). "
                "Run a structured reasoning pass before finalizing answers."
            )
        else:
            reasoning_line = (
                "Use deliberate internal reflection to check your work before finalizing; "
                "external reasoning summaries are not available."
            )
        if thinking["enabled"]:
            thinking_line = (
                f"Thinking loop is enabled (verbosity: {thinking['verbosity']}). When tasks are complex "
                "or ambiguous, take an additional thinking pass before responding."
            )
        else:
            thinking_line = "Thinking loop is disabled unless deeper reflection is explicitly requested."

        instructions = join_lines([
            *EXECUTION_PROMPT,
            reasoning_line,
            thinking_line,
            "" if ctx.capability_enabled
            else "Reasoning summaries are temporarily disabled; continue executing without them.",
            *context_lines(ctx),
            *TODO_TOOL_INSTRUCTIONS,
        ])
        return PhaseConfig(
            phase=Phase.EXECUTION,
            agent_name=self.agent_name,
            model=model,
            instructions=instructions,
            settings=ModelSettings(reasoning=reasoning, verbosity=thinking_verbosity()),
        )
