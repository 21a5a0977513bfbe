# core/layers/guidance.py
"""
LAYER 2: GuidanceLayer

Turns the plan into implementation guidance. Guidance model, no tools,
never reasoning settings.
"""

from core.layers.base import (
    TODO_TOOL_INSTRUCTIONS,
    LayerContext,
    ModelSettings,
    PhaseConfig,
    context_lines,
    get_model,
    join_lines,
    thinking_verbosity,
)
from core.models import Phase

GUIDANCE_PROMPT = [
    "You are the implementation guide. Review the latest plan in this conversation and provide actionable guidance for carrying it out.",
    "Highlight best practices, sequencing, potential pitfalls, validation steps, and recommended tool/TODO usage. Do not perform the work, respond with guidance only.",
]

# Trailing user message of the guidance run
GUIDANCE_REQUEST = (
    "Provide implementation guidance that elaborates on the plan above. "
    "Outline sequencing, key considerations, validations, and recommended "
    "tool/TODO usage. Do not perform the work."
)


class GuidanceLayer:
    agent_name = "Guide"

    def build_config(self, ctx: LayerContext) -> PhaseConfig:
        return PhaseConfig(
            phase=Phase.GUIDANCE,
            agent_name=self.agent_name,
            model=get_model("GUIDANCE_MODEL"),
            instructions=join_lines([
                *GUIDANCE_PROMPT,
                *context_lines(ctx, ambient_verb="incorporate", memory_verb="keep guidance consistent with"),
                *TODO_TOOL_INSTRUCTIONS,
            ]),
            settings=ModelSettings(tool_choice="none", verbosity=thinking_verbosity()),
        )
