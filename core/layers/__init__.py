from core.layers.base import LayerContext, ModelSettings, PhaseConfig
from core.layers.execution import ExecutionLayer
from core.layers.guidance import GUIDANCE_REQUEST, GuidanceLayer
from core.layers.planning import PlanningLayer
