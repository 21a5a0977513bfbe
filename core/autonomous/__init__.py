# Autonomous Subsystem
from .linger import AmbientContext, LingerScheduler, LLMSummarizer, build_linger_directive

__all__ = ["AmbientContext", "LingerScheduler", "LLMSummarizer", "build_linger_directive"]
