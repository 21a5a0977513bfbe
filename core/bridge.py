# core/bridge.py
"""
Core-Bridge: wires the orchestration core together for the surfaces.

    ChatSession ← PipelineOrchestrator → ExecutionProvider (OpenAI-compatible)
                        ↑                 → MemoryClient
    AmbientContext → LingerScheduler

Surfaces (terminal REPL, admin API) only talk to the bridge and subscribe to
the session.
"""

import asyncio
from typing import Optional

from config import AMBIENT_LLM_SUMMARY
from core.autonomous.linger import AmbientContext, LingerScheduler, LLMSummarizer
from core.errors import TurnBusyError
from core.lifecycle.post_turn import TurnPostProcessor
from core.lifecycle.task import get_todo_store
from core.memory import MemoryClient, build_memory_client
from core.models import Message, TurnSource
from core.orchestrator import PipelineOrchestrator
from core.provider import OpenAICompatProvider
from core.runs import ExecutionProvider
from core.session import ChatSession
from utils.logger import log_info


class CoreBridge:
    """Composition root: one session, one orchestrator, one linger loop."""

    def __init__(
        self,
        provider: Optional[ExecutionProvider] = None,
        memory: Optional[MemoryClient] = None,
        ambient: Optional[AmbientContext] = None,
        session: Optional[ChatSession] = None,
    ):
        self.session = session or ChatSession()
        self.ambient = ambient or AmbientContext(LLMSummarizer() if AMBIENT_LLM_SUMMARY else None)
        self.post_processor = TurnPostProcessor(self.session.event_log, get_todo_store())
        self.orchestrator = PipelineOrchestrator(
            provider or OpenAICompatProvider(),
            session=self.session,
            memory=memory or build_memory_client(),
            post_processor=self.post_processor,
            ambient_summary=lambda: self.ambient.summary,
        )
        self.linger = LingerScheduler(self.orchestrator)
        self.ambient.subscribe(self.linger.on_ambient_update)
        log_info("[Bridge] Ready")

    def send_user_message(self, text: str) -> asyncio.Task:
        """Append a chat message and start its turn. Raises TurnBusyError."""
        text = text.strip()
        if not text:
            raise ValueError("empty message")
        if self.orchestrator.is_busy:
            raise TurnBusyError(self.orchestrator.active_source)
        self.session.append(Message.user(text))
        return self.orchestrator.start_turn(self.session.messages, TurnSource.CHAT)

    async def hear(self, utterance: str) -> Optional[asyncio.Task]:
        """Feed an ambient utterance; returns the linger turn if one started."""
        results = await self.ambient.push(utterance)
        for result in results:
            if isinstance(result, asyncio.Task):
                return result
        return None


_bridge_instance: Optional[CoreBridge] = None


def get_bridge() -> CoreBridge:
    global _bridge_instance
    if _bridge_instance is None:
        _bridge_instance = CoreBridge()
    return _bridge_instance
