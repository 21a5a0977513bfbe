# tests/conftest.py
"""
Pytest Fixtures - reusable fakes for the orchestration core.
"""

import asyncio
import sys
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

import pytest

# Add parent dir to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.capability import CapabilityBreaker
from core.lifecycle.post_turn import TurnPostProcessor
from core.lifecycle.task import TodoStore
from core.models import Message, Phase
from core.orchestrator import PipelineOrchestrator
from core.runs import ApprovalPolicy, ApprovalRequest, Continuation, Run, RunOutcome, StreamEvent
from core.session import ChatSession
from utils.settings import settings

REFUSAL = "Your organization must be verified to generate reasoning summaries. Please go to settings."


# ═══════════════════════════════════════════════════════════
# SCRIPTED PROVIDER
# ═══════════════════════════════════════════════════════════

@dataclass
class Suspend:
    """Script step: end the run suspended on these tool calls."""
    requests: List[ApprovalRequest]


@dataclass
class Gate:
    """Script step: hold the run open until the event is set."""
    event: asyncio.Event = field(default_factory=asyncio.Event)


class ScriptedProvider:
    """
    ExecutionProvider fake. Each submit/resume plays the next script for
    its phase. Steps: str (text delta), StreamEvent, Exception (raised),
    Suspend, Gate. Unscripted phases answer "<phase> ok".
    """

    def __init__(self):
        self.scripts: Dict[Phase, deque] = {phase: deque() for phase in Phase}
        self.resume_scripts: deque = deque()
        self.submitted: List[tuple] = []
        self.resumed: List[tuple] = []
        self.policy = ApprovalPolicy(lambda name: True)

    def script(self, phase: Phase, *steps):
        self.scripts[phase].append(list(steps))

    def script_resume(self, *steps):
        self.resume_scripts.append(list(steps))

    def phases_submitted(self) -> List[Phase]:
        return [config.phase for config, _ in self.submitted]

    def submit_run(self, phase_config, history):
        self.submitted.append((phase_config, list(history)))
        queue = self.scripts[phase_config.phase]
        steps = queue.popleft() if queue else [f"{phase_config.phase.value} ok"]
        return Run(self._play(phase_config.phase, phase_config.agent_name, steps),
                   phase_config.phase, phase_config.agent_name)

    def resume_run(self, continuation, decisions):
        continuation.consume()
        self.resumed.append((continuation, dict(decisions)))
        steps = self.resume_scripts.popleft() if self.resume_scripts else ["resumed ok"]
        return Run(self._play(continuation.phase, "Assistant", steps), continuation.phase)

    async def _play(self, phase, agent, steps):
        for step in steps:
            if isinstance(step, Gate):
                await step.event.wait()
            elif isinstance(step, BaseException):
                raise step
            elif isinstance(step, Suspend):
                continuation = Continuation(phase=phase, requests=step.requests, policy=self.policy)
                yield RunOutcome.suspended(continuation)
                return
            elif isinstance(step, StreamEvent):
                yield step
            else:
                yield StreamEvent.delta(step, agent)


# ═══════════════════════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Runtime overrides go to a throwaway file, never the user's config."""
    monkeypatch.setattr(settings, "settings", {})
    monkeypatch.setattr(settings, "_settings_path", tmp_path / "settings.json")
    yield


@pytest.fixture
def todo_store(tmp_path):
    return TodoStore(str(tmp_path / "todos.json"))


@pytest.fixture
def provider():
    return ScriptedProvider()


@pytest.fixture
def make_orchestrator(todo_store):
    def _make(provider, **kwargs):
        session = kwargs.pop("session", None) or ChatSession()
        return PipelineOrchestrator(
            provider,
            session=session,
            breaker=kwargs.pop("breaker", None) or CapabilityBreaker(),
            post_processor=TurnPostProcessor(session.event_log, todo_store),
            **kwargs,
        )
    return _make


@pytest.fixture
def sample_messages():
    """Sample Chat Messages."""
    return [
        Message.user("Hi, I'm Danny"),
        Message.assistant("Hello Danny!"),
        Message.user("Tidy up my todo list"),
    ]
