# core/runs.py
"""
Run / Continuation primitives shared by the orchestrator and provider adapters.

A Run is one streamed provider invocation for one phase. Providers build it
from an async generator that yields StreamEvents and finishes by yielding a
single RunOutcome (completed / suspended). Anything the generator raises
becomes a failed outcome, so consumers never see provider exceptions.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any, AsyncIterator, Callable, Dict, List, Optional, Protocol, Sequence, Set,
    Union, TYPE_CHECKING,
)

import httpx

from core.errors import ApprovalApplicationError, ContinuationConsumedError
from core.models import Message, Phase
from utils.logger import log_debug, log_error

if TYPE_CHECKING:
    from core.layers.base import PhaseConfig


# ═══════════════════════════════════════════════════════════
# STREAM EVENTS
# ═══════════════════════════════════════════════════════════

TEXT_DELTA = "output_text_delta"
TOOL_CALLED = "tool_called"
TOOL_OUTPUT = "tool_output"
TOOL_APPROVAL_REQUESTED = "tool_approval_requested"
AGENT_UPDATED = "agent_updated"
PHASE_STARTED = "phase_started"
REASONING_ITEM_CREATED = "reasoning_item_created"
MESSAGE_OUTPUT_CREATED = "message_output_created"


@dataclass(frozen=True)
class StreamEvent:
    kind: str
    agent: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def delta(cls, text: str, agent: Optional[str] = None) -> "StreamEvent":
        return cls(TEXT_DELTA, agent, {"delta": text})


# ═══════════════════════════════════════════════════════════
# APPROVALS
# ═══════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ApprovalRequest:
    """One tool call the provider refused to run without a human decision."""
    call_id: str
    tool_name: str
    arguments: Any = None


class ApprovalPolicy:
    """
    Session-scoped approval memory of a provider.

    requires_approval is the external per-tool policy. The always_* sets hold
    "remember this decision" choices for the rest of the process.
    """

    ALLOW = "allow"
    DENY = "deny"
    ASK = "ask"

    def __init__(self, requires_approval: Callable[[str], bool]):
        self._requires_approval = requires_approval
        self.always_approved: Set[str] = set()
        self.always_rejected: Set[str] = set()

    def check(self, tool_name: str) -> str:
        if tool_name in self.always_approved:
            return self.ALLOW
        if tool_name in self.always_rejected:
            return self.DENY
        return self.ASK if self._requires_approval(tool_name) else self.ALLOW

    def remember(self, tool_name: str, approved: bool):
        if approved:
            self.always_rejected.discard(tool_name)
            self.always_approved.add(tool_name)
        else:
            self.always_approved.discard(tool_name)
            self.always_rejected.add(tool_name)


class Continuation:
    """
    Opaque resumable snapshot of a suspended run.

    state is private to the provider that created it. context is owned by the
    orchestrator (turn bookkeeping needed to continue the pipeline). A
    continuation is resumed at most once and is never copied.
    """

    def __init__(
        self,
        *,
        phase: Phase,
        requests: Sequence[ApprovalRequest],
        state: Any = None,
        policy: Optional[ApprovalPolicy] = None,
    ):
        self.id = uuid.uuid4().hex[:12]
        self.phase = phase
        self.requests: List[ApprovalRequest] = list(requests)
        self.state = state
        self.policy = policy
        self.context: Any = None
        self._decisions: Dict[str, bool] = {}
        self._consumed = False

    def __copy__(self):
        raise TypeError("Continuation cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError("Continuation cannot be copied")

    def approve(self, request: ApprovalRequest, always: bool = False):
        self._apply(request, True, always)

    def reject(self, request: ApprovalRequest, always: bool = False):
        self._apply(request, False, always)

    def _apply(self, request: ApprovalRequest, approved: bool, always: bool):
        if self._consumed:
            raise ContinuationConsumedError(f"continuation {self.id} was already resumed")
        if request.call_id not in {r.call_id for r in self.requests}:
            raise ApprovalApplicationError(
                f"{request.tool_name} ({request.call_id}) is not pending on this run"
            )
        self._decisions[request.call_id] = approved
        if always and self.policy is not None:
            self.policy.remember(request.tool_name, approved)

    @property
    def decisions(self) -> Dict[str, bool]:
        return dict(self._decisions)

    @property
    def consumed(self) -> bool:
        return self._consumed

    def consume(self):
        if self._consumed:
            raise ContinuationConsumedError(f"continuation {self.id} was already resumed")
        self._consumed = True

    def __repr__(self) -> str:
        return f"Continuation(id={self.id}, phase={self.phase.value}, pending={len(self.requests)})"


# ═══════════════════════════════════════════════════════════
# RUN + OUTCOME
# ═══════════════════════════════════════════════════════════

class RunStatus(str, Enum):
    COMPLETED = "completed"
    SUSPENDED = "suspended"
    FAILED = "failed"


@dataclass
class RunOutcome:
    status: RunStatus
    text: str = ""
    continuation: Optional[Continuation] = None
    approvals: List[ApprovalRequest] = field(default_factory=list)
    error: Optional[BaseException] = None

    @classmethod
    def completed(cls, text: str) -> "RunOutcome":
        return cls(RunStatus.COMPLETED, text=text)

    @classmethod
    def suspended(cls, continuation: Continuation, text: str = "") -> "RunOutcome":
        return cls(
            RunStatus.SUSPENDED,
            text=text,
            continuation=continuation,
            approvals=list(continuation.requests),
        )

    @classmethod
    def failed(cls, error: BaseException, text: str = "") -> "RunOutcome":
        return cls(RunStatus.FAILED, text=text, error=error)

    @property
    def error_message(self) -> str:
        return describe_error(self.error) if self.error is not None else ""


class Run:
    """Lazy, finite, non-restartable stream of StreamEvents for one phase."""

    def __init__(
        self,
        events: AsyncIterator[Union[StreamEvent, RunOutcome]],
        phase: Phase,
        agent_name: Optional[str] = None,
    ):
        self._events = events
        self.phase = phase
        self.agent_name = agent_name
        self._started = False
        self._outcome: Optional[RunOutcome] = None
        self._text: List[str] = []

    def __aiter__(self):
        if self._started:
            raise RuntimeError("Run stream can only be consumed once")
        self._started = True
        return self._drain()

    async def _drain(self):
        try:
            async for item in self._events:
                if isinstance(item, RunOutcome):
                    self._outcome = item
                    break
                if item.kind == TEXT_DELTA:
                    self._text.append(item.data.get("delta", ""))
                yield item
        except Exception as e:
            log_error(f"[Run] {self.phase.value} run failed: {describe_error(e)}")
            self._outcome = RunOutcome.failed(e, "".join(self._text))
        finally:
            aclose = getattr(self._events, "aclose", None)
            if aclose is not None:
                await aclose()
            if self._outcome is None:
                self._outcome = RunOutcome.completed("".join(self._text))
            log_debug(f"[Run] {self.phase.value} finished: {self._outcome.status.value}")

    @property
    def done(self) -> bool:
        return self._outcome is not None

    @property
    def outcome(self) -> RunOutcome:
        if self._outcome is None:
            raise RuntimeError("Run has not finished streaming yet")
        return self._outcome


class ExecutionProvider(Protocol):
    def submit_run(self, phase_config: "PhaseConfig", history: Sequence[Message]) -> Run:
        ...

    def resume_run(self, continuation: Continuation, decisions: Dict[str, bool]) -> Run:
        ...


def describe_error(err: Any) -> str:
    """Best-effort human readable message, including provider error bodies."""
    if err is None:
        return "Unknown error"
    if isinstance(err, httpx.HTTPStatusError):
        try:
            body = err.response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            inner = body.get("error")
            if isinstance(inner, dict):
                nested = inner.get("error")
                inner = inner.get("message") or (
                    nested.get("message") if isinstance(nested, dict) else None
                )
            if isinstance(inner, str) and inner:
                return inner
        return f"HTTP {err.response.status_code}: {err.response.text[:300]}"
    msg = str(err)
    return msg or err.__class__.__name__
