"""
PipelineOrchestrator: runs one user turn through the 3-phase pipeline

Responsibilities:
- Planning -> Guidance -> (Socratic polyfill) -> Execution, strictly in order
- Suspend a turn when a tool call needs approval, resume it once every
  approval of the suspended run is decided
- Capability breaker: retry a refused turn once on the degraded path
- At most one active turn across chat and linger sources
- Memory recall/memorize and the post-turn bookkeeping

Visible history (ChatSession) only receives terminal replies and notices.
Plan, guidance and polyfill text live in the turn's working history.
"""

import asyncio
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, List, Optional, Sequence, Set, Tuple

from config import HISTORY_WINDOW, MEMORIZE_WINDOW, MEMORY_USER_ID
from core.approval_queue import ApprovalDecision
from core.capability import DISABLED_EVENT, CapabilityBreaker, get_capability_breaker
from core.errors import ContinuationConsumedError, ProviderError, TurnBusyError
from core.layers import GUIDANCE_REQUEST, ExecutionLayer, GuidanceLayer, LayerContext, PlanningLayer
from core.lifecycle.post_turn import TurnPostProcessor
from core.memory import MemoryClient, NullMemory
from core.models import (
    PHASE_ORDER,
    Message,
    MessageRole,
    Phase,
    TurnOutcome,
    TurnSource,
    TurnStatus,
)
from core.polyfill import build_socratic_reasoning_summary
from core.runs import (
    PHASE_STARTED,
    Continuation,
    ExecutionProvider,
    Run,
    RunStatus,
    StreamEvent,
    describe_error,
)
from core.session import ChatSession
from core.stream_consumer import StreamConsumer
from utils.logger import log_debug, log_error, log_info, log_warning

INTERNAL_REASONING_NOTICE = "(Internal reasoning: executing without shared summaries…)"
NO_RESPONSE = "(no response)"


# ═══════════════════════════════════════════════════════════
# TURN CONTEXT
# ═══════════════════════════════════════════════════════════

@dataclass
class TurnContext:
    """Bookkeeping of one turn; travels with a suspended continuation."""
    source: TurnSource
    history: Tuple[Message, ...]
    working: List[Message]
    user_prompt: str
    capability_at_start: bool
    degraded: bool = False
    retried: bool = False
    memory_context: str = ""
    plan_text: str = ""
    guidance_text: str = ""
    phase: Optional[Phase] = None

    @classmethod
    def start(cls, history: Sequence[Message], source: TurnSource, capability_enabled: bool) -> "TurnContext":
        history = tuple(history)
        prompt = ""
        for msg in reversed(history):
            if msg.role == MessageRole.USER:
                prompt = msg.content
                break
        return cls(
            source=source,
            history=history,
            working=list(history),
            user_prompt=prompt,
            capability_at_start=capability_enabled,
            degraded=not capability_enabled,
        )

    def replay_degraded(self) -> "TurnContext":
        return TurnContext(
            source=self.source,
            history=self.history,
            working=list(self.history),
            user_prompt=self.user_prompt,
            capability_at_start=self.capability_at_start,
            degraded=True,
            retried=True,
            memory_context=self.memory_context,
        )


class PipelineOrchestrator:
    def __init__(
        self,
        provider: ExecutionProvider,
        session: Optional[ChatSession] = None,
        breaker: Optional[CapabilityBreaker] = None,
        memory: Optional[MemoryClient] = None,
        post_processor: Optional[TurnPostProcessor] = None,
        ambient_summary: Optional[Callable[[], str]] = None,
        history_window: int = HISTORY_WINDOW,
        memorize_window: int = MEMORIZE_WINDOW,
        user_id: str = MEMORY_USER_ID,
    ):
        self.provider = provider
        self.session = session or ChatSession()
        self.event_log = self.session.event_log
        self.approvals = self.session.approvals
        self.stream_consumer = StreamConsumer(self.event_log)
        self.breaker = breaker or get_capability_breaker()
        self.breaker.on_trip = self._on_capability_trip
        self.breaker.on_notice = self._on_capability_notice
        self.memory = memory or NullMemory()
        self.post_processor = post_processor or TurnPostProcessor(self.event_log)
        self.ambient_summary = ambient_summary
        self.history_window = history_window
        self.memorize_window = memorize_window
        self.user_id = user_id

        self.planning = PlanningLayer()
        self.guidance = GuidanceLayer()
        self.execution = ExecutionLayer()

        self._active: Optional[TurnSource] = None
        self._deferred: Deque[Continuation] = deque()
        self._tasks: Set[asyncio.Task] = set()

        log_info("[Orchestrator] Initialized")

    # ═══════════════════════════════════════════════════════════
    # TURN SLOT
    # ═══════════════════════════════════════════════════════════

    @property
    def is_busy(self) -> bool:
        return self._active is not None

    @property
    def active_source(self) -> Optional[TurnSource]:
        return self._active

    def _claim(self, source: TurnSource):
        if self._active is not None:
            raise TurnBusyError(self._active)
        self._active = source
        self.session.set_streaming(source)

    def _release(self):
        self._active = None
        self.session.set_live_text(None)
        self.session.set_streaming(None)
        if self._deferred:
            continuation = self._deferred.popleft()
            log_info(f"[Orchestrator] Starting deferred resume {continuation.id}")
            self._start_resume(continuation)

    def _track(self, task: asyncio.Task) -> asyncio.Task:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self):
        """Wait for background turns, resumes and memorize calls."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ═══════════════════════════════════════════════════════════
    # PUBLIC API
    # ═══════════════════════════════════════════════════════════

    async def run_turn(self, history: Sequence[Message], source: TurnSource = TurnSource.CHAT) -> TurnOutcome:
        """Run a whole turn. Raises TurnBusyError if another turn is active."""
        self._claim(source)
        return await self._claimed_turn(history, source)

    def start_turn(self, history: Sequence[Message], source: TurnSource = TurnSource.CHAT) -> asyncio.Task:
        """Claim the turn slot now and run the turn as a background task."""
        self._claim(source)
        return self._track(asyncio.create_task(self._claimed_turn(history, source)))

    async def decide(self, index: Optional[int] = None, approve: bool = True, always: bool = False) -> ApprovalDecision:
        """Decide the approval at index (default: cursor) and await the resume if it starts."""
        decision, task = self._apply_decision(self.approvals.decide(index, approve, always))
        if task is not None:
            await task
        return decision

    async def decide_by_id(self, approval_id: str, approve: bool = True, always: bool = False) -> ApprovalDecision:
        decision, task = self._apply_decision(self.approvals.decide_by_id(approval_id, approve, always))
        if task is not None:
            await task
        return decision

    def submit_decision(self, approval_id: str, approve: bool = True, always: bool = False) -> ApprovalDecision:
        """Like decide_by_id, but a due resume runs in the background."""
        decision, _ = self._apply_decision(self.approvals.decide_by_id(approval_id, approve, always))
        return decision

    def select(self, index: int) -> int:
        return self.approvals.select(index)

    # ═══════════════════════════════════════════════════════════
    # APPROVALS / RESUME
    # ═══════════════════════════════════════════════════════════

    def _apply_decision(self, decision: ApprovalDecision) -> Tuple[ApprovalDecision, Optional[asyncio.Task]]:
        if not decision.applied:
            return decision, None

        verb = "Approved" if decision.approved else "Rejected"
        suffix = " (always)" if decision.always else ""
        self.session.append(Message.user(f"[approval] {verb} {decision.entry.tool_name}{suffix}"))

        if decision.resume is None:
            return decision, None
        if self.is_busy:
            # Resumed after the active turn's post-processor
            self._deferred.append(decision.resume)
            self.event_log.append(decision.entry.source, f"resume_deferred ({self._active.value} turn active)")
            return decision, None
        return decision, self._start_resume(decision.resume)

    def _start_resume(self, continuation: Continuation) -> asyncio.Task:
        ctx: TurnContext = continuation.context
        self._claim(ctx.source)
        return self._track(asyncio.create_task(self._claimed_resume(continuation)))

    async def _claimed_resume(self, continuation: Continuation) -> TurnOutcome:
        ctx: TurnContext = continuation.context
        try:
            try:
                run = self.provider.resume_run(continuation, continuation.decisions)
            except (ContinuationConsumedError, ProviderError) as e:
                outcome = self._fail(ctx, describe_error(e))
            else:
                log_info(f"[Orchestrator] Resuming {ctx.source.value} turn in {ctx.phase.value}")
                outcome = await self._guarded_pipeline(ctx, ctx.phase, run)
            self.post_processor.run(ctx.source, outcome)
            return outcome
        finally:
            self._release()

    # ═══════════════════════════════════════════════════════════
    # PIPELINE
    # ═══════════════════════════════════════════════════════════

    async def _claimed_turn(self, history: Sequence[Message], source: TurnSource) -> TurnOutcome:
        try:
            ctx = TurnContext.start(history, source, self.breaker.is_enabled())
            log_info(f"[Orchestrator] Turn started ({source.value}, degraded={ctx.degraded})")
            ctx.memory_context = await self._recall(ctx)
            outcome = await self._guarded_pipeline(ctx, None, None)
            self.post_processor.run(source, outcome)
            return outcome
        finally:
            self._release()

    async def _guarded_pipeline(self, ctx: TurnContext, resume_phase: Optional[Phase], resumed: Optional[Run]) -> TurnOutcome:
        try:
            return await self._pipeline(ctx, resume_phase, resumed)
        except Exception as e:
            log_error(f"[Orchestrator] Pipeline crashed: {type(e).__name__}: {e}")
            return self._fail(ctx, describe_error(e))

    async def _pipeline(self, ctx: TurnContext, resume_phase: Optional[Phase], resumed: Optional[Run]) -> TurnOutcome:
        if resume_phase is None and ctx.degraded:
            ctx.working.append(Message.assistant(INTERNAL_REASONING_NOTICE))
            self.event_log.append(ctx.source, "reasoning_plan_skipped (summaries unavailable)")

        phases = (Phase.EXECUTION,) if ctx.degraded else PHASE_ORDER
        if resume_phase is not None:
            phases = phases[phases.index(resume_phase):]

        for phase in phases:
            if resumed is not None:
                run, resumed = resumed, None
            else:
                self.stream_consumer.log_event(ctx.source, StreamEvent(PHASE_STARTED, data={"phase": phase.value}))
                run = self.provider.submit_run(self._phase_config(phase), self._run_input(phase, ctx))

            on_update = self.session.set_live_text if phase == Phase.EXECUTION else None
            text = await self.stream_consumer.consume(run, ctx.source, on_update)
            result = run.outcome

            if result.status == RunStatus.SUSPENDED:
                ctx.phase = phase
                result.continuation.context = ctx
                pending = self.approvals.enqueue(ctx.source, result.continuation, result.approvals)
                log_info(f"[Orchestrator] Turn suspended in {phase.value} ({len(pending)} approval(s))")
                return TurnOutcome(TurnStatus.SUSPENDED, ctx.source, pending=pending, retried=ctx.retried)

            if result.status == RunStatus.FAILED:
                if not ctx.retried and self.breaker.guard(result.error, ctx.source):
                    log_warning(f"[Orchestrator] {phase.value} refused reasoning summaries, replaying degraded")
                    return await self._pipeline(ctx.replay_degraded(), None, None)
                return self._fail(ctx, result.error_message)

            final_text = result.text or text
            # Some gateways return the refusal as completion text instead of an error
            if not ctx.retried and self.breaker.guard(final_text, ctx.source):
                log_warning(f"[Orchestrator] {phase.value} answered with the reasoning refusal, replaying degraded")
                return await self._pipeline(ctx.replay_degraded(), None, None)

            if phase == Phase.PLANNING:
                self._record_plan(ctx, final_text)
            elif phase == Phase.GUIDANCE:
                self._record_guidance(ctx, final_text)
            else:
                return self._complete(ctx, final_text)

        # Unreachable: Execution always returns above
        return self._fail(ctx, "pipeline ended without execution")

    def _record_plan(self, ctx: TurnContext, text: str):
        ctx.plan_text = text.strip()
        if ctx.plan_text:
            ctx.working.append(Message.assistant(f"Plan:\n{ctx.plan_text}"))

    def _record_guidance(self, ctx: TurnContext, text: str):
        ctx.guidance_text = text.strip()
        if ctx.guidance_text:
            ctx.working.append(Message.assistant(f"Implementation Guidance:\n{ctx.guidance_text}"))

        # Tripped by another run while this turn was in flight
        if ctx.capability_at_start and not self.breaker.is_enabled():
            polyfill = build_socratic_reasoning_summary(ctx.user_prompt, ctx.plan_text, ctx.guidance_text)
            if polyfill:
                ctx.working.append(Message.assistant(f"Reasoning (Socratic polyfill):\n{polyfill}"))
                self.event_log.append(ctx.source, "reasoning_polyfill_created (socratic)")

    def _complete(self, ctx: TurnContext, text: str) -> TurnOutcome:
        reply = text.strip() or NO_RESPONSE
        self.session.set_live_text(None)
        self.session.append(Message.assistant(reply))
        self._schedule_memorize(ctx, reply)
        log_info(f"[Orchestrator] Turn completed ({ctx.source.value}, {len(reply)} chars)")
        return TurnOutcome(TurnStatus.COMPLETED, ctx.source, reply=reply, retried=ctx.retried)

    def _fail(self, ctx: TurnContext, message: str) -> TurnOutcome:
        message = message or "Unknown error"
        prefix = "Linger error" if ctx.source == TurnSource.LINGER else "Error"
        self.session.set_live_text(None)
        self.session.append(Message.assistant(f"{prefix}: {message}"))
        self.event_log.append(ctx.source, f"error {message}")
        log_error(f"[Orchestrator] Turn failed ({ctx.source.value}): {message}")
        return TurnOutcome(TurnStatus.FAILED, ctx.source, error=message, retried=ctx.retried)

    # ═══════════════════════════════════════════════════════════
    # RUN INPUT
    # ═══════════════════════════════════════════════════════════

    def _layer_context(self) -> LayerContext:
        summary = self.ambient_summary() if self.ambient_summary else ""
        return LayerContext(
            capability_enabled=self.breaker.is_enabled(),
            memory_enabled=self.memory.enabled,
            ambient_enabled=self.ambient_summary is not None,
            ambient_summary=summary or "",
        )

    def _phase_config(self, phase: Phase):
        layer_ctx = self._layer_context()
        if phase == Phase.PLANNING:
            return self.planning.build_config(layer_ctx)
        if phase == Phase.GUIDANCE:
            return self.guidance.build_config(layer_ctx)
        return self.execution.build_config(layer_ctx)

    def _run_input(self, phase: Phase, ctx: TurnContext) -> List[Message]:
        prompt = GUIDANCE_REQUEST if phase == Phase.GUIDANCE else ctx.user_prompt
        items: List[Message] = []
        if ctx.memory_context:
            items.append(Message.system(
                f"Relevant memory:\n{ctx.memory_context}\nUse this alongside the latest conversation turns."
            ))
        usable = [m for m in ctx.working if m.content.strip()]
        items.extend(usable[-self.history_window:] if self.history_window > 0 else [])
        if prompt.strip():
            last = items[-1] if items else None
            if last is None or last.role != MessageRole.USER or last.content != prompt:
                items.append(Message.user(prompt))
        return items

    # ═══════════════════════════════════════════════════════════
    # MEMORY
    # ═══════════════════════════════════════════════════════════

    async def _recall(self, ctx: TurnContext) -> str:
        if not self.memory.enabled:
            return ""
        usable = [m for m in ctx.history if m.content.strip()]
        if not usable:
            return ""
        try:
            recall = await self.memory.recall(usable)
        except Exception as e:
            self.event_log.append(ctx.source, f"memory_recall_error {describe_error(e)}")
            return ""
        if not recall or not recall.strip():
            return ""
        self.event_log.append(ctx.source, f"memory_recall {max(1, round(len(recall) / 4))} tokens")
        return recall.strip()

    def _schedule_memorize(self, ctx: TurnContext, reply: str):
        if not self.memory.enabled:
            return
        usable = [
            m for m in (*ctx.history, Message.assistant(reply))
            if m.role != MessageRole.SYSTEM and m.content.strip()
        ][-self.memorize_window:]
        if usable:
            self._track(asyncio.create_task(self._memorize(usable, ctx.source)))

    async def _memorize(self, messages: List[Message], source: TurnSource):
        try:
            await self.memory.memorize(messages, self.user_id)
        except Exception as e:
            self.event_log.append(source, f"memory_mem_error {describe_error(e)}")
            return
        self.event_log.append(source, f"memory_memorized {len(messages)} msgs")

    # ═══════════════════════════════════════════════════════════
    # CAPABILITY BREAKER CALLBACKS
    # ═══════════════════════════════════════════════════════════

    def _on_capability_trip(self, source: TurnSource):
        self.event_log.append(source, DISABLED_EVENT)

    def _on_capability_notice(self, notice: str):
        self.session.append(Message.assistant(notice))
        log_debug("[Orchestrator] Capability notice posted")
