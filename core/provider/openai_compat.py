# core/provider/openai_compat.py
"""
OpenAICompatProvider - ExecutionProvider over an OpenAI-compatible
/chat/completions endpoint (OpenAI, Ollama /v1, gateways).

One Run is one tool loop:
  stream a completion → run the tool calls → feed results back → repeat
until the model answers without tool calls. A tool call that needs a human
decision ends the Run as suspended; resume_run() continues the same loop
with the decisions applied.
"""

import json
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Union

import httpx

from config import AI_API_KEY, AI_BASE_URL, MAX_TOOL_ROUNDS, PROVIDER_TIMEOUT
from core.errors import ProviderError
from core.layers.base import PhaseConfig
from core.models import Message
from core.runs import (
    AGENT_UPDATED,
    MESSAGE_OUTPUT_CREATED,
    REASONING_ITEM_CREATED,
    TOOL_APPROVAL_REQUESTED,
    TOOL_CALLED,
    TOOL_OUTPUT,
    ApprovalPolicy,
    ApprovalRequest,
    Continuation,
    Run,
    RunOutcome,
    StreamEvent,
)
from core.tools.executor import ToolExecutor, get_tool_executor
from core.tools.tool_result import ToolResult
from utils.logger import log_debug, log_info, log_warning


@dataclass
class ToolCall:
    call_id: str
    name: str
    raw_arguments: str = ""

    @property
    def arguments(self) -> Dict[str, Any]:
        if not self.raw_arguments:
            return {}
        try:
            parsed = json.loads(self.raw_arguments)
        except json.JSONDecodeError:
            return {}
        return parsed if isinstance(parsed, dict) else {}

    def to_openai(self) -> Dict[str, Any]:
        return {
            "id": self.call_id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.raw_arguments or "{}"},
        }


@dataclass
class _RoundResult:
    text: str = ""
    reasoning_seen: bool = False
    partial_calls: Dict[int, ToolCall] = field(default_factory=dict)

    def add_tool_delta(self, delta: Dict[str, Any]):
        index = delta.get("index", len(self.partial_calls))
        call = self.partial_calls.get(index)
        if call is None:
            call = ToolCall(call_id=delta.get("id") or f"call_{index}", name="")
            self.partial_calls[index] = call
        if delta.get("id"):
            call.call_id = delta["id"]
        fn = delta.get("function") or {}
        if fn.get("name"):
            call.name += fn["name"]
        if fn.get("arguments"):
            call.raw_arguments += fn["arguments"]

    @property
    def tool_calls(self) -> List[ToolCall]:
        return [self.partial_calls[i] for i in sorted(self.partial_calls)]


@dataclass
class LoopState:
    """Provider-private state carried by a Continuation."""
    config: PhaseConfig
    messages: List[Dict[str, Any]]
    rounds: int = 0
    text: str = ""
    waiting: List[ToolCall] = field(default_factory=list)


Emitted = Union[StreamEvent, RunOutcome]


class OpenAICompatProvider:
    def __init__(
        self,
        base_url: str = AI_BASE_URL,
        api_key: str = AI_API_KEY,
        tools: Optional[ToolExecutor] = None,
        timeout: float = PROVIDER_TIMEOUT,
        max_rounds: int = MAX_TOOL_ROUNDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.tools = tools or get_tool_executor()
        self.timeout = timeout
        self.max_rounds = max_rounds
        self._transport = transport
        # Session scoped: "always" decisions live as long as the provider
        self.policy = ApprovalPolicy(self.tools.requires_approval)

    # ═══════════════════════════════════════════════════════
    # EXECUTION PROVIDER
    # ═══════════════════════════════════════════════════════

    def submit_run(self, phase_config: PhaseConfig, history: Sequence[Message]) -> Run:
        state = LoopState(config=phase_config, messages=[m.to_dict() for m in history])
        return Run(self._loop(state, None), phase_config.phase, phase_config.agent_name)

    def resume_run(self, continuation: Continuation, decisions: Dict[str, bool]) -> Run:
        continuation.consume()
        state = continuation.state
        if not isinstance(state, LoopState):
            raise ProviderError(f"continuation {continuation.id} was not created by this provider")
        return Run(self._loop(state, dict(decisions)), state.config.phase, state.config.agent_name)

    # ═══════════════════════════════════════════════════════
    # TOOL LOOP
    # ═══════════════════════════════════════════════════════

    async def _loop(self, state: LoopState, decisions: Optional[Dict[str, bool]]) -> AsyncIterator[Emitted]:
        agent = state.config.agent_name
        if decisions is None:
            yield StreamEvent(AGENT_UPDATED, agent)
        else:
            log_info(f"[Provider] Resuming {agent} with {len(decisions)} decision(s)")
            for call in state.waiting:
                if decisions.get(call.call_id, False):
                    result = self.tools.execute(call.name, call.arguments)
                else:
                    result = ToolResult.from_rejection(call.name)
                yield self._record_output(state, call, result)
            state.waiting = []

        while True:
            if state.rounds >= self.max_rounds:
                raise ProviderError(f"{agent} exceeded {self.max_rounds} tool rounds")
            state.rounds += 1
            log_debug(f"[Provider] {agent} round {state.rounds}/{self.max_rounds}")

            result = _RoundResult()
            async for event in self._stream_completion(state, result):
                yield event
            state.text += result.text

            calls = result.tool_calls
            if not calls:
                yield StreamEvent(MESSAGE_OUTPUT_CREATED, agent)
                yield RunOutcome.completed(state.text)
                return

            state.messages.append({
                "role": "assistant",
                "content": result.text or None,
                "tool_calls": [c.to_openai() for c in calls],
            })

            waiting: List[ToolCall] = []
            for call in calls:
                yield StreamEvent(TOOL_CALLED, agent, {
                    "tool": call.name, "arguments": call.arguments, "call_id": call.call_id,
                })
                verdict = self.policy.check(call.name)
                if verdict == ApprovalPolicy.ASK:
                    waiting.append(call)
                    continue
                if verdict == ApprovalPolicy.ALLOW:
                    outcome = self.tools.execute(call.name, call.arguments)
                else:
                    outcome = ToolResult.from_rejection(call.name)
                yield self._record_output(state, call, outcome)

            if waiting:
                state.waiting = waiting
                requests = [ApprovalRequest(c.call_id, c.name, c.arguments) for c in waiting]
                for request in requests:
                    yield StreamEvent(TOOL_APPROVAL_REQUESTED, agent, {
                        "tool": request.tool_name, "arguments": request.arguments, "call_id": request.call_id,
                    })
                continuation = Continuation(
                    phase=state.config.phase, requests=requests, state=state, policy=self.policy,
                )
                log_info(f"[Provider] {agent} suspended on {', '.join(r.tool_name for r in requests)}")
                yield RunOutcome.suspended(continuation, state.text)
                return

    def _record_output(self, state: LoopState, call: ToolCall, result: ToolResult) -> StreamEvent:
        message = result.to_message(call.call_id)
        state.messages.append(message)
        return StreamEvent(TOOL_OUTPUT, state.config.agent_name, {
            "tool": call.name, "output": message["content"], "call_id": call.call_id, "success": result.success,
        })

    # ═══════════════════════════════════════════════════════
    # HTTP
    # ═══════════════════════════════════════════════════════

    def _payload(self, state: LoopState) -> Dict[str, Any]:
        config = state.config
        payload: Dict[str, Any] = {
            "model": config.model,
            "messages": [{"role": "system", "content": config.instructions}, *state.messages],
            "stream": True,
        }
        settings = config.settings.to_payload()
        schemas = self.tools.schemas()
        if schemas:
            payload["tools"] = schemas
        else:
            settings.pop("tool_choice", None)
        payload.update(settings)
        return payload

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "text/event-stream"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _stream_completion(self, state: LoopState, result: _RoundResult) -> AsyncIterator[StreamEvent]:
        agent = state.config.agent_name
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            async with client.stream(
                "POST",
                f"{self.base_url}/chat/completions",
                json=self._payload(state),
                headers=self._headers(),
            ) as response:
                if response.status_code >= 400:
                    # Body is needed for the error message (capability refusals)
                    await response.aread()
                    response.raise_for_status()

                async for line in response.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    data = line[len("data:"):].strip()
                    if data == "[DONE]":
                        break
                    try:
                        chunk = json.loads(data)
                    except json.JSONDecodeError:
                        log_warning(f"[Provider] Skipping malformed chunk: {data[:80]}")
                        continue

                    error = chunk.get("error")
                    if error:
                        message = error.get("message") if isinstance(error, dict) else str(error)
                        raise ProviderError(message or "provider stream error")

                    for choice in chunk.get("choices") or []:
                        delta = choice.get("delta") or {}
                        if not result.reasoning_seen and (delta.get("reasoning") or delta.get("reasoning_content")):
                            result.reasoning_seen = True
                            yield StreamEvent(REASONING_ITEM_CREATED, agent)
                        content = delta.get("content")
                        if content:
                            result.text += content
                            yield StreamEvent.delta(content, agent)
                        for tool_delta in delta.get("tool_calls") or []:
                            result.add_tool_delta(tool_delta)
