# core/autonomous/linger.py
"""
Linger mode: autonomous turns driven by ambient (audio) context.

AmbientContext keeps the rolling summary and the latest utterance. Every
update is offered to the LingerScheduler, which starts a linger turn only if

    config.enabled  AND  no turn is active  AND  now - last_fire >= min_interval

The config is re-read on every tick, so settings changes apply immediately.
Rejected ticks are dropped, never queued.
"""

import asyncio
import time
from typing import Awaitable, Callable, List, Optional, TYPE_CHECKING

import httpx

from config import AI_API_KEY, AI_BASE_URL, get_linger_config, get_model
from core.errors import TurnBusyError
from core.models import LingerConfig, Message, TurnSource
from utils.logger import log_debug, log_info, log_warning

if TYPE_CHECKING:
    from core.orchestrator import PipelineOrchestrator

Summarizer = Callable[[str, str], Awaitable[str]]
AmbientListener = Callable[[str, str], object]

MAX_SUMMARY_CHARS = 1200

SUMMARY_SYSTEM_PROMPT = (
    "You maintain a concise rolling summary (<= 200 words) of ambient audio context.\n"
    "Include only information relevant to assisting the user with on-going tasks.\n"
    "Avoid duplicating content; integrate updates succinctly."
)


def build_linger_directive(behavior: str, summary: str, utterance: str) -> str:
    return (
        f"Linger mode is enabled. Behavior directive from user: {behavior}\n\n"
        f"Recent audio summary: {summary or '(none)'}\n"
        f"Latest utterance: {utterance}\n\n"
        "Decide if any helpful action is warranted. If yes, act concisely (use tools when needed) "
        "and keep changes minimal and safe. If no action is valuable, reply briefly or remain silent."
    )


# ═══════════════════════════════════════════════════════════
# AMBIENT CONTEXT
# ═══════════════════════════════════════════════════════════

async def keep_recent_summary(previous: str, utterance: str) -> str:
    """Summarizer without a model: keeps the tail of what was heard."""
    combined = f"{previous} {utterance}".strip() if previous else utterance
    return combined[-MAX_SUMMARY_CHARS:]


class LLMSummarizer:
    """Rolling summary through the chat/completions endpoint."""

    def __init__(self, base_url: str = AI_BASE_URL, api_key: str = AI_API_KEY,
                 model: Optional[str] = None, timeout: float = 30.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.model = model or get_model("EXECUTION_MODEL")
        self.timeout = timeout
        self._transport = transport

    async def __call__(self, previous: str, utterance: str) -> str:
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
                {"role": "user", "content": (
                    f"Previous summary:\n{previous or '(none)'}\n\n"
                    f"New utterance:\n{utterance}\n\nUpdate the summary."
                )},
            ],
            "temperature": 0.2,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(f"{self.base_url}/chat/completions", json=payload, headers=headers)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            log_warning(f"[Ambient] Summary update failed, keeping previous: {e}")
            return previous
        choices = data.get("choices") or []
        content = ((choices[0].get("message") or {}).get("content") or "").strip() if choices else ""
        return content or previous


class AmbientContext:
    def __init__(self, summarizer: Optional[Summarizer] = None):
        self.summary = ""
        self.utterance = ""
        self._summarizer = summarizer or keep_recent_summary
        self._listeners: List[AmbientListener] = []

    def subscribe(self, listener: AmbientListener):
        self._listeners.append(listener)

    async def push(self, utterance: str) -> List[object]:
        """Record a new utterance; returns what the listeners returned."""
        text = utterance.strip()
        if not text:
            return []
        self.summary = await self._summarizer(self.summary, text)
        self.utterance = text
        return [listener(self.summary, self.utterance) for listener in list(self._listeners)]


# ═══════════════════════════════════════════════════════════
# SCHEDULER
# ═══════════════════════════════════════════════════════════

class LingerScheduler:
    def __init__(
        self,
        orchestrator: "PipelineOrchestrator",
        config_reader: Callable[[], LingerConfig] = get_linger_config,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.orchestrator = orchestrator
        self.config_reader = config_reader
        self.clock = clock
        self._last_fire: Optional[float] = None

    @property
    def last_fire(self) -> Optional[float]:
        return self._last_fire

    def on_ambient_update(self, summary: str, utterance: str) -> Optional[asyncio.Task]:
        config = self.config_reader()
        if not config.enabled:
            log_debug("[Linger] Tick dropped: linger disabled")
            return None
        if self.orchestrator.is_busy:
            log_debug(f"[Linger] Tick dropped: {self.orchestrator.active_source.value} turn active")
            return None

        now = self.clock()
        if self._last_fire is not None and now - self._last_fire < config.min_interval_sec:
            log_debug(f"[Linger] Tick dropped: {now - self._last_fire:.1f}s < {config.min_interval_sec}s")
            return None

        session = self.orchestrator.session
        directive = build_linger_directive(config.behavior, summary, utterance)
        try:
            # Claims the turn slot before anything else can run
            session.append(Message.user(directive))
            task = self.orchestrator.start_turn(session.messages, TurnSource.LINGER)
        except TurnBusyError as e:
            log_debug(f"[Linger] Tick dropped: {e}")
            return None

        self._last_fire = now
        log_info("[Linger] Autonomous turn started")
        return task
