# core/memory.py
"""
Long-term memory collaborator.

The orchestrator only needs two calls: recall() before a turn and a
fire-and-forget memorize() after a completed turn. The memory engine itself
lives behind an HTTP service; NullMemory is used when memory is disabled.
"""

from typing import List, Optional, Protocol, Sequence

import httpx

from config import MEMORY_ENABLED, MEMORY_TIMEOUT, MEMORY_URL, MEMORY_USER_ID
from core.models import Message
from utils.logger import log_debug, log_info


class MemoryClient(Protocol):
    enabled: bool

    async def recall(self, messages: Sequence[Message]) -> str:
        ...

    async def memorize(self, messages: Sequence[Message], user_id: str) -> None:
        ...


class NullMemory:
    enabled = False

    async def recall(self, messages: Sequence[Message]) -> str:
        return ""

    async def memorize(self, messages: Sequence[Message], user_id: str) -> None:
        return None


class HttpMemoryClient:
    """
    Talks to the memory service:
      POST {base}/recall    {"user_id", "messages"}  -> {"context": "..."}
      POST {base}/memorize  {"user_id", "messages"}  -> 2xx
    Errors propagate; the orchestrator turns them into event log lines.
    """

    enabled = True

    def __init__(
        self,
        base_url: str = MEMORY_URL,
        user_id: str = MEMORY_USER_ID,
        timeout: float = MEMORY_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    @staticmethod
    def _serialize(messages: Sequence[Message]) -> List[dict]:
        return [m.to_dict() for m in messages if m.content.strip()]

    async def recall(self, messages: Sequence[Message]) -> str:
        async with self._client() as client:
            response = await client.post(
                f"{self.base_url}/recall",
                json={"user_id": self.user_id, "messages": self._serialize(messages)},
            )
            response.raise_for_status()
            data = response.json()
        context = data.get("context", "") if isinstance(data, dict) else ""
        log_debug(f"[Memory] Recalled {len(context)} chars")
        return context.strip()

    async def memorize(self, messages: Sequence[Message], user_id: str) -> None:
        payload = {"user_id": user_id or self.user_id, "messages": self._serialize(messages)}
        async with self._client() as client:
            response = await client.post(f"{self.base_url}/memorize", json=payload)
            response.raise_for_status()
        log_debug(f"[Memory] Memorized {len(payload['messages'])} messages")


def build_memory_client() -> MemoryClient:
    if MEMORY_ENABLED:
        log_info(f"[Memory] Using memory service at {MEMORY_URL}")
        return HttpMemoryClient()
    return NullMemory()
