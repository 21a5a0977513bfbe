# core/models.py
"""
Internal data models for the orchestration core.
Surfaces (terminal, admin API) and collaborators all speak these types.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from core.runs import ApprovalRequest, Continuation


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class TurnSource(str, Enum):
    """Who started a turn. Tags events and approvals."""
    CHAT = "chat"
    LINGER = "linger"


class Phase(str, Enum):
    PLANNING = "planning"
    GUIDANCE = "guidance"
    EXECUTION = "execution"


PHASE_ORDER = (Phase.PLANNING, Phase.GUIDANCE, Phase.EXECUTION)


@dataclass(frozen=True)
class Message:
    """A single chat message."""
    role: MessageRole
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "role": self.role.value,
            "content": self.content
        }

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(MessageRole.USER, content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(MessageRole.ASSISTANT, content)

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(MessageRole.SYSTEM, content)


@dataclass(frozen=True)
class PendingApproval:
    """
    A tool call waiting for a human decision.

    The continuation is shared by every PendingApproval raised by the same
    suspended run; it resumes once none of them are left in the queue.
    """
    id: str
    tool_name: str
    args_summary: Optional[str]
    source: TurnSource
    continuation: "Continuation" = field(repr=False, compare=False)
    request: "ApprovalRequest" = field(repr=False, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tool_name": self.tool_name,
            "args_summary": self.args_summary,
            "source": self.source.value,
        }


@dataclass(frozen=True)
class EventLogEntry:
    timestamp: datetime
    source: TurnSource
    text: str

    def format(self) -> str:
        return f"{self.timestamp.strftime('%H:%M:%S')} [{self.source.value}] {self.text}"


class TurnStatus(str, Enum):
    COMPLETED = "completed"
    SUSPENDED = "suspended"
    FAILED = "failed"


@dataclass
class TurnOutcome:
    """Terminal result of one turn (or of one resumed segment of it)."""
    status: TurnStatus
    source: TurnSource
    reply: Optional[str] = None
    error: Optional[str] = None
    pending: List[PendingApproval] = field(default_factory=list)
    retried: bool = False

    @property
    def ok(self) -> bool:
        return self.status != TurnStatus.FAILED


class LingerConfig(BaseModel):
    """Autonomous trigger settings, re-read on every ambient tick."""
    enabled: bool = False
    behavior: str = ""
    min_interval_sec: float = Field(default=20.0, ge=0)
