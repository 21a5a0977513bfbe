# core/__init__.py
from .models import (
    Message,
    MessageRole,
    Phase,
    TurnOutcome,
    TurnSource,
    TurnStatus,
)
from .errors import TurnBusyError

__all__ = [
    "Message",
    "MessageRole",
    "Phase",
    "TurnOutcome",
    "TurnSource",
    "TurnStatus",
    "TurnBusyError",
]
