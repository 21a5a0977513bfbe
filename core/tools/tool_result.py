"""
ToolResult - outcome of one native tool call, rendered back to the model as a tool message
"""
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class ToolResult:
    """
    Result of one tool execution, as fed back to the model.

    Attributes:
        content: The actual result content (string, dict, list, ...)
        tool_name: Name of the tool that was executed
        latency_ms: Execution time in milliseconds
        success: Whether execution succeeded
        error: Error message if failed
        rejected: True when a human rejected the call
    """
    content: Any
    tool_name: str
    latency_ms: float = 0.0
    success: bool = True
    error: Optional[str] = None
    rejected: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "tool_name": self.tool_name,
            "latency_ms": self.latency_ms,
            "success": self.success,
            "error": self.error,
            "rejected": self.rejected,
            "metadata": self.metadata,
        }

    def to_model_content(self) -> str:
        """String handed back to the model as the tool message."""
        if self.rejected:
            return f"REJECTED: the user did not approve running {self.tool_name}."
        if not self.success:
            return f"ERROR: {self.error}"
        if isinstance(self.content, (dict, list)):
            return json.dumps(self.content, ensure_ascii=False, default=str)
        return str(self.content)

    def to_message(self, call_id: str) -> Dict[str, Any]:
        """OpenAI chat message answering the tool call call_id."""
        return {"role": "tool", "tool_call_id": call_id, "content": self.to_model_content()}

    @classmethod
    def from_error(cls, error: str, tool_name: str, latency_ms: float = 0.0) -> "ToolResult":
        return cls(content=None, tool_name=tool_name, latency_ms=latency_ms, success=False, error=error)

    @classmethod
    def from_rejection(cls, tool_name: str) -> "ToolResult":
        return cls(content=None, tool_name=tool_name, success=False, rejected=True,
                   error="rejected by user")
