"""
Tool Executor - native tool execution for the execution provider
"""
import time
from typing import Any, Dict, Iterable, List, Optional

from config import TOOLS_REQUIRING_APPROVAL
from core.tools.definitions import NATIVE_TOOLS, tool_schema
from core.tools.tool_result import ToolResult
from utils.logger import log_error, log_info


class ToolExecutor:
    """
    Runs native tools by name.

    Features:
    - Pydantic validation of model-supplied arguments
    - Per-tool approval flag (class NEEDS_APPROVAL or TOOLS_REQUIRING_APPROVAL)
    - OpenAI function schemas for the provider payload
    - Always returns a ToolResult, never raises
    """

    def __init__(self, tools: Optional[Dict[str, type]] = None,
                 approval_required: Iterable[str] = TOOLS_REQUIRING_APPROVAL):
        self.tools = dict(NATIVE_TOOLS if tools is None else tools)
        self.approval_required = frozenset(approval_required)
        log_info("[ToolExecutor] Initialized with tools: " + ", ".join(self.tools.keys()))

    def names(self) -> List[str]:
        return list(self.tools.keys())

    def requires_approval(self, tool_name: str) -> bool:
        if tool_name in self.approval_required:
            return True
        tool_cls = self.tools.get(tool_name)
        return bool(getattr(tool_cls, "NEEDS_APPROVAL", False))

    def schemas(self) -> List[Dict[str, Any]]:
        return [tool_schema(name, cls) for name, cls in self.tools.items()]

    def execute(self, tool_name: str, args: Optional[Dict[str, Any]]) -> ToolResult:
        start_time = time.time()

        if tool_name not in self.tools:
            error_msg = f"Tool not found: {tool_name}. Available: {self.names()}"
            log_error(f"[ToolExecutor] {error_msg}")
            return ToolResult.from_error(error=error_msg, tool_name=tool_name)

        try:
            tool_instance = self.tools[tool_name](**(args or {}))
            content = tool_instance.execute()
        except Exception as e:
            latency_ms = (time.time() - start_time) * 1000
            error_msg = f"{tool_name} failed: {e}"
            log_error(f"[ToolExecutor] {error_msg} (after {latency_ms:.1f}ms)")
            return ToolResult.from_error(error=error_msg, tool_name=tool_name, latency_ms=latency_ms)

        latency_ms = (time.time() - start_time) * 1000
        log_info(f"[ToolExecutor] {tool_name} completed in {latency_ms:.1f}ms")
        return ToolResult(content=content, tool_name=tool_name, latency_ms=latency_ms,
                          metadata={"args": args or {}})


_executor: Optional[ToolExecutor] = None


def get_tool_executor() -> ToolExecutor:
    """Get singleton ToolExecutor instance"""
    global _executor
    if _executor is None:
        _executor = ToolExecutor()
    return _executor
