"""
utils/formatting.py — compact one-line renderings of tool arguments/outputs
for the event log and the approval list.
"""
import json
import re
from typing import Any, Optional

MAX_SUMMARY_CHARS = 80


def truncate_text(s: str, max_chars: int = MAX_SUMMARY_CHARS) -> str:
    if not s:
        return ""
    normalized = re.sub(r"\s+", " ", s).strip()
    if len(normalized) <= max_chars:
        return normalized
    return normalized[: max_chars - 1] + "…"


def _dump(value: Any) -> str:
    try:
        return json.dumps(value, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(value)


def format_event_args(arguments: Any) -> Optional[str]:
    """Tool call arguments (JSON string or object) → truncated single line."""
    if arguments is None or arguments == "" or arguments == {}:
        return None
    value = arguments if isinstance(arguments, str) else _dump(arguments)
    return truncate_text(value) or None


def format_event_output(output: Any) -> Optional[str]:
    if output is None or output == "":
        return None
    if isinstance(output, str):
        return truncate_text(output)
    if isinstance(output, dict):
        if isinstance(output.get("text"), str):
            return truncate_text(output["text"])
        if isinstance(output.get("data"), str):
            return f"[data {len(output['data'])}b]"
    return truncate_text(_dump(output))
