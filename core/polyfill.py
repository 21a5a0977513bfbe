# core/polyfill.py
"""
Socratic reasoning polyfill.

Deterministic stand-in for provider reasoning summaries: rephrases the plan
as numbered question/answer pairs, adds up to three follow-up prompts taken
from the guidance and closes with a one-line conclusion. No model call.
"""

import re

_PLAN_PREFIX = re.compile(r"^Plan:\s*", re.IGNORECASE)
_GUIDANCE_PREFIX = re.compile(r"^Implementation Guidance:\s*", re.IGNORECASE)
_STEP_NUMBER = re.compile(r"^\d+[).\-:]\s*")
_SENTENCE_END = re.compile(r"(?<=[.?!])\s+")

MAX_FOLLOW_UPS = 3


def build_socratic_reasoning_summary(user_prompt: str, plan_text: str, guidance_text: str) -> str:
    """Empty string when the plan has no usable lines."""
    clean_plan = _PLAN_PREFIX.sub("", plan_text.strip()).strip()
    steps = [line.strip() for line in re.split(r"\n+", clean_plan) if line.strip()]
    if not steps:
        return ""

    qa_pairs = []
    for i, raw in enumerate(steps, start=1):
        step = _STEP_NUMBER.sub("", raw).strip()
        if not step:
            continue
        qa_pairs.append(f"Q{i}: Why is step {i} necessary? A{i}: {step}.")

    guidance_notes = ""
    condensed = _GUIDANCE_PREFIX.sub("", guidance_text.strip()).strip()
    if condensed:
        sentences = [s.strip() for s in _SENTENCE_END.split(condensed) if s.strip()][:MAX_FOLLOW_UPS]
        if sentences:
            guidance_notes = "Follow-up prompts:\n" + "\n".join(
                f"• Clarify {idx}: {s}" for idx, s in enumerate(sentences, start=1)
            )

    closing = (
        f'Conclusion: This plan addresses "{user_prompt.strip()}" '
        "by progressing through the numbered inquiries above."
    )
    return "\n\n".join(part for part in ("\n".join(qa_pairs), guidance_notes, closing) if part)
