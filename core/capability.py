# core/capability.py
"""
CapabilityBreaker - one-shot switch for reasoning summaries.

Providers refuse reasoning summaries for organisations that are not verified.
The first refusal disables the capability for the rest of the process; every
later phase config is built without reasoning settings. There is no re-enable:
verification cannot change while the process runs.
"""

from typing import Any, Callable, Optional

from core.models import TurnSource
from core.runs import describe_error
from utils.logger import log_info, log_warning

REFUSAL_SIGNATURE = "your organization must be verified to generate reasoning summaries"

CAPABILITY_NOTICE = (
    "(Reasoning summaries unavailable: switching to internal reflection "
    "until verification completes.)"
)

DISABLED_EVENT = "reasoning_summary_disabled (org not verified; retrying without summaries)"


def is_capability_refusal(error_or_text: Any) -> bool:
    if error_or_text is None:
        return False
    text = error_or_text if isinstance(error_or_text, str) else describe_error(error_or_text)
    return REFUSAL_SIGNATURE in text.lower()


class CapabilityBreaker:
    def __init__(
        self,
        on_trip: Optional[Callable[[TurnSource], None]] = None,
        on_notice: Optional[Callable[[str], None]] = None,
    ):
        self._enabled = True
        self._notice_posted = False
        self.on_trip = on_trip
        self.on_notice = on_notice

    def is_enabled(self) -> bool:
        return self._enabled

    def guard(self, error_or_text: Any, source: TurnSource = TurnSource.CHAT) -> bool:
        """
        True when error_or_text is the capability refusal (tripping the
        breaker on first sight). Any other error returns False.
        """
        if not is_capability_refusal(error_or_text):
            return False
        if not self._enabled:
            return True

        self._enabled = False
        log_warning(f"[CapabilityBreaker] Reasoning summaries refused ({source.value}) - disabled for this process")
        if self.on_trip is not None:
            self.on_trip(source)
        if not self._notice_posted:
            self._notice_posted = True
            if self.on_notice is not None:
                self.on_notice(CAPABILITY_NOTICE)
        return True


# ═══════════════════════════════════════════════════════════
# SINGLETON ACCESSOR
# ═══════════════════════════════════════════════════════════

_breaker_instance: Optional[CapabilityBreaker] = None


def get_capability_breaker() -> CapabilityBreaker:
    global _breaker_instance
    if _breaker_instance is None:
        _breaker_instance = CapabilityBreaker()
        log_info("[CapabilityBreaker] Initialized (reasoning summaries enabled)")
    return _breaker_instance
