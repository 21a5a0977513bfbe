# core/errors.py
"""Exceptions raised inside the orchestration core."""


class TurnBusyError(RuntimeError):
    """Another turn is active; only one turn may run at a time."""

    def __init__(self, active_source):
        self.active_source = active_source
        super().__init__(f"a {active_source.value} turn is already active")


class ContinuationConsumedError(RuntimeError):
    """A continuation was resumed (or decided on) after it had already been resumed."""


class ApprovalApplicationError(RuntimeError):
    """A decision could not be applied to the provider's run state."""


class ProviderError(RuntimeError):
    """The execution provider reported a failure for a run."""

    def __init__(self, message: str, status_code: int = None):
        self.status_code = status_code
        super().__init__(message)
