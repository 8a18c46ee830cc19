"""Outcome scripting shared by the fake transport adapters."""

from collections import deque

from waitlist.channel import HARD_FAIL, SENT, SOFT_FAIL


class ScriptedOutcomes:
    """Queue of canned outcomes; falls back to the configured default."""

    def __init__(self, default_error: str):
        self.default_error = default_error
        self._reset_state()

    def _reset_state(self):
        self._script: deque[str] = deque()
        self.should_succeed = True
        self.failure_status = SOFT_FAIL
        self.failure_reason = self.default_error
        self.raise_error: Exception | None = None

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str | None = None,
        hard: bool = False,
    ):
        """Configure the fake adapter behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_status = HARD_FAIL if hard else SOFT_FAIL
        self.failure_reason = failure_reason or self.default_error

    def script(self, *outcomes: str):
        """Queue explicit outcomes ("sent", "soft_fail", "hard_fail") for the next sends."""
        self._script.extend(outcomes)

    def next_outcome(self) -> str:
        if self.raise_error is not None:
            raise self.raise_error
        if self._script:
            return self._script.popleft()
        return SENT if self.should_succeed else self.failure_status

    def reset(self):
        self._reset_state()
