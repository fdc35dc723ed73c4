"""Request-level exceptions. Per-backend failures are data, not exceptions."""

from diligence.models import DebateFailure, DebateState


class InputError(ValueError):
    """Raised before any backend is invoked when a request is unusable."""


class DebateFailedError(RuntimeError):
    """A debate turn or the judging step failed; the debate is terminal."""

    def __init__(self, failure: DebateFailure, state: DebateState) -> None:
        self.failure = failure
        self.state = state
        where = failure.phase.value
        if failure.round is not None:
            where += f" (round {failure.round})"
        super().__init__(f"Debate failed at {where} [{failure.backend}]: {failure.reason}")

    @property
    def phase(self):
        return self.failure.phase
