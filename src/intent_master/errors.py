"""Failure types raised by the mastering pipeline."""

from __future__ import annotations


class MasteringError(Exception):
    """Base error carrying a stable machine-readable ``code``."""

    code = "mastering_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def as_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class AdvisoryUnavailable(MasteringError):
    """The advisory oracle could not be reached or returned nothing usable."""

    code = "advisory_unavailable"


class RenderFailure(MasteringError):
    """Rendering or measuring a trial master failed."""

    code = "render_failed"


class AttemptSuperseded(MasteringError):
    """A newer attempt started while this one was in flight."""

    code = "attempt_superseded"

    def __init__(self, attempt_id: int, message: str | None = None) -> None:
        super().__init__(message or f"Mastering attempt {attempt_id} was superseded.")
        self.attempt_id = attempt_id


class PeakLimitExceeded(MasteringError):
    """No gain within bounds keeps the rendered true peak under the target limit."""

    code = "peak_limit_exceeded"
