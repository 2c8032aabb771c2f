"""Attempt identity for a single interactive mastering session."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable


@dataclass(slots=True)
class MasteringSession:
    """Hands out attempt ids; only the most recent attempt is live."""

    _current: int = field(default=0, init=False)

    @property
    def current_attempt(self) -> int:
        return self._current

    def begin_attempt(self) -> int:
        self._current += 1
        return self._current

    def is_current(self, attempt_id: int) -> bool:
        return attempt_id == self._current

    def liveness(self, attempt_id: int) -> Callable[[], bool]:
        """Return a zero-argument check suitable for ``run_self_correction(is_live=...)``."""

        return lambda: self.is_current(attempt_id)
