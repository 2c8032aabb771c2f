"""Domain event contracts for mastering attempts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True, slots=True)
class DomainEvent:
    """Base domain event emitted by application services."""

    correlation_id: str
    payload_summary: dict[str, Any]
    occurred_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))


@dataclass(frozen=True, slots=True)
class DecisionResolved(DomainEvent):
    """A categorical decision was settled, by oracle protocol or default."""


@dataclass(frozen=True, slots=True)
class ParamsDerived(DomainEvent):
    """Raw parameters were derived and safety clamped."""


@dataclass(frozen=True, slots=True)
class CorrectionIterated(DomainEvent):
    """One trial render was measured by the self-correction loop."""


@dataclass(frozen=True, slots=True)
class MasteringCompleted(DomainEvent):
    """Validated parameters are ready for delivery."""


@dataclass(frozen=True, slots=True)
class MasteringFailed(DomainEvent):
    """The attempt failed or was superseded for a correlation id."""
