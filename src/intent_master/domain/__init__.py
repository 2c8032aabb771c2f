"""DDD domain layer."""

from .events import (
    CorrectionIterated,
    DecisionResolved,
    DomainEvent,
    MasteringCompleted,
    MasteringFailed,
    ParamsDerived,
)

__all__ = [
    "DomainEvent",
    "DecisionResolved",
    "ParamsDerived",
    "CorrectionIterated",
    "MasteringCompleted",
    "MasteringFailed",
]
