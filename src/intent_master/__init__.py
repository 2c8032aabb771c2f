"""Public package exports for intent_master with lazy imports."""

from __future__ import annotations

from importlib import import_module
from typing import Any

__all__ = [
    "AnalysisSnapshot",
    "BandLevel",
    "Decision",
    "normalize_decision",
    "reconcile_decisions",
    "Params",
    "EqAdjustment",
    "MasteringTarget",
    "Specifics",
    "resolve_specifics",
    "evaluate_low_end_risk",
    "derive_params",
    "clamp_params",
    "run_self_correction",
    "CorrectionResult",
    "PedalboardRenderer",
    "MasterTrackWithIntent",
    "MasteringError",
]

_EXPORT_MODULES: dict[str, str] = {
    "AnalysisSnapshot": "intent_master.analysis",
    "BandLevel": "intent_master.analysis",
    "Decision": "intent_master.decision",
    "normalize_decision": "intent_master.decision",
    "reconcile_decisions": "intent_master.decision",
    "Params": "intent_master.params",
    "EqAdjustment": "intent_master.params",
    "MasteringTarget": "intent_master.specifics",
    "Specifics": "intent_master.specifics",
    "resolve_specifics": "intent_master.specifics",
    "evaluate_low_end_risk": "intent_master.risk",
    "derive_params": "intent_master.derivation",
    "clamp_params": "intent_master.safety",
    "run_self_correction": "intent_master.correction",
    "CorrectionResult": "intent_master.correction",
    "PedalboardRenderer": "intent_master.rendering",
    "MasterTrackWithIntent": "intent_master.application.mastering_service",
    "MasteringError": "intent_master.errors",
}


def __getattr__(name: str) -> Any:
    if name not in _EXPORT_MODULES:
        raise AttributeError(f"module 'intent_master' has no attribute {name!r}")

    module = import_module(_EXPORT_MODULES[name])
    value = getattr(module, name)
    globals()[name] = value
    return value
