"""Categorical mastering intent: repair at the trust boundary and consensus merge."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, TypeVar


class KickSafety(str, Enum):
    SAFE = "safe"
    BORDERLINE = "borderline"
    DANGER = "danger"


class SaturationNeed(str, Enum):
    NONE = "none"
    LIGHT = "light"
    MODERATE = "moderate"
    HEAVY = "heavy"


class TransientHandling(str, Enum):
    PRESERVE = "preserve"
    SOFTEN = "soften"
    CONTROL = "control"


class HighFreqTreatment(str, Enum):
    RESTRAIN = "restrain"
    LEAVE = "leave"
    POLISH = "polish"
    LIFT = "lift"


class StereoIntent(str, Enum):
    NARROW = "narrow"
    BALANCED = "balanced"
    WIDE = "wide"


@dataclass(frozen=True, slots=True)
class Decision:
    """Advisory intent; every field is always a valid enum member."""

    kick_safety: KickSafety = KickSafety.BORDERLINE
    saturation_need: SaturationNeed = SaturationNeed.LIGHT
    transient_handling: TransientHandling = TransientHandling.SOFTEN
    high_freq_treatment: HighFreqTreatment = HighFreqTreatment.POLISH
    stereo_intent: StereoIntent = StereoIntent.BALANCED
    confidence: float = 0.5

    def as_dict(self) -> dict[str, Any]:
        return {
            "kickSafety": self.kick_safety.value,
            "saturationNeed": self.saturation_need.value,
            "transientHandling": self.transient_handling.value,
            "highFreqTreatment": self.high_freq_treatment.value,
            "stereoIntent": self.stereo_intent.value,
            "confidence": self.confidence,
        }


DEFAULT_DECISION = Decision()
DEFAULT_CONFIDENCE = 0.5
RECONCILE_EPSILON = 1e-3

# field name on Decision, wire key, enum, default
_FIELDS: tuple[tuple[str, str, type[Enum], Enum], ...] = (
    ("kick_safety", "kickSafety", KickSafety, DEFAULT_DECISION.kick_safety),
    ("saturation_need", "saturationNeed", SaturationNeed, DEFAULT_DECISION.saturation_need),
    ("transient_handling", "transientHandling", TransientHandling, DEFAULT_DECISION.transient_handling),
    ("high_freq_treatment", "highFreqTreatment", HighFreqTreatment, DEFAULT_DECISION.high_freq_treatment),
    ("stereo_intent", "stereoIntent", StereoIntent, DEFAULT_DECISION.stereo_intent),
)

# Values emitted by older oracle prompts.
_LEGACY_ALIASES: dict[str, Enum] = {
    "monosafe": StereoIntent.NARROW,
}

EnumT = TypeVar("EnumT", bound=Enum)


def _coerce_member(raw: Any, enum_cls: type[EnumT], default: EnumT) -> EnumT:
    if isinstance(raw, enum_cls):
        return raw
    if not isinstance(raw, str):
        return default
    normalized = raw.strip().lower()
    for member in enum_cls:
        if str(member.value).lower() == normalized:
            return member
    alias = _LEGACY_ALIASES.get(normalized)
    if isinstance(alias, enum_cls):
        return alias
    return default


def _coerce_confidence(raw: Any) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return DEFAULT_CONFIDENCE
    value = float(raw)
    if not math.isfinite(value):
        return DEFAULT_CONFIDENCE
    return min(1.0, max(0.0, value))


def normalize_decision(raw: Any) -> Decision:
    """Repair a deserialized oracle record into a fully valid :class:`Decision`.

    Unknown or missing values fall back to the per-field default; this never
    raises, whatever the input shape.
    """

    if not isinstance(raw, Mapping):
        return DEFAULT_DECISION

    values: dict[str, Any] = {}
    for attr, wire_key, enum_cls, default in _FIELDS:
        raw_value = raw.get(wire_key, raw.get(attr))
        values[attr] = _coerce_member(raw_value, enum_cls, default)
    values["confidence"] = _coerce_confidence(raw.get("confidence"))
    return Decision(**values)


def extract_decision_payload(text: Any) -> dict[str, Any] | None:
    """Pull the outermost JSON object out of an oracle reply, or None."""

    if not isinstance(text, str):
        return None
    content = text.strip()
    if not content:
        return None
    if content.startswith("```"):
        content = content.split("\n", 1)[-1]
        if content.endswith("```"):
            content = content[:-3].strip()
        if content.lower().startswith("json"):
            content = content[4:].strip()
    start, end = content.find("{"), content.rfind("}")
    if start == -1 or end <= start:
        return None
    try:
        parsed = json.loads(content[start : end + 1])
    except ValueError:
        return None
    if not isinstance(parsed, dict):
        return None
    return parsed


def decision_from_text(text: Any) -> Decision:
    return normalize_decision(extract_decision_payload(text))


def _merge_ordinal(a: EnumT, b: EnumT, weight_a: float, weight_b: float) -> EnumT:
    members = list(type(a))
    index_a = members.index(a)
    index_b = members.index(b)
    mean = (index_a * weight_a + index_b * weight_b) / (weight_a + weight_b)

    lower = math.floor(mean)
    fraction = mean - lower
    if math.isclose(fraction, 0.5, abs_tol=1e-9):
        preferred = index_a if weight_a >= weight_b else index_b
        chosen = lower if abs(preferred - lower) <= abs(preferred - (lower + 1)) else lower + 1
    elif fraction < 0.5:
        chosen = lower
    else:
        chosen = lower + 1

    chosen = min(len(members) - 1, max(0, chosen))
    return members[chosen]


def reconcile_decisions(a: Decision, b: Decision) -> Decision:
    """Merge two decisions by confidence-weighted ordinal averaging.

    Half-way ties go toward the higher-confidence decision (``a`` when equal).
    """

    weight_a = a.confidence if a.confidence > 0 else RECONCILE_EPSILON
    weight_b = b.confidence if b.confidence > 0 else RECONCILE_EPSILON

    values: dict[str, Any] = {}
    for attr, _wire_key, _enum_cls, _default in _FIELDS:
        values[attr] = _merge_ordinal(getattr(a, attr), getattr(b, attr), weight_a, weight_b)
    values["confidence"] = (a.confidence + b.confidence) / 2.0
    return Decision(**values)
