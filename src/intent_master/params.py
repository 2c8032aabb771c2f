"""Continuous DSP parameters handed to rendering."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum


class EqFilterType(str, Enum):
    """Supported EQ filter shapes."""

    LOWSHELF = "lowshelf"
    HIGHSHELF = "highshelf"
    PEAK = "peak"


@dataclass(frozen=True, slots=True)
class EqAdjustment:
    """One EQ move in the mastering chain."""

    filter_type: EqFilterType
    frequency_hz: float
    gain_db: float
    q: float


@dataclass(frozen=True, slots=True)
class Params:
    """Mastering chain parameters.

    ``eq_adjustments`` keeps insertion order; producers append to it and never
    reorder. ``safety_pressure`` is set by :func:`intent_master.safety.clamp_params`
    once the pressure de-rating has been applied.
    """

    gain_db: float
    limiter_ceiling_db: float
    target_loudness: float
    eq_adjustments: tuple[EqAdjustment, ...] = tuple()
    tube_drive_amount: float = 0.0
    exciter_amount: float = 0.0
    low_contour_amount: float = 0.0
    width_amount: float = 1.0
    low_mono_hz: float | None = None
    tube_hpf_hz: float | None = None
    exciter_hpf_hz: float | None = None
    transient_attack_s: float | None = None
    transient_release_s: float | None = None
    limiter_attack_s: float | None = None
    limiter_release_s: float | None = None
    safety_pressure: float | None = None

    def with_gain(self, gain_db: float) -> "Params":
        return replace(self, gain_db=float(gain_db))

    def with_eq(self, *adjustments: EqAdjustment) -> "Params":
        return replace(self, eq_adjustments=self.eq_adjustments + tuple(adjustments))

    def as_dict(self) -> dict[str, object]:
        return {
            "gain_db": self.gain_db,
            "limiter_ceiling_db": self.limiter_ceiling_db,
            "target_loudness": self.target_loudness,
            "eq_adjustments": [
                {
                    "type": adjustment.filter_type.value,
                    "frequency_hz": adjustment.frequency_hz,
                    "gain_db": adjustment.gain_db,
                    "q": adjustment.q,
                }
                for adjustment in self.eq_adjustments
            ],
            "tube_drive_amount": self.tube_drive_amount,
            "exciter_amount": self.exciter_amount,
            "low_contour_amount": self.low_contour_amount,
            "width_amount": self.width_amount,
            "low_mono_hz": self.low_mono_hz,
            "tube_hpf_hz": self.tube_hpf_hz,
            "exciter_hpf_hz": self.exciter_hpf_hz,
            "transient_attack_s": self.transient_attack_s,
            "transient_release_s": self.transient_release_s,
            "limiter_attack_s": self.limiter_attack_s,
            "limiter_release_s": self.limiter_release_s,
            "safety_pressure": self.safety_pressure,
        }
