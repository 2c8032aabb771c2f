"""Final bounding of mastering parameters before rendering."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace

import numpy as np

from .analysis import AnalysisSnapshot
from .params import EqAdjustment, Params


@dataclass(frozen=True, slots=True)
class ParamBounds:
    """Inclusive ``(low, high)`` range for every clamped field."""

    gain_db: tuple[float, float] = (-5.0, 3.0)
    tube_drive_amount: tuple[float, float] = (0.0, 2.0)
    exciter_amount: tuple[float, float] = (0.0, 0.12)
    low_contour_amount: tuple[float, float] = (0.0, 0.8)
    width_amount: tuple[float, float] = (1.0, 1.4)
    low_mono_hz: tuple[float, float] = (40.0, 320.0)
    limiter_ceiling_db: tuple[float, float] = (-6.0, -0.1)
    tube_hpf_hz: tuple[float, float] = (20.0, 400.0)
    exciter_hpf_hz: tuple[float, float] = (1_000.0, 16_000.0)
    attack_s: tuple[float, float] = (0.001, 0.1)
    release_s: tuple[float, float] = (0.02, 1.0)
    eq_gain_db: tuple[float, float] = (-6.0, 6.0)
    eq_q: tuple[float, float] = (0.3, 10.0)
    eq_frequency_hz: tuple[float, float] = (20.0, 20_000.0)


DEFAULT_BOUNDS = ParamBounds()

NEUTRAL_CEILING_DB = -1.0
NEUTRAL_EQ_FREQUENCY_HZ = 1_000.0
NEUTRAL_EQ_Q = 0.7


def _bound(value: float, limits: tuple[float, float], neutral: float = 0.0) -> float:
    """Clip into ``limits``; NaN and infinities fall back to ``neutral`` first."""

    if not math.isfinite(value):
        value = neutral
    return float(np.clip(value, limits[0], limits[1]))


def _bound_optional(value: float | None, limits: tuple[float, float]) -> float | None:
    if value is None or not math.isfinite(value):
        return None
    return _bound(value, limits)


def pressure_profile(snapshot: AnalysisSnapshot) -> float:
    """Scalar >= 0 that grows as the source gets hotter, denser and dirtier."""

    terms = (
        1.0 / (abs(snapshot.true_peak_db) + 1.0),
        1.0 / (abs(snapshot.crest_factor) + 1.0),
        1.0 / (abs(snapshot.effective_dynamic_range) + 1.0),
        abs(snapshot.distortion_percent),
        1.0 / (abs(snapshot.phase_correlation) + 1.0),
    )
    return float(np.mean(terms))


def _bound_eq(adjustment: EqAdjustment, bounds: ParamBounds) -> EqAdjustment:
    return EqAdjustment(
        filter_type=adjustment.filter_type,
        frequency_hz=_bound(adjustment.frequency_hz, bounds.eq_frequency_hz, NEUTRAL_EQ_FREQUENCY_HZ),
        gain_db=_bound(adjustment.gain_db, bounds.eq_gain_db),
        q=_bound(adjustment.q, bounds.eq_q, NEUTRAL_EQ_Q),
    )


def _bound_all(params: Params, bounds: ParamBounds) -> Params:
    return replace(
        params,
        gain_db=_bound(params.gain_db, bounds.gain_db),
        limiter_ceiling_db=_bound(params.limiter_ceiling_db, bounds.limiter_ceiling_db, NEUTRAL_CEILING_DB),
        eq_adjustments=tuple(_bound_eq(adjustment, bounds) for adjustment in params.eq_adjustments),
        tube_drive_amount=_bound(params.tube_drive_amount, bounds.tube_drive_amount),
        exciter_amount=_bound(params.exciter_amount, bounds.exciter_amount),
        low_contour_amount=_bound(params.low_contour_amount, bounds.low_contour_amount),
        width_amount=_bound(params.width_amount, bounds.width_amount, 1.0),
        low_mono_hz=_bound_optional(params.low_mono_hz, bounds.low_mono_hz),
        tube_hpf_hz=_bound_optional(params.tube_hpf_hz, bounds.tube_hpf_hz),
        exciter_hpf_hz=_bound_optional(params.exciter_hpf_hz, bounds.exciter_hpf_hz),
        transient_attack_s=_bound_optional(params.transient_attack_s, bounds.attack_s),
        transient_release_s=_bound_optional(params.transient_release_s, bounds.release_s),
        limiter_attack_s=_bound_optional(params.limiter_attack_s, bounds.attack_s),
        limiter_release_s=_bound_optional(params.limiter_release_s, bounds.release_s),
    )


def clamp_params(
    params: Params,
    snapshot: AnalysisSnapshot,
    bounds: ParamBounds = DEFAULT_BOUNDS,
) -> Params:
    """Bound every field and apply the one-time pressure de-rating.

    Accepts parameters from any producer. Applying it twice yields the same
    result as applying it once: the de-rating only runs while
    ``safety_pressure`` is unset, and the pressure is recorded afterwards.
    """

    bounded = _bound_all(params, bounds)
    if bounded.safety_pressure is not None:
        return bounded

    pressure = pressure_profile(snapshot)
    ceiling = min(bounded.limiter_ceiling_db, bounds.limiter_ceiling_db[1]) - pressure
    derated = replace(
        bounded,
        tube_drive_amount=bounded.tube_drive_amount / (1.0 + pressure),
        exciter_amount=bounded.exciter_amount / (1.0 + pressure + abs(snapshot.distortion_percent)),
        limiter_ceiling_db=ceiling,
        safety_pressure=pressure,
    )
    return _bound_all(derated, bounds)


def clamp_adjusted_params(
    previous: Params,
    adjusted: Params,
    snapshot: AnalysisSnapshot,
    bounds: ParamBounds = DEFAULT_BOUNDS,
) -> Params:
    """Clamp ``adjusted`` when it was nudged from the clamped set ``previous``.

    The pressure recorded on ``previous`` de-rates only the increase in tube
    drive and exciter, so the part already de-rated is not scaled twice.
    """

    if previous.safety_pressure is None:
        return clamp_params(adjusted, snapshot, bounds)

    pressure = previous.safety_pressure
    tube = adjusted.tube_drive_amount
    if tube > previous.tube_drive_amount:
        tube = previous.tube_drive_amount + (tube - previous.tube_drive_amount) / (1.0 + pressure)
    exciter = adjusted.exciter_amount
    if exciter > previous.exciter_amount:
        exciter = previous.exciter_amount + (exciter - previous.exciter_amount) / (
            1.0 + pressure + abs(snapshot.distortion_percent)
        )
    return _bound_all(
        replace(adjusted, tube_drive_amount=tube, exciter_amount=exciter, safety_pressure=pressure),
        bounds,
    )
