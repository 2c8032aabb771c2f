"""Mapping categorical intent and measured analysis into concrete DSP parameters."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from .analysis import (
    BASS_BAND,
    HIGH_BAND,
    HIGH_MID_BAND,
    LOW_MID_BAND,
    MID_BAND,
    SUB_BASS_BAND,
    AnalysisSnapshot,
)
from .decision import (
    Decision,
    HighFreqTreatment,
    KickSafety,
    SaturationNeed,
    StereoIntent,
    TransientHandling,
)
from .params import EqAdjustment, EqFilterType, Params
from .risk import detect_low_end_collision, evaluate_low_end_risk
from .specifics import Specifics

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SaturationCurve:
    """Tube drive for one saturation tier: ``base + slope * headroom``."""

    base: float
    slope: float
    harmonic_lift: float


@dataclass(frozen=True, slots=True)
class DerivationTuning:
    """Tunable constants for translating intent and analysis into parameters."""

    gain_clamp_db: tuple[float, float]
    high_risk_threshold: int
    saturation_curves: dict[SaturationNeed, SaturationCurve]
    headroom_floor_db: float
    headroom_span_db: float
    saturation_ceiling: float
    high_risk_saturation_cap: float
    bright_floor_db: float
    exciter_scale: dict[HighFreqTreatment, float]
    exciter_base: float
    exciter_per_db: float
    exciter_ceiling: float
    contour_energy_floor_db: float
    contour_energy_span_db: float
    contour_base: float
    contour_slope: float
    contour_danger_offset: float
    contour_collision_factor: float
    contour_ceiling: float
    high_risk_contour_cap: float
    width_base: dict[StereoIntent, float]
    width_reference: float
    width_room_factor: float
    width_risk_cap: float
    mono_base_hz: float
    mono_collision_hz: float
    mono_risk_hz: float
    mono_phase_hz: float
    mono_weak_sub_hz: float
    weak_sub_db: float
    mono_ceiling_hz: float
    transient_weight: dict[TransientHandling, float]
    mud_margin_db: float
    harsh_margin_db: float
    presence_bass_margin_db: float
    presence_low_mid_margin_db: float
    low_balance_range_db: tuple[float, float]
    high_balance_range_db: tuple[float, float]


DERIVATION_TUNINGS: dict[str, DerivationTuning] = {
    "default": DerivationTuning(
        gain_clamp_db=(-5.0, 3.0),
        high_risk_threshold=4,
        saturation_curves={
            SaturationNeed.NONE: SaturationCurve(base=0.0, slope=0.0, harmonic_lift=0.0),
            SaturationNeed.LIGHT: SaturationCurve(base=0.25, slope=0.35, harmonic_lift=0.1),
            SaturationNeed.MODERATE: SaturationCurve(base=0.5, slope=0.6, harmonic_lift=0.15),
            SaturationNeed.HEAVY: SaturationCurve(base=0.8, slope=0.9, harmonic_lift=0.2),
        },
        headroom_floor_db=6.0,
        headroom_span_db=8.0,
        saturation_ceiling=2.0,
        high_risk_saturation_cap=0.85,
        bright_floor_db=-24.0,
        exciter_scale={
            HighFreqTreatment.RESTRAIN: 0.0,
            HighFreqTreatment.LEAVE: 0.25,
            HighFreqTreatment.POLISH: 0.6,
            HighFreqTreatment.LIFT: 1.0,
        },
        exciter_base=0.03,
        exciter_per_db=0.006,
        exciter_ceiling=0.12,
        contour_energy_floor_db=-24.0,
        contour_energy_span_db=12.0,
        contour_base=0.15,
        contour_slope=0.45,
        contour_danger_offset=0.15,
        contour_collision_factor=0.5,
        contour_ceiling=0.8,
        high_risk_contour_cap=0.2,
        width_base={
            StereoIntent.NARROW: 1.0,
            StereoIntent.BALANCED: 1.08,
            StereoIntent.WIDE: 1.22,
        },
        width_reference=60.0,
        width_room_factor=0.5,
        width_risk_cap=1.05,
        mono_base_hz=120.0,
        mono_collision_hz=60.0,
        mono_risk_hz=30.0,
        mono_phase_hz=40.0,
        mono_weak_sub_hz=20.0,
        weak_sub_db=-30.0,
        mono_ceiling_hz=320.0,
        transient_weight={
            TransientHandling.PRESERVE: 0.0,
            TransientHandling.SOFTEN: 0.5,
            TransientHandling.CONTROL: 1.0,
        },
        mud_margin_db=1.5,
        harsh_margin_db=0.0,
        presence_bass_margin_db=6.0,
        presence_low_mid_margin_db=2.0,
        low_balance_range_db=(2.0, 8.0),
        high_balance_range_db=(-10.0, 2.0),
    ),
}


def resolve_derivation_tuning(profile: str = "default") -> DerivationTuning:
    try:
        return DERIVATION_TUNINGS[profile]
    except KeyError as exc:
        allowed = ", ".join(sorted(DERIVATION_TUNINGS))
        raise ValueError(
            f"Unknown derivation profile '{profile}'. Allowed: {allowed}."
        ) from exc


def _clamp(value: float, low: float, high: float) -> float:
    return float(np.clip(value, low, high))


def _unit(value: float, floor: float, span: float) -> float:
    return _clamp((value - floor) / span, 0.0, 1.0)


def _derive_saturation(
    decision: Decision,
    snapshot: AnalysisSnapshot,
    collision: bool,
    risk: int,
    tuning: DerivationTuning,
) -> float:
    headroom_db = 0.5 * snapshot.crest_factor + 0.5 * snapshot.effective_dynamic_range
    headroom = _unit(headroom_db, tuning.headroom_floor_db, tuning.headroom_span_db)
    curve = tuning.saturation_curves[decision.saturation_need]

    drive = curve.base + curve.slope * headroom if curve.base > 0.0 else 0.0
    if drive > 0.0 and not collision:
        drive += curve.harmonic_lift * (1.0 + headroom)
    drive = min(drive, tuning.saturation_ceiling)
    if risk >= tuning.high_risk_threshold:
        drive = min(drive, tuning.high_risk_saturation_cap)
    return drive


def _derive_exciter(decision: Decision, snapshot: AnalysisSnapshot, tuning: DerivationTuning) -> float:
    brightness = 0.5 * (snapshot.band_level(HIGH_BAND) + snapshot.band_level(HIGH_MID_BAND))
    deficit_db = max(0.0, tuning.bright_floor_db - brightness)
    scale = tuning.exciter_scale[decision.high_freq_treatment]
    amount = scale * (tuning.exciter_base + tuning.exciter_per_db * deficit_db)
    return _clamp(amount, 0.0, tuning.exciter_ceiling)


def _derive_low_contour(
    decision: Decision,
    snapshot: AnalysisSnapshot,
    collision: bool,
    risk: int,
    tuning: DerivationTuning,
) -> float:
    bass_energy_db = 0.5 * (snapshot.band_level(SUB_BASS_BAND) + snapshot.band_level(BASS_BAND))
    energy = _unit(bass_energy_db, tuning.contour_energy_floor_db, tuning.contour_energy_span_db)

    contour = tuning.contour_base + tuning.contour_slope * energy
    if decision.kick_safety is KickSafety.DANGER:
        contour += tuning.contour_danger_offset
    if collision:
        contour *= tuning.contour_collision_factor
    contour = min(contour, tuning.contour_ceiling)
    if risk >= tuning.high_risk_threshold:
        contour = min(contour, tuning.high_risk_contour_cap)
    return max(0.0, contour)


def _derive_width(
    decision: Decision,
    snapshot: AnalysisSnapshot,
    collision: bool,
    risk: int,
    tuning: DerivationTuning,
) -> float:
    base = tuning.width_base[decision.stereo_intent]
    room = _clamp((tuning.width_reference - snapshot.stereo_width) / tuning.width_reference, 0.0, 1.0)
    width = base + (base - 1.0) * tuning.width_room_factor * room
    if collision or risk >= tuning.high_risk_threshold:
        width = min(width, tuning.width_risk_cap)
    return max(1.0, width)


def _derive_low_mono_hz(
    snapshot: AnalysisSnapshot,
    collision: bool,
    risk: int,
    tuning: DerivationTuning,
) -> float:
    crossover = tuning.mono_base_hz
    if collision:
        crossover += tuning.mono_collision_hz
    crossover += tuning.mono_risk_hz * risk / 6.0
    crossover += tuning.mono_phase_hz * _clamp((0.6 - snapshot.phase_correlation) / 0.6, 0.0, 1.0)
    if snapshot.band_level(SUB_BASS_BAND) < tuning.weak_sub_db:
        crossover += tuning.mono_weak_sub_hz
    return min(crossover, tuning.mono_ceiling_hz)


@dataclass(frozen=True, slots=True)
class TimingSet:
    """Crossover and envelope timings that move together."""

    tube_hpf_hz: float
    exciter_hpf_hz: float
    transient_attack_s: float
    transient_release_s: float
    limiter_attack_s: float
    limiter_release_s: float


def _derive_timing(
    decision: Decision,
    gain_db: float,
    tube_drive: float,
    exciter: float,
    contour: float,
    tuning: DerivationTuning,
) -> TimingSet:
    drive = tube_drive / tuning.saturation_ceiling
    excite = exciter / tuning.exciter_ceiling
    boost = max(0.0, gain_db) / tuning.gain_clamp_db[1]
    transient = tuning.transient_weight[decision.transient_handling]

    attack = (0.030 - 0.020 * transient) * (1.0 - 0.3 * drive)
    release = 0.12 + 0.10 * contour + 0.05 * boost
    return TimingSet(
        tube_hpf_hz=30.0 + 50.0 * contour + 20.0 * drive,
        exciter_hpf_hz=7_000.0 - 3_000.0 * excite,
        transient_attack_s=attack,
        transient_release_s=release,
        limiter_attack_s=max(0.001, attack * 0.25),
        limiter_release_s=release * (1.0 + 0.5 * boost),
    )


def _derive_eq(
    decision: Decision,
    snapshot: AnalysisSnapshot,
    collision: bool,
    tuning: DerivationTuning,
) -> list[EqAdjustment]:
    bass = snapshot.band_level(BASS_BAND)
    low_mid = snapshot.band_level(LOW_MID_BAND)
    mid = snapshot.band_level(MID_BAND)
    high_mid = snapshot.band_level(HIGH_MID_BAND)
    high = snapshot.band_level(HIGH_BAND)

    adjustments: list[EqAdjustment] = []

    mud_excess = low_mid - bass - tuning.mud_margin_db
    if mud_excess > 0.0:
        adjustments.append(
            EqAdjustment(EqFilterType.PEAK, 300.0, -min(3.0, 0.5 + 0.6 * mud_excess), 1.2)
        )

    harsh_excess = high_mid - mid - tuning.harsh_margin_db
    if harsh_excess > 0.0 and decision.high_freq_treatment is not HighFreqTreatment.LIFT:
        cut = min(2.5, 0.3 + 0.5 * harsh_excess)
        if decision.high_freq_treatment is HighFreqTreatment.RESTRAIN:
            cut = min(2.5, cut * 1.3)
        adjustments.append(EqAdjustment(EqFilterType.PEAK, 3_500.0, -cut, 2.0))

    bass_heavy = bass - mid - tuning.presence_bass_margin_db
    weak_low_mid = low_mid < mid - tuning.presence_low_mid_margin_db
    if not collision and bass_heavy > 0.0 and weak_low_mid:
        adjustments.append(
            EqAdjustment(EqFilterType.PEAK, 2_500.0, min(1.5, 0.5 + 0.2 * bass_heavy), 1.0)
        )

    low_balance = bass - low_mid
    low_min, low_max = tuning.low_balance_range_db
    if low_balance > low_max:
        adjustments.append(
            EqAdjustment(EqFilterType.LOWSHELF, 90.0, -min(2.5, 0.5 + 0.4 * (low_balance - low_max)), 0.7)
        )
    elif low_balance < low_min:
        adjustments.append(
            EqAdjustment(EqFilterType.LOWSHELF, 90.0, min(2.0, 0.3 + 0.4 * (low_min - low_balance)), 0.7)
        )

    high_balance = high - high_mid
    high_min, high_max = tuning.high_balance_range_db
    if high_balance > high_max:
        adjustments.append(
            EqAdjustment(EqFilterType.HIGHSHELF, 10_000.0, -min(2.0, 0.3 + 0.3 * (high_balance - high_max)), 0.7)
        )
    elif high_balance < high_min:
        adjustments.append(
            EqAdjustment(EqFilterType.HIGHSHELF, 10_000.0, min(2.0, 0.3 + 0.2 * (high_min - high_balance)), 0.7)
        )

    return adjustments


def _rounded_eq(adjustment: EqAdjustment) -> EqAdjustment:
    return EqAdjustment(
        filter_type=adjustment.filter_type,
        frequency_hz=round(adjustment.frequency_hz, 1),
        gain_db=round(adjustment.gain_db, 2),
        q=round(adjustment.q, 2),
    )


def derive_params(
    decision: Decision,
    snapshot: AnalysisSnapshot,
    specifics: Specifics,
    tuning: DerivationTuning | None = None,
) -> Params:
    """Translate intent + analysis + platform policy into raw :class:`Params`.

    The result is not yet safety clamped; callers pass it through
    :func:`intent_master.safety.clamp_params` before rendering.
    """

    tuning = tuning or resolve_derivation_tuning()

    gain_db = _clamp(specifics.target_loudness - snapshot.loudness, *tuning.gain_clamp_db)
    risk = evaluate_low_end_risk(snapshot, gain_db)
    collision = detect_low_end_collision(snapshot)

    tube_drive = _derive_saturation(decision, snapshot, collision, risk, tuning)
    exciter = _derive_exciter(decision, snapshot, tuning)
    contour = _derive_low_contour(decision, snapshot, collision, risk, tuning)
    width = _derive_width(decision, snapshot, collision, risk, tuning)
    low_mono_hz = _derive_low_mono_hz(snapshot, collision, risk, tuning)
    timing = _derive_timing(decision, gain_db, tube_drive, exciter, contour, tuning)
    eq_adjustments = _derive_eq(decision, snapshot, collision, tuning)

    LOGGER.debug(
        "params_derived",
        extra={"risk": risk, "collision": collision, "gain_db": gain_db, "eq_count": len(eq_adjustments)},
    )

    return Params(
        gain_db=round(gain_db, 2),
        limiter_ceiling_db=specifics.target_peak,
        target_loudness=specifics.target_loudness,
        eq_adjustments=tuple(_rounded_eq(adjustment) for adjustment in eq_adjustments),
        tube_drive_amount=round(tube_drive, 3),
        exciter_amount=round(exciter, 4),
        low_contour_amount=round(contour, 3),
        width_amount=round(width, 3),
        low_mono_hz=round(low_mono_hz, 1),
        tube_hpf_hz=round(timing.tube_hpf_hz, 1),
        exciter_hpf_hz=round(timing.exciter_hpf_hz, 1),
        transient_attack_s=round(timing.transient_attack_s, 4),
        transient_release_s=round(timing.transient_release_s, 4),
        limiter_attack_s=round(timing.limiter_attack_s, 4),
        limiter_release_s=round(timing.limiter_release_s, 4),
    )
