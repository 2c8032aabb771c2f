"""Layered low-end distortion risk heuristics."""

from __future__ import annotations

from dataclasses import dataclass

from .analysis import BASS_BAND, SUB_BASS_BAND, AnalysisSnapshot

MAX_RISK = 6


@dataclass(frozen=True, slots=True)
class RiskThresholds:
    """Thresholds for the heuristic and detailed sub-scores."""

    true_peak_db: float = -1.2
    crest_factor: float = 9.5
    distortion_percent: float = 0.8
    phase_correlation: float = 0.2
    sub_bass_db: float = -15.0
    bass_db: float = -12.5
    gain_db: float = 1.2
    low_end_crest_db: float = 8.8
    sub_energy_ratio: float = 0.35
    low_end_to_low_mid_ratio: float = 1.7
    bass_mono_compatibility: float = 58.0


@dataclass(frozen=True, slots=True)
class CollisionThresholds:
    """Stricter thresholds used to decide whether material is clean."""

    distortion_percent: float = 0.5
    crest_factor: float = 8.5
    phase_correlation: float = 0.3
    sub_bass_db: float = -16.0
    bass_db: float = -13.0
    true_peak_db: float = -1.0


DEFAULT_RISK_THRESHOLDS = RiskThresholds()
DEFAULT_COLLISION_THRESHOLDS = CollisionThresholds()


def heuristic_risk(
    snapshot: AnalysisSnapshot,
    gain_db: float,
    thresholds: RiskThresholds = DEFAULT_RISK_THRESHOLDS,
) -> int:
    score = 0
    if snapshot.true_peak_db > thresholds.true_peak_db:
        score += 1
    if snapshot.crest_factor < thresholds.crest_factor:
        score += 1
    if snapshot.distortion_percent > thresholds.distortion_percent:
        score += 1
    if snapshot.phase_correlation < thresholds.phase_correlation:
        score += 1
    if (
        snapshot.band_level(SUB_BASS_BAND) > thresholds.sub_bass_db
        and snapshot.band_level(BASS_BAND) > thresholds.bass_db
    ):
        score += 1
    if gain_db > thresholds.gain_db:
        score += 1
    return score


def diagnostic_risk(snapshot: AnalysisSnapshot) -> int:
    if snapshot.distortion_risk_score is None:
        return 0
    return int(round(min(float(MAX_RISK), max(0.0, snapshot.distortion_risk_score))))


def detailed_risk(
    snapshot: AnalysisSnapshot,
    thresholds: RiskThresholds = DEFAULT_RISK_THRESHOLDS,
) -> int:
    low_end_crest = snapshot.low_end_crest_db
    if low_end_crest is None:
        low_end_crest = snapshot.crest_factor
    sub_energy = snapshot.sub_energy_ratio if snapshot.sub_energy_ratio is not None else 0.0
    low_ratio = snapshot.low_end_to_low_mid_ratio if snapshot.low_end_to_low_mid_ratio is not None else 1.0
    mono_compat = snapshot.bass_mono_compatibility
    if mono_compat is None:
        mono_compat = snapshot.phase_correlation * 100.0

    score = 0
    if low_end_crest < thresholds.low_end_crest_db:
        score += 1
    if sub_energy > thresholds.sub_energy_ratio:
        score += 1
    if low_ratio > thresholds.low_end_to_low_mid_ratio:
        score += 1
    if mono_compat < thresholds.bass_mono_compatibility:
        score += 1
    return score


def evaluate_low_end_risk(
    snapshot: AnalysisSnapshot,
    gain_db: float,
    thresholds: RiskThresholds = DEFAULT_RISK_THRESHOLDS,
) -> int:
    """Return the 0..6 low-end distortion risk.

    The three sub-scores are combined with ``max`` so any single strong signal
    is enough to flag risk.
    """

    risk = max(
        heuristic_risk(snapshot, gain_db, thresholds),
        diagnostic_risk(snapshot),
        detailed_risk(snapshot, thresholds),
    )
    return min(MAX_RISK, max(0, risk))


def detect_low_end_collision(
    snapshot: AnalysisSnapshot,
    thresholds: CollisionThresholds = DEFAULT_COLLISION_THRESHOLDS,
) -> bool:
    """True when the material is not clean enough for added harmonics or width."""

    return (
        snapshot.distortion_percent > thresholds.distortion_percent
        or snapshot.crest_factor < thresholds.crest_factor
        or snapshot.phase_correlation < thresholds.phase_correlation
        or (
            snapshot.band_level(SUB_BASS_BAND) > thresholds.sub_bass_db
            and snapshot.band_level(BASS_BAND) > thresholds.bass_db
        )
        or snapshot.true_peak_db > thresholds.true_peak_db
    )
