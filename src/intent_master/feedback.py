"""Deterministic parameter nudges from listener feedback on a rendered master.

Feedback never re-queries the oracle; it moves the numbers directly and the
caller re-clamps and re-runs self-correction.
"""

from __future__ import annotations

from dataclasses import replace
from enum import Enum

from .correction import DEFAULT_CORRECTION_TUNING, CorrectionTuning, derive_gain_step_cap
from .params import EqAdjustment, EqFilterType, Params

TARGET_LOUDNESS_RANGE = (-20.0, -5.0)
SAFE_FEEDBACK_CEILING_DB = -1.0
HOT_TARGET_LUFS = -8.0


class FeedbackType(str, Enum):
    DISTORTION = "distortion"
    MUDDY = "muddy"
    HARSH = "harsh"
    VOCALS_BURIED = "vocals_buried"
    WEAK_KICK = "weak_kick"
    BOOMY = "boomy"
    THIN = "thin"
    NARROW = "narrow"
    SQUASHED = "squashed"
    NOT_LOUD = "not_loud"


def gentle_loudness_step(target_loudness: float, louder: bool, tuning: CorrectionTuning) -> float:
    """Size of a target-loudness nudge; smaller going up on already hot targets."""

    tolerance = min(2.0, max(0.2, tuning.loudness_tolerance_db))
    step = derive_gain_step_cap(tolerance, tuning.max_gain_step_db)
    low, high = TARGET_LOUDNESS_RANGE
    if louder:
        if target_loudness >= HOT_TARGET_LUFS:
            step *= 0.75
        return min(step, max(0.0, high - target_loudness))
    return min(step * 1.2, max(0.0, target_loudness - low))


def _bump_target(params: Params, louder: bool, tuning: CorrectionTuning) -> Params:
    step = gentle_loudness_step(params.target_loudness, louder, tuning)
    delta = step if louder else -step
    low, high = TARGET_LOUDNESS_RANGE
    target = min(high, max(low, params.target_loudness + delta))
    return replace(params, target_loudness=round(target, 2))


def apply_feedback_adjustment(
    params: Params,
    feedback: FeedbackType,
    tuning: CorrectionTuning = DEFAULT_CORRECTION_TUNING,
) -> Params:
    """Return new parameters moved in the direction the listener asked for."""

    adjusted = params
    if feedback is FeedbackType.DISTORTION:
        adjusted = _bump_target(adjusted, louder=False, tuning=tuning)
        adjusted = replace(
            adjusted,
            tube_drive_amount=max(0.0, adjusted.tube_drive_amount - 1.0),
            exciter_amount=max(0.0, adjusted.exciter_amount - 0.03),
            low_contour_amount=max(0.0, adjusted.low_contour_amount - 0.2),
            limiter_ceiling_db=SAFE_FEEDBACK_CEILING_DB,
        ).with_eq(
            EqAdjustment(EqFilterType.LOWSHELF, 35.0, -1.5, 0.7),
            EqAdjustment(EqFilterType.PEAK, 120.0, -2.0, 1.2),
        )
    elif feedback is FeedbackType.MUDDY:
        adjusted = replace(
            adjusted, exciter_amount=min(0.12, adjusted.exciter_amount + 0.05)
        ).with_eq(
            EqAdjustment(EqFilterType.PEAK, 250.0, -3.0, 1.5),
            EqAdjustment(EqFilterType.HIGHSHELF, 8_000.0, 2.0, 0.7),
        )
    elif feedback is FeedbackType.HARSH:
        adjusted = replace(
            adjusted, exciter_amount=max(0.0, adjusted.exciter_amount - 0.05)
        ).with_eq(EqAdjustment(EqFilterType.PEAK, 4_000.0, -2.5, 2.0))
    elif feedback is FeedbackType.VOCALS_BURIED:
        adjusted = replace(
            adjusted, width_amount=max(1.0, adjusted.width_amount - 0.2)
        ).with_eq(EqAdjustment(EqFilterType.PEAK, 1_500.0, 2.0, 1.0))
    elif feedback is FeedbackType.WEAK_KICK:
        adjusted = replace(
            adjusted, low_contour_amount=min(0.8, adjusted.low_contour_amount + 0.3)
        ).with_eq(EqAdjustment(EqFilterType.PEAK, 60.0, 2.0, 1.0))
    elif feedback is FeedbackType.BOOMY:
        adjusted = replace(
            adjusted, low_contour_amount=max(0.0, adjusted.low_contour_amount - 0.3)
        ).with_eq(EqAdjustment(EqFilterType.PEAK, 120.0, -3.0, 1.5))
    elif feedback is FeedbackType.THIN:
        adjusted = replace(adjusted, tube_drive_amount=min(2.0, adjusted.tube_drive_amount + 1.0))
    elif feedback is FeedbackType.NARROW:
        adjusted = replace(
            adjusted,
            width_amount=min(1.4, adjusted.width_amount + 0.3),
            exciter_amount=min(0.12, adjusted.exciter_amount + 0.05),
        )
    elif feedback is FeedbackType.SQUASHED:
        adjusted = _bump_target(adjusted, louder=False, tuning=tuning)
        adjusted = replace(
            adjusted,
            tube_drive_amount=max(0.0, adjusted.tube_drive_amount - 0.5),
            exciter_amount=max(0.0, adjusted.exciter_amount - 0.02),
            limiter_ceiling_db=SAFE_FEEDBACK_CEILING_DB,
        )
    elif feedback is FeedbackType.NOT_LOUD:
        adjusted = _bump_target(adjusted, louder=True, tuning=tuning)
        adjusted = replace(
            adjusted,
            limiter_ceiling_db=min(adjusted.limiter_ceiling_db, SAFE_FEEDBACK_CEILING_DB),
        )
    return adjusted
