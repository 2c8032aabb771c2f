import pytest

from intent_master.correction import CorrectionTuning
from intent_master.feedback import FeedbackType, apply_feedback_adjustment, gentle_loudness_step
from intent_master.params import EqAdjustment, EqFilterType, Params


def _params(**overrides) -> Params:
    values = dict(
        gain_db=1.0,
        limiter_ceiling_db=-0.3,
        target_loudness=-8.0,
        eq_adjustments=(EqAdjustment(EqFilterType.PEAK, 300.0, -1.0, 1.2),),
        tube_drive_amount=2.0,
        exciter_amount=0.08,
        low_contour_amount=0.6,
        width_amount=1.1,
    )
    values.update(overrides)
    return Params(**values)


def test_distortion_backs_off_drive_and_loudness() -> None:
    adjusted = apply_feedback_adjustment(_params(), FeedbackType.DISTORTION)

    assert adjusted.target_loudness == pytest.approx(-8.42)
    assert adjusted.tube_drive_amount == pytest.approx(1.0)
    assert adjusted.exciter_amount == pytest.approx(0.05)
    assert adjusted.low_contour_amount == pytest.approx(0.4)
    assert adjusted.limiter_ceiling_db == -1.0
    assert adjusted.eq_adjustments[0] == EqAdjustment(EqFilterType.PEAK, 300.0, -1.0, 1.2)
    assert [(eq.filter_type, eq.frequency_hz) for eq in adjusted.eq_adjustments[1:]] == [
        (EqFilterType.LOWSHELF, 35.0),
        (EqFilterType.PEAK, 120.0),
    ]


def test_not_loud_raises_target_gently_on_hot_masters() -> None:
    adjusted = apply_feedback_adjustment(_params(), FeedbackType.NOT_LOUD)

    assert adjusted.target_loudness == pytest.approx(-7.7375, abs=0.01)
    assert adjusted.limiter_ceiling_db == -1.0
    assert adjusted.eq_adjustments == _params().eq_adjustments


def test_not_loud_never_exceeds_loudest_target() -> None:
    adjusted = apply_feedback_adjustment(_params(target_loudness=-5.1), FeedbackType.NOT_LOUD)

    assert adjusted.target_loudness == pytest.approx(-5.0)


def test_not_loud_keeps_an_already_lower_ceiling() -> None:
    adjusted = apply_feedback_adjustment(_params(limiter_ceiling_db=-2.0), FeedbackType.NOT_LOUD)

    assert adjusted.limiter_ceiling_db == -2.0


def test_weak_kick_caps_contour_and_appends_low_boost() -> None:
    adjusted = apply_feedback_adjustment(_params(), FeedbackType.WEAK_KICK)

    assert adjusted.low_contour_amount == pytest.approx(0.8)
    assert adjusted.eq_adjustments[-1] == EqAdjustment(EqFilterType.PEAK, 60.0, 2.0, 1.0)


def test_vocals_buried_never_narrows_below_unity() -> None:
    adjusted = apply_feedback_adjustment(_params(width_amount=1.05), FeedbackType.VOCALS_BURIED)

    assert adjusted.width_amount == 1.0


@pytest.mark.parametrize("feedback", list(FeedbackType))
def test_every_feedback_keeps_amounts_in_range(feedback: FeedbackType) -> None:
    adjusted = apply_feedback_adjustment(_params(), feedback)

    assert 0.0 <= adjusted.tube_drive_amount <= 2.0
    assert 0.0 <= adjusted.exciter_amount <= 0.12
    assert 0.0 <= adjusted.low_contour_amount <= 0.8
    assert 1.0 <= adjusted.width_amount <= 1.4
    assert -20.0 <= adjusted.target_loudness <= -5.0
    assert adjusted.gain_db == 1.0


def test_gentle_step_follows_correction_tolerance() -> None:
    loose = CorrectionTuning(loudness_tolerance_db=2.0)
    tight = CorrectionTuning(loudness_tolerance_db=0.5)

    assert gentle_loudness_step(-14.0, louder=True, tuning=loose) == pytest.approx(0.7)
    assert gentle_loudness_step(-14.0, louder=True, tuning=tight) == pytest.approx(0.2)
    assert gentle_loudness_step(-14.0, louder=False, tuning=loose) == pytest.approx(0.84)
    assert gentle_loudness_step(-19.9, louder=False, tuning=loose) == pytest.approx(0.1)
