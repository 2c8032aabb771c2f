import pytest

from intent_master.decision import (
    DEFAULT_DECISION,
    Decision,
    HighFreqTreatment,
    KickSafety,
    SaturationNeed,
    StereoIntent,
    TransientHandling,
    decision_from_text,
    extract_decision_payload,
    normalize_decision,
    reconcile_decisions,
)


@pytest.mark.parametrize("raw", [None, "", "danger", 42, [1, 2], {"kickSafety": None}, {}])
def test_normalize_decision_is_total(raw) -> None:
    decision = normalize_decision(raw)

    assert isinstance(decision.kick_safety, KickSafety)
    assert isinstance(decision.saturation_need, SaturationNeed)
    assert isinstance(decision.transient_handling, TransientHandling)
    assert isinstance(decision.high_freq_treatment, HighFreqTreatment)
    assert isinstance(decision.stereo_intent, StereoIntent)
    assert 0.0 <= decision.confidence <= 1.0


def test_normalize_decision_repairs_fields_independently() -> None:
    decision = normalize_decision(
        {
            "kickSafety": "DANGER",
            "saturationNeed": "extreme",
            "transientHandling": 3,
            "highFreqTreatment": "lift",
            "stereoIntent": "monoSafe",
            "confidence": "high",
        }
    )

    assert decision.kick_safety is KickSafety.DANGER
    assert decision.saturation_need is DEFAULT_DECISION.saturation_need
    assert decision.transient_handling is DEFAULT_DECISION.transient_handling
    assert decision.high_freq_treatment is HighFreqTreatment.LIFT
    assert decision.stereo_intent is StereoIntent.NARROW
    assert decision.confidence == 0.5


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(2.0, 1.0), (-0.3, 0.0), (0.8, 0.8), (True, 0.5), (float("nan"), 0.5), (None, 0.5)],
)
def test_normalize_decision_clamps_confidence(raw, expected) -> None:
    assert normalize_decision({"confidence": raw}).confidence == pytest.approx(expected)


def test_extract_decision_payload_strips_markdown_fence() -> None:
    text = '```json\n{"kickSafety": "safe", "confidence": 0.9}\n```'

    assert extract_decision_payload(text) == {"kickSafety": "safe", "confidence": 0.9}


def test_extract_decision_payload_finds_object_inside_prose() -> None:
    text = 'Here you go: {"stereoIntent": "wide"} hope that helps'

    assert extract_decision_payload(text) == {"stereoIntent": "wide"}


@pytest.mark.parametrize("text", ["", "   ", "not json", "{broken", "[1, 2]", None])
def test_extract_decision_payload_returns_none_for_unusable_text(text) -> None:
    assert extract_decision_payload(text) is None


def test_decision_from_malformed_text_is_default() -> None:
    assert decision_from_text("{oops") == DEFAULT_DECISION


@pytest.mark.parametrize(
    "decision",
    [
        DEFAULT_DECISION,
        Decision(KickSafety.DANGER, SaturationNeed.HEAVY, TransientHandling.CONTROL, HighFreqTreatment.LIFT, StereoIntent.WIDE, 0.9),
        Decision(KickSafety.SAFE, SaturationNeed.NONE, TransientHandling.PRESERVE, HighFreqTreatment.RESTRAIN, StereoIntent.NARROW, 0.0),
    ],
)
def test_reconcile_with_itself_is_identity(decision: Decision) -> None:
    assert reconcile_decisions(decision, decision) == decision


def test_reconcile_weights_by_confidence() -> None:
    confident = Decision(saturation_need=SaturationNeed.NONE, confidence=0.9)
    unsure = Decision(saturation_need=SaturationNeed.HEAVY, confidence=0.1)

    merged = reconcile_decisions(confident, unsure)

    assert merged.saturation_need is SaturationNeed.NONE
    assert merged.confidence == pytest.approx(0.5)


def test_reconcile_meets_in_the_middle_on_equal_confidence() -> None:
    a = Decision(kick_safety=KickSafety.SAFE, confidence=0.6)
    b = Decision(kick_safety=KickSafety.DANGER, confidence=0.6)

    assert reconcile_decisions(a, b).kick_safety is KickSafety.BORDERLINE


def test_reconcile_half_way_tie_goes_to_first_on_equal_confidence() -> None:
    a = Decision(saturation_need=SaturationNeed.NONE, confidence=0.5)
    b = Decision(saturation_need=SaturationNeed.LIGHT, confidence=0.5)

    assert reconcile_decisions(a, b).saturation_need is SaturationNeed.NONE
    assert reconcile_decisions(b, a).saturation_need is SaturationNeed.LIGHT


def test_reconcile_handles_zero_confidence() -> None:
    a = Decision(stereo_intent=StereoIntent.NARROW, confidence=0.0)
    b = Decision(stereo_intent=StereoIntent.WIDE, confidence=0.0)

    merged = reconcile_decisions(a, b)

    assert merged.stereo_intent is StereoIntent.BALANCED
    assert merged.confidence == 0.0


def test_decision_as_dict_uses_wire_keys() -> None:
    assert DEFAULT_DECISION.as_dict() == {
        "kickSafety": "borderline",
        "saturationNeed": "light",
        "transientHandling": "soften",
        "highFreqTreatment": "polish",
        "stereoIntent": "balanced",
        "confidence": 0.5,
    }
