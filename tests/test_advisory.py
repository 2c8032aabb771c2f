import asyncio
import json
from types import SimpleNamespace

import pytest
from openai import OpenAIError

from intent_master.advisory import (
    OpenAIAdvisoryOracle,
    oracles_from_config,
    resolve_api_key,
    resolve_decision,
)
from intent_master.analysis import AnalysisSnapshot, BandLevel
from intent_master.decision import KickSafety, SaturationNeed, StereoIntent, reconcile_decisions, normalize_decision
from intent_master.errors import AdvisoryUnavailable
from intent_master.prompts import DECISION_CONTRACT, build_consensus_prompt, build_initial_prompt
from intent_master.specifics import MasteringTarget, resolve_specifics
from intent_master.utils.config import OracleConfig

SPECIFICS = resolve_specifics(MasteringTarget.BEATPORT)

INITIAL = {"kickSafety": "danger", "saturationNeed": "light", "stereoIntent": "narrow", "confidence": 0.8}
REVIEW = {"kickSafety": "safe", "saturationNeed": "heavy", "stereoIntent": "wide", "confidence": 0.4}
CONSENSUS = {"kickSafety": "borderline", "saturationNeed": "moderate", "stereoIntent": "balanced", "confidence": 0.9}


class ScriptedOracle:
    """Replays canned replies; an exception in the script is raised instead."""

    def __init__(self, *replies) -> None:
        self.replies = list(replies)
        self.prompts: list[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def _snapshot() -> AnalysisSnapshot:
    return AnalysisSnapshot(
        loudness=-11.0,
        true_peak_db=-0.9,
        crest_factor=9.0,
        stereo_width=35.0,
        phase_correlation=0.6,
        distortion_percent=0.2,
        noise_floor_db=-75.0,
        bands=(BandLevel("20-60", -17.0), BandLevel("60-250", -13.0)),
    )


def test_initial_prompt_carries_analysis_and_contract() -> None:
    prompt = build_initial_prompt(_snapshot(), SPECIFICS)

    assert "integratedLoudness=-11.000000" in prompt
    assert "subBass=-17.000000" in prompt
    assert "highMid=-20.000000" in prompt
    assert SPECIFICS.label in prompt
    assert prompt.endswith(DECISION_CONTRACT)
    assert '"heavy"' in DECISION_CONTRACT


def test_consensus_prompt_embeds_both_decisions() -> None:
    initial = normalize_decision(INITIAL)
    review = normalize_decision(REVIEW)

    prompt = build_consensus_prompt(SPECIFICS, initial, review)

    assert json.dumps(initial.as_dict(), sort_keys=True) in prompt
    assert json.dumps(review.as_dict(), sort_keys=True) in prompt


def test_single_oracle_decides_alone() -> None:
    primary = ScriptedOracle("```json\n" + json.dumps(INITIAL) + "\n```")

    resolution = asyncio.run(resolve_decision(_snapshot(), SPECIFICS, primary))

    assert resolution.steps == ("initial",)
    assert resolution.decision.kick_safety is KickSafety.DANGER
    assert resolution.decision.stereo_intent is StereoIntent.NARROW


def test_full_protocol_reconciles_consensus_with_review() -> None:
    primary = ScriptedOracle(json.dumps(INITIAL), json.dumps(CONSENSUS))
    reviewer = ScriptedOracle(json.dumps(REVIEW))

    resolution = asyncio.run(resolve_decision(_snapshot(), SPECIFICS, primary, reviewer))

    expected = reconcile_decisions(normalize_decision(CONSENSUS), normalize_decision(REVIEW))
    assert resolution.steps == ("initial", "review", "consensus")
    assert resolution.decision == expected
    assert resolution.raw_text == json.dumps(CONSENSUS)
    assert len(primary.prompts) == 2
    assert "Analyzer decision" in reviewer.prompts[0]


def test_reviewer_failure_falls_back_to_initial(caplog) -> None:
    primary = ScriptedOracle(json.dumps(INITIAL))
    reviewer = ScriptedOracle(AdvisoryUnavailable("reviewer offline"))

    with caplog.at_level("WARNING"):
        resolution = asyncio.run(resolve_decision(_snapshot(), SPECIFICS, primary, reviewer))

    assert resolution.steps == ("initial",)
    assert resolution.decision == normalize_decision(INITIAL)
    assert any(record.getMessage() == "advisory_review_failed" for record in caplog.records)


def test_consensus_failure_reconciles_locally() -> None:
    primary = ScriptedOracle(json.dumps(INITIAL), AdvisoryUnavailable("quota"))
    reviewer = ScriptedOracle(json.dumps(REVIEW))

    resolution = asyncio.run(resolve_decision(_snapshot(), SPECIFICS, primary, reviewer))

    assert resolution.steps == ("initial", "review", "local_reconcile")
    assert resolution.decision == reconcile_decisions(normalize_decision(INITIAL), normalize_decision(REVIEW))


def test_primary_failure_propagates() -> None:
    primary = ScriptedOracle(AdvisoryUnavailable("down"))

    with pytest.raises(AdvisoryUnavailable):
        asyncio.run(resolve_decision(_snapshot(), SPECIFICS, primary, ScriptedOracle()))


def test_garbage_reply_still_yields_valid_decision() -> None:
    primary = ScriptedOracle("I think it sounds great!")

    resolution = asyncio.run(resolve_decision(_snapshot(), SPECIFICS, primary))

    assert resolution.decision.saturation_need is SaturationNeed.LIGHT
    assert resolution.decision.confidence == 0.5


def test_resolve_api_key_prefers_argument(monkeypatch) -> None:
    monkeypatch.setenv("MASTERING_KEY", " env-key ")

    assert resolve_api_key(" explicit ", "MASTERING_KEY") == "explicit"
    assert resolve_api_key(None, "MASTERING_KEY") == "env-key"
    monkeypatch.delenv("MASTERING_KEY")
    assert resolve_api_key(None, "MASTERING_KEY") is None


def test_openai_oracle_without_key_is_unavailable(monkeypatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    oracle = OpenAIAdvisoryOracle(model="gpt-4o")

    with pytest.raises(AdvisoryUnavailable, match="OPENAI_API_KEY"):
        asyncio.run(oracle.complete("prompt"))


def _fake_client(create):
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


def test_openai_oracle_requests_json_object() -> None:
    captured = {}

    async def create(**kwargs):
        captured.update(kwargs)
        message = SimpleNamespace(content='  {"kickSafety": "safe"}  ')
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])

    oracle = OpenAIAdvisoryOracle(model="gpt-4o", api_key="test")
    oracle._client = _fake_client(create)

    reply = asyncio.run(oracle.complete("hello"))

    assert reply == '{"kickSafety": "safe"}'
    assert captured["response_format"] == {"type": "json_object"}
    assert captured["messages"] == [{"role": "user", "content": "hello"}]
    assert captured["temperature"] == 0.2


def test_openai_oracle_wraps_sdk_errors() -> None:
    async def create(**kwargs):
        raise OpenAIError("connection reset")

    oracle = OpenAIAdvisoryOracle(model="gpt-4o", api_key="test")
    oracle._client = _fake_client(create)

    with pytest.raises(AdvisoryUnavailable) as exc_info:
        asyncio.run(oracle.complete("hello"))

    assert isinstance(exc_info.value.__cause__, OpenAIError)


def test_openai_oracle_rejects_empty_reply() -> None:
    async def create(**kwargs):
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content="   "))])

    oracle = OpenAIAdvisoryOracle(model="gpt-4o", api_key="test")
    oracle._client = _fake_client(create)

    with pytest.raises(AdvisoryUnavailable, match="empty"):
        asyncio.run(oracle.complete("hello"))


def test_oracles_from_config() -> None:
    assert oracles_from_config(OracleConfig()) == (None, None)

    primary, reviewer = oracles_from_config(
        OracleConfig(enabled=True, primary_model="gpt-4o", reviewer_model="gpt-4o-mini")
    )

    assert primary.model == "gpt-4o"
    assert reviewer is not None and reviewer.model == "gpt-4o-mini"
