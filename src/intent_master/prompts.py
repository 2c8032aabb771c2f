"""Prompt text sent to advisory oracles."""

from __future__ import annotations

import json

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
from .specifics import Specifics, enum_values


def _choices(enum_cls) -> str:
    return " | ".join(f'"{value}"' for value in enum_values(enum_cls))


DECISION_CONTRACT = f"""Return ONLY valid JSON with this exact shape:
{{
  "kickSafety": {_choices(KickSafety)},
  "saturationNeed": {_choices(SaturationNeed)},
  "transientHandling": {_choices(TransientHandling)},
  "highFreqTreatment": {_choices(HighFreqTreatment)},
  "stereoIntent": {_choices(StereoIntent)},
  "confidence": number between 0 and 1
}}
Do not output dB, Hz, or ms."""


def format_snapshot(snapshot: AnalysisSnapshot) -> str:
    """Render the measurements as ``key=value`` lines."""

    lines = [
        f"integratedLoudness={snapshot.loudness:.6f}",
        f"truePeak={snapshot.true_peak_db:.6f}",
        f"crestFactor={snapshot.crest_factor:.6f}",
        f"dynamicRange={snapshot.effective_dynamic_range:.6f}",
        f"stereoWidth={snapshot.stereo_width:.6f}",
        f"phaseCorrelation={snapshot.phase_correlation:.6f}",
        f"distortionPercent={snapshot.distortion_percent:.6f}",
        f"subBass={snapshot.band_level(SUB_BASS_BAND):.6f}",
        f"bass={snapshot.band_level(BASS_BAND):.6f}",
        f"lowMid={snapshot.band_level(LOW_MID_BAND):.6f}",
        f"mid={snapshot.band_level(MID_BAND):.6f}",
        f"highMid={snapshot.band_level(HIGH_MID_BAND):.6f}",
        f"high={snapshot.band_level(HIGH_BAND):.6f}",
    ]
    return "\n".join(lines)


def _platform_header(specifics: Specifics) -> str:
    return f"Platform: {specifics.label}\nContext: {specifics.context_text}"


def _decision_json(decision: Decision) -> str:
    return json.dumps(decision.as_dict(), sort_keys=True)


def build_initial_prompt(snapshot: AnalysisSnapshot, specifics: Specifics) -> str:
    return "\n\n".join(
        [
            "You are the structural analyzer for mastering decisions.\n"
            "Focus on tonal balance, dynamic distribution, and platform suitability.\n"
            + _platform_header(specifics),
            "Analysis:\n" + format_snapshot(snapshot),
            DECISION_CONTRACT,
        ]
    )


def build_review_prompt(snapshot: AnalysisSnapshot, specifics: Specifics, initial: Decision) -> str:
    return "\n\n".join(
        [
            "You are the perceptual reviewer for mastering decisions.\n"
            "Review the analyzer's decision, challenge weak assumptions, and propose corrected intent if needed.\n"
            + _platform_header(specifics),
            "Analysis:\n" + format_snapshot(snapshot),
            "Analyzer decision:\n" + _decision_json(initial),
            DECISION_CONTRACT,
        ]
    )


def build_consensus_prompt(specifics: Specifics, initial: Decision, review: Decision) -> str:
    return "\n\n".join(
        [
            "Resolve disagreements between two assessments and output the final decision only.\n"
            + _platform_header(specifics),
            "Analyzer decision:\n" + _decision_json(initial),
            "Reviewer decision:\n" + _decision_json(review),
            DECISION_CONTRACT,
        ]
    )
