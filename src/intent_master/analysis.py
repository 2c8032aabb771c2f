"""Measured acoustic profile consumed by every downstream stage."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping

SUB_BASS_BAND = "20-60"
BASS_BAND = "60-250"
LOW_MID_BAND = "250-1k"
MID_BAND = "1k-4k"
HIGH_MID_BAND = "4k-8k"
HIGH_BAND = "8k-20k"

CANONICAL_BANDS: tuple[str, ...] = (
    SUB_BASS_BAND,
    BASS_BAND,
    LOW_MID_BAND,
    MID_BAND,
    HIGH_MID_BAND,
    HIGH_BAND,
)

MISSING_BAND_LEVEL_DB = -20.0


@dataclass(frozen=True, slots=True)
class BandLevel:
    """Average level of one named frequency band in dB."""

    name: str
    level_db: float


@dataclass(frozen=True, slots=True)
class WindowSnapshot:
    """Loudness and peak of one timestamped section of the track."""

    start_seconds: float
    loudness: float
    true_peak_db: float


@dataclass(frozen=True, slots=True)
class AnalysisSnapshot:
    """Analysis metrics captured once per track by the analysis collaborator."""

    loudness: float
    true_peak_db: float
    crest_factor: float
    stereo_width: float
    phase_correlation: float
    distortion_percent: float
    noise_floor_db: float
    bands: tuple[BandLevel, ...] = tuple()
    dynamic_range: float | None = None
    low_end_crest_db: float | None = None
    sub_energy_ratio: float | None = None
    low_end_to_low_mid_ratio: float | None = None
    bass_mono_compatibility: float | None = None
    transient_density: float | None = None
    distortion_risk_score: float | None = None
    windows: tuple[WindowSnapshot, ...] = tuple()

    def __post_init__(self) -> None:
        names = [band.name for band in self.bands]
        if len(names) != len(set(names)):
            raise ValueError(f"Band names must be unique: {names}")

    def band_level(self, name: str) -> float:
        for band in self.bands:
            if band.name == name:
                return band.level_db
        return MISSING_BAND_LEVEL_DB

    @property
    def effective_dynamic_range(self) -> float:
        if self.dynamic_range is None:
            return self.crest_factor
        return self.dynamic_range

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "AnalysisSnapshot":
        """Build a snapshot from a deserialized record with camelCase or snake_case keys."""

        def pick(*keys: str, default: float | None = None) -> float | None:
            for key in keys:
                value = data.get(key)
                if isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value):
                    return float(value)
            return default

        raw_bands = data.get("bands", data.get("frequencyData", []))
        bands: list[BandLevel] = []
        if isinstance(raw_bands, Mapping):
            for name, level in raw_bands.items():
                bands.append(BandLevel(name=str(name), level_db=float(level)))
        elif isinstance(raw_bands, list):
            for item in raw_bands:
                if not isinstance(item, Mapping) or "name" not in item:
                    continue
                level = item.get("level_db", item.get("level", MISSING_BAND_LEVEL_DB))
                bands.append(BandLevel(name=str(item["name"]), level_db=float(level)))

        windows: list[WindowSnapshot] = []
        for item in data.get("windows", []) or []:
            if not isinstance(item, Mapping):
                continue
            windows.append(
                WindowSnapshot(
                    start_seconds=float(item.get("start_seconds", item.get("startSeconds", 0.0))),
                    loudness=float(item.get("loudness", item.get("lufs", -70.0))),
                    true_peak_db=float(item.get("true_peak_db", item.get("truePeak", -70.0))),
                )
            )

        return cls(
            loudness=pick("loudness", "lufs", default=-14.0),
            true_peak_db=pick("true_peak_db", "truePeak", default=-1.0),
            crest_factor=max(0.0, pick("crest_factor", "crestFactor", default=10.0)),
            stereo_width=pick("stereo_width", "stereoWidth", default=50.0),
            phase_correlation=pick("phase_correlation", "phaseCorrelation", default=1.0),
            distortion_percent=max(0.0, pick("distortion_percent", "distortionPercent", default=0.0)),
            noise_floor_db=pick("noise_floor_db", "noiseFloorDb", default=-90.0),
            bands=tuple(bands),
            dynamic_range=pick("dynamic_range", "dynamicRange"),
            low_end_crest_db=pick("low_end_crest_db", "lowEndCrestDb"),
            sub_energy_ratio=pick("sub_energy_ratio", "subEnergyRatio"),
            low_end_to_low_mid_ratio=pick("low_end_to_low_mid_ratio", "lowEndToLowMidRatio"),
            bass_mono_compatibility=pick("bass_mono_compatibility", "bassMonoCompatibility"),
            transient_density=pick("transient_density", "transientDensity"),
            distortion_risk_score=pick("distortion_risk_score", "distortionRiskScore"),
            windows=tuple(windows),
        )
