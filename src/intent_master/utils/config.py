from __future__ import annotations

from pathlib import Path

import json

from pydantic import BaseModel, Field, model_validator

from intent_master.correction import CorrectionTuning
from intent_master.specifics import MasteringTarget


class SelfCorrectionConfig(BaseModel):
    loudness_tolerance_db: float = Field(1.0, gt=0.0, le=3.0)
    max_gain_step_db: float | None = Field(None, gt=0.0, le=3.0)
    max_iterations: int = Field(12, ge=1, le=50)
    peak_margin_db: float = Field(0.1, ge=0.0, le=1.0)
    max_peak_cut_db: float | None = Field(None, gt=0.0)
    max_total_adjustment_db: float = Field(6.0, gt=0.0, le=8.0)
    window_seconds: float = Field(10.0, gt=0.5, le=60.0)
    back_half_points: int = Field(3, ge=0, le=16)

    def to_tuning(self) -> CorrectionTuning:
        return CorrectionTuning(**self.model_dump())


class OracleConfig(BaseModel):
    enabled: bool = False
    primary_model: str = "gpt-4o"
    reviewer_model: str | None = None
    api_key_env: str = "OPENAI_API_KEY"
    base_url: str | None = None
    temperature: float = Field(0.2, ge=0.0, le=2.0)

    @model_validator(mode="after")
    def _validate_models(self) -> "OracleConfig":
        if not self.primary_model.strip():
            raise ValueError("primary_model must not be empty.")
        if self.reviewer_model is not None and not self.reviewer_model.strip():
            raise ValueError("reviewer_model must not be empty when provided.")
        return self


class MasteringConfig(BaseModel):
    target: MasteringTarget = MasteringTarget.SPOTIFY
    self_correction: SelfCorrectionConfig = Field(default_factory=SelfCorrectionConfig)
    oracle: OracleConfig = Field(default_factory=OracleConfig)


def load_mastering_config(path: Path) -> MasteringConfig:
    data = _load_config_data(path)
    return MasteringConfig.model_validate(data)


def _load_config_data(path: Path) -> dict:
    if path.suffix.lower() in {".yaml", ".yml"}:
        try:
            import yaml
        except ImportError as exc:
            raise ImportError("PyYAML is required to load YAML configs.") from exc

        with path.open("r", encoding="utf-8") as handle:
            return yaml.safe_load(handle) or {}

    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)
