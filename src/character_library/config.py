"""Runtime configuration loading."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from character_library.constants import DEFAULT_RETRY_BUDGET
from character_library.errors import ConfigError
from character_library.schemas.requests import Thresholds


class ScoringWeights(BaseModel):
    scene_type: float = Field(default=0.25, ge=0)
    focal_length: float = Field(default=0.20, ge=0)
    crop: float = Field(default=0.20, ge=0)
    angle: float = Field(default=0.15, ge=0)
    emotional_tone: float = Field(default=0.10, ge=0)
    composition: float = Field(default=0.05, ge=0)
    quality_prior: float = Field(default=0.05, ge=0)

    @model_validator(mode="after")
    def validate_sum(self) -> "ScoringWeights":
        total = sum(self.model_dump().values())
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"scoring weights must sum to 1.0 (got {total:.4f}).")
        return self


class RankingConfig(BaseModel):
    """Numeric literals used by the candidate ranker."""

    weights: ScoringWeights = Field(default_factory=ScoringWeights)

    full_credit: float = 100.0
    neutral_score: float = 50.0

    scene_mismatch_score: float = 40.0

    focal_decay_per_mm: float = 2.0
    focal_floor: float = 20.0

    crop_similar_score: float = 70.0
    crop_mismatch_score: float = 30.0
    crop_similarity: dict[str, list[str]] = Field(
        default_factory=lambda: {
            "cu": ["mcu"],
            "mcu": ["cu", "3q"],
            "3q": ["mcu", "full"],
            "full": ["3q"],
            "hands": [],
        }
    )

    angle_decay_per_deg: float = 0.5
    angle_floor: float = 20.0
    profile_min_abs_angle_deg: float = 75.0

    tone_mismatch_score: float = 45.0

    composition_eye_contact_bonus: float = 15.0
    composition_no_eye_contact_bonus: float = 10.0
    composition_profile_bonus: float = 15.0
    composition_full_body_bonus: float = 15.0
    composition_hands_bonus: float = 20.0

    quality_prior_default: float = 75.0

    max_alternatives: int = Field(default=3, ge=0)


class RetryConfig(BaseModel):
    retry_budget: int = Field(default=DEFAULT_RETRY_BUDGET, ge=1, le=20)
    call_timeout_s: float = Field(default=120.0, gt=0)


class ProviderSettings(BaseModel):
    fal_base_url: str = "https://fal.run"
    fal_text_to_image_model: str = "fal-ai/nano-banana"
    fal_image_to_image_model: str = "fal-ai/nano-banana/edit"
    fal_api_key_env: str = "FAL_KEY"

    dino_base_url: str = "https://dino.ft.tc"
    dino_api_key_env: str = "DINO_API_KEY"

    request_timeout_s: float = Field(default=60.0, gt=0)

    def fal_api_key(self) -> str:
        return os.environ.get(self.fal_api_key_env, "")

    def dino_api_key(self) -> str:
        return os.environ.get(self.dino_api_key_env, "")


class PipelineConfig(BaseModel):
    project_name: str = "character-library"
    ranking: RankingConfig = Field(default_factory=RankingConfig)
    thresholds: Thresholds = Field(default_factory=Thresholds)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    providers: ProviderSettings = Field(default_factory=ProviderSettings)
    style: str = "character_production"
    default_tags: list[str] = Field(default_factory=lambda: ["smart generation"])


def load_config(config_path: Path) -> PipelineConfig:
    """Load and validate YAML config."""
    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read config {config_path}: {exc}") from exc
    try:
        return PipelineConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config {config_path}: {exc}") from exc


def config_dict_for_hash(config: PipelineConfig) -> dict[str, Any]:
    """Stable representation used for config hashing."""
    return config.model_dump(mode="json")
