"""Reference asset schemas."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from character_library.constants import CROP_CLASSES, FOCAL_LENGTH_CLASSES_MM, SceneCategory, SourceKind
from character_library.schemas.intent import SceneIntent


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ReferenceAsset(BaseModel):
    """A curated or previously generated reference image for one character.

    Assets are immutable: a new generation attempt produces a new asset and
    never rewrites the scores of an existing one.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    owning_character_id: str = Field(min_length=1)
    source_kind: SourceKind = SourceKind.GENERATED

    # Shot metadata
    shot_category: SceneCategory | None = None
    focal_length_mm: int | None = Field(default=None, gt=0)
    crop: str | None = None
    camera_angle_deg: float | None = Field(default=None, ge=-180, le=180)
    gaze: str | None = None
    expression: str | None = None
    free_tags: tuple[str, ...] = ()

    # Scores (populated after validation)
    quality_score: float | None = Field(default=None, ge=0, le=100)
    consistency_score: float | None = Field(default=None, ge=0, le=100)

    image_url: str | None = None
    embedding_ref: str | None = None  # asset id known to the embedding service
    generation_prompt: str | None = None
    validation_notes: str | None = None
    created_at: str = Field(default_factory=utc_now_iso)

    @field_validator("free_tags", mode="before")
    @classmethod
    def normalize_tags(cls, value: Any) -> tuple[str, ...]:
        if value is None:
            return ()
        if isinstance(value, str):
            value = value.split(",")
        tags = {str(tag).strip().lower() for tag in value}
        return tuple(sorted(tag for tag in tags if tag))

    @field_validator("crop", "gaze", "expression", mode="before")
    @classmethod
    def normalize_label(cls, value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip().lower()
        return text or None

    @field_validator("crop")
    @classmethod
    def validate_crop(cls, value: str | None) -> str | None:
        if value is not None and value not in CROP_CLASSES:
            raise ValueError(f"crop must be one of {CROP_CLASSES}, got {value!r}")
        return value

    @field_validator("focal_length_mm")
    @classmethod
    def validate_focal_length(cls, value: int | None) -> int | None:
        if value is not None and value not in FOCAL_LENGTH_CLASSES_MM:
            raise ValueError(f"focal_length_mm must be one of {FOCAL_LENGTH_CLASSES_MM}, got {value}")
        return value

    @property
    def is_primary(self) -> bool:
        return self.source_kind == SourceKind.PRIMARY

    @property
    def baseline_ref(self) -> str:
        return self.embedding_ref or self.id


class SubScores(BaseModel):
    scene_type: float = Field(ge=0, le=100)
    focal_length: float = Field(ge=0, le=100)
    crop: float = Field(ge=0, le=100)
    angle: float = Field(ge=0, le=100)
    emotional_tone: float = Field(ge=0, le=100)
    composition: float = Field(ge=0, le=100)
    quality_prior: float = Field(ge=0, le=100)


class ScoredCandidate(BaseModel):
    asset: ReferenceAsset
    sub_scores: SubScores
    total_score: float = Field(ge=0, le=100)
    rank: int = Field(ge=1)


class SearchMetrics(BaseModel):
    total_images_evaluated: int = 0
    average_score: float = 0.0
    selection_confidence: float = Field(default=0.0, ge=0, le=1)


class ReferenceSearchResult(BaseModel):
    """Best reference for a scene, with alternatives and the reasoning behind it."""

    success: bool
    selected: ScoredCandidate | None = None
    reasoning: str = ""
    alternatives: list[ScoredCandidate] = Field(default_factory=list)
    intent: SceneIntent | None = None
    metrics: SearchMetrics = Field(default_factory=SearchMetrics)
    error: str | None = None
