"""Scene intent schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from character_library.constants import EmotionalTone, SceneCategory


class CompositionFlags(BaseModel):
    model_config = ConfigDict(frozen=True)

    requires_eye_contact: bool = False
    requires_profile: bool = False
    requires_full_body: bool = False
    requires_hands_detail: bool = False


class CameraPreferences(BaseModel):
    """1-10 levels steering distance, angle variety and crop tightness."""

    model_config = ConfigDict(frozen=True)

    intimacy_level: int = Field(default=5, ge=1, le=10)
    dynamism_level: int = Field(default=5, ge=1, le=10)
    emotional_intensity: int = Field(default=5, ge=1, le=10)


class SceneIntent(BaseModel):
    """Structured interpretation of a free-text depiction request. Never persisted."""

    model_config = ConfigDict(frozen=True)

    scene_category: SceneCategory = SceneCategory.DIALOGUE
    emotional_tone: EmotionalTone = EmotionalTone.NEUTRAL
    preferred_focal_lengths: tuple[int, ...] = ()
    preferred_crops: tuple[str, ...] = ()
    preferred_angle_buckets: tuple[float, ...] = ()
    composition: CompositionFlags = Field(default_factory=CompositionFlags)
    camera: CameraPreferences = Field(default_factory=CameraPreferences)
    confidence: float = Field(default=50.0, ge=0, le=100)
    keywords: tuple[str, ...] = ()
    reasoning: str = ""
