"""Project constants."""

from __future__ import annotations

from enum import StrEnum


class SceneCategory(StrEnum):
    DIALOGUE = "dialogue"
    ACTION = "action"
    EMOTIONAL = "emotional"
    ESTABLISHING = "establishing"
    TRANSITION = "transition"


class EmotionalTone(StrEnum):
    NEUTRAL = "neutral"
    TENSE = "tense"
    INTIMATE = "intimate"
    DRAMATIC = "dramatic"
    CONTEMPLATIVE = "contemplative"


class SourceKind(StrEnum):
    PRIMARY = "primary"
    CORE = "core"
    GENERATED = "generated"


class AttemptOutcome(StrEnum):
    SUCCESS = "success"
    QUALITY_FAIL = "quality_fail"
    CONSISTENCY_FAIL = "consistency_fail"
    PROVIDER_ERROR = "provider_error"
    VALIDATION_ERROR = "validation_error"
    STORE_ERROR = "store_error"


class SelectionStrategy(StrEnum):
    TOP_RANKED = "top_ranked"
    PRIMARY_FALLBACK = "primary_fallback"
    CYCLE = "cycle"


class GenerationState(StrEnum):
    PENDING = "PENDING"
    RANKING = "RANKING"
    ATTEMPTING = "ATTEMPTING"
    ACCEPTED = "ACCEPTED"
    EXHAUSTED = "EXHAUSTED"
    ABORTED = "ABORTED"


class TerminalState(StrEnum):
    ACCEPTED = "accepted"
    EXHAUSTED = "exhausted"
    ABORTED = "aborted"


TERMINAL_STATES = {
    GenerationState.ACCEPTED: TerminalState.ACCEPTED,
    GenerationState.EXHAUSTED: TerminalState.EXHAUSTED,
    GenerationState.ABORTED: TerminalState.ABORTED,
}


CROP_CLASSES = ("cu", "mcu", "3q", "full", "hands")

FOCAL_LENGTH_CLASSES_MM = (24, 35, 50, 85, 135)

GAZE_TO_CAMERA = "to_camera"

DEFAULT_QUALITY_THRESHOLD = 70.0
DEFAULT_CONSISTENCY_THRESHOLD = 85.0
DEFAULT_RETRY_BUDGET = 3
