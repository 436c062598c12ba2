"""Keyword-based scene intent classification.

Turns a free-text depiction request into a ``SceneIntent``: scene category,
emotional tone, preferred lenses/crops/camera angles and composition needs.
Everything here is a pure function of the input text.
"""

from __future__ import annotations

import re
from typing import Iterable

from character_library.constants import EmotionalTone, SceneCategory
from character_library.errors import ClassificationError
from character_library.schemas.intent import CameraPreferences, CompositionFlags, SceneIntent


STOPWORDS = frozenset(
    {
        "the", "and", "but", "for", "with", "are", "was", "were", "been", "being",
        "have", "has", "had", "does", "did", "will", "would", "could", "should",
        "may", "might", "can", "must", "shall",
    }
)

CATEGORY_KEYWORDS: dict[SceneCategory, tuple[str, ...]] = {
    SceneCategory.DIALOGUE: (
        "conversation", "talking", "speaking", "dialogue", "discussion", "chat",
        "words", "says", "tells", "asks", "responds", "replies",
    ),
    SceneCategory.ACTION: (
        "fight", "running", "chase", "movement", "action", "dynamic", "fast",
        "quick", "rush", "battle", "combat", "moves",
    ),
    SceneCategory.EMOTIONAL: (
        "crying", "sad", "happy", "angry", "emotional", "feeling", "reaction",
        "tears", "joy", "fear", "love", "hate", "pain",
    ),
    SceneCategory.ESTABLISHING: (
        "wide", "establishing", "location", "setting", "environment", "place",
        "room", "building", "landscape", "overview",
    ),
    SceneCategory.TRANSITION: (
        "walking", "moving", "transition", "between", "connecting", "goes",
        "leaves", "enters", "approaches", "departs",
    ),
}

TONE_KEYWORDS: dict[EmotionalTone, tuple[str, ...]] = {
    EmotionalTone.TENSE: (
        "tense", "nervous", "anxious", "worried", "stressed", "pressure",
        "conflict", "argument", "confrontation",
    ),
    EmotionalTone.INTIMATE: (
        "intimate", "close", "personal", "private", "quiet", "whisper", "gentle",
        "tender", "soft",
    ),
    EmotionalTone.DRAMATIC: (
        "dramatic", "intense", "powerful", "strong", "climax", "peak", "crucial",
        "critical", "important",
    ),
    EmotionalTone.CONTEMPLATIVE: (
        "thoughtful", "thinking", "contemplative", "reflective", "pondering",
        "considering", "wondering", "musing",
    ),
}

# A single unambiguous word that pins the category.
STRONG_CATEGORY_INDICATORS: dict[SceneCategory, tuple[str, ...]] = {
    SceneCategory.DIALOGUE: ("conversation", "talking", "dialogue"),
    SceneCategory.ACTION: ("action", "fight", "chase"),
    SceneCategory.EMOTIONAL: ("emotional", "crying", "feeling"),
    SceneCategory.ESTABLISHING: ("establishing", "wide", "location"),
    SceneCategory.TRANSITION: ("transition", "moving", "walking"),
}

CLOSE_UP_TRIGGERS = ("close", "intimate", "face", "expression", "eyes", "detail", "emotion")
FULL_BODY_TRIGGERS = ("full", "body", "movement", "action", "standing", "walking", "posture")
PROFILE_TRIGGERS = ("profile", "side", "silhouette", "contemplative", "thinking", "pondering")
HANDS_TRIGGERS = ("hands", "gesture", "touching", "holding", "props", "object", "pointing")
EYE_CONTACT_TRIGGERS = ("looking", "staring", "gazing", "eye", "contact", "direct")
BODY_COMPOSITION_TRIGGERS = ("standing", "walking", "posture", "movement", "full", "body")

INTENSITY_TRIGGERS = ("intense", "powerful", "strong", "dramatic")
QUIET_TRIGGERS = ("quiet", "gentle", "soft", "subtle")
FAST_TRIGGERS = ("fast", "quick", "rapid", "sudden")

# (focal lengths mm, crops, angle buckets deg) per scene category.
SHOT_TABLE: dict[SceneCategory, tuple[tuple[int, ...], tuple[str, ...], tuple[float, ...]]] = {
    SceneCategory.DIALOGUE: ((50, 85), ("cu", "mcu"), (0, -35, 35)),
    SceneCategory.ACTION: ((35, 50), ("full", "3q"), (-45, 0, 45)),
    SceneCategory.EMOTIONAL: ((85,), ("cu", "mcu"), (-25, 0, 25)),
    SceneCategory.ESTABLISHING: ((35,), ("full",), (0,)),
    SceneCategory.TRANSITION: ((35, 50), ("full", "3q"), (-35, 35)),
}

# Tones that replace the category defaults outright.
TONE_SHOT_OVERRIDES: dict[EmotionalTone, tuple[tuple[int, ...], tuple[str, ...], tuple[float, ...]]] = {
    EmotionalTone.INTIMATE: ((85,), ("cu",), (0, -15, 15)),
}

# Tones that only widen the angle buckets.
TONE_EXTRA_ANGLES: dict[EmotionalTone, tuple[float, ...]] = {
    EmotionalTone.DRAMATIC: (-15, 15),
}

# (intimacy, dynamism, emotional intensity)
CAMERA_TABLE: dict[SceneCategory, tuple[int, int, int]] = {
    SceneCategory.DIALOGUE: (7, 3, 6),
    SceneCategory.ACTION: (3, 9, 4),
    SceneCategory.EMOTIONAL: (8, 2, 9),
    SceneCategory.ESTABLISHING: (2, 4, 3),
    SceneCategory.TRANSITION: (4, 6, 4),
}

TONE_CAMERA_DELTAS: dict[EmotionalTone, tuple[int, int, int]] = {
    EmotionalTone.INTIMATE: (2, -2, 0),
    EmotionalTone.DRAMATIC: (0, 1, 2),
    EmotionalTone.TENSE: (0, 2, 1),
    EmotionalTone.CONTEMPLATIVE: (1, -3, 0),
    EmotionalTone.NEUTRAL: (0, 0, 0),
}

LENS_RATIONALE: dict[SceneCategory, str] = {
    SceneCategory.DIALOGUE: "Recommending 50mm and 85mm lenses for natural conversation perspective",
    SceneCategory.ACTION: "Recommending 35mm lens and wider shots for dynamic movement capture",
    SceneCategory.EMOTIONAL: "Recommending 85mm lens and close-ups for emotional intimacy",
    SceneCategory.ESTABLISHING: "Recommending 35mm lens and full body shots for context establishment",
    SceneCategory.TRANSITION: "Recommending varied angles and medium shots for movement continuity",
}

BASE_CONFIDENCE = 50.0
CONFIDENCE_PER_MATCH = 2.0
STRONG_INDICATOR_BONUS = 20.0
MAX_CONFIDENCE = 95.0

_NON_WORD = re.compile(r"[^\w\s]")


def tokenize(text: str) -> list[str]:
    """Lower-case word tokens without punctuation, stopwords or duplicates."""
    words = _NON_WORD.sub(" ", text.lower()).split()
    tokens: list[str] = []
    for word in words:
        if len(word) <= 2 or word in STOPWORDS or word in tokens:
            continue
        tokens.append(word)
    return tokens


def _token_matches(token: str, keyword: str) -> bool:
    return keyword in token or token in keyword


def matched_tokens(tokens: Iterable[str], keywords: Iterable[str]) -> list[str]:
    keywords = tuple(keywords)
    return [token for token in tokens if any(_token_matches(token, kw) for kw in keywords)]


def has_keywords(tokens: Iterable[str], keywords: Iterable[str]) -> bool:
    return bool(matched_tokens(tokens, keywords))


def _keyword_score(tokens: list[str], keywords: tuple[str, ...]) -> int:
    return sum(1 for kw in keywords if any(_token_matches(token, kw) for token in tokens))


def _pick_label(scores: dict, default):
    best = max(scores.values(), default=0)
    if best == 0:
        return default
    winners = [label for label, score in scores.items() if score == best]
    if len(winners) > 1:
        return default
    return winners[0]


def detect_scene_category(tokens: list[str]) -> SceneCategory:
    scores = {category: _keyword_score(tokens, kws) for category, kws in CATEGORY_KEYWORDS.items()}
    return _pick_label(scores, SceneCategory.DIALOGUE)


def detect_emotional_tone(tokens: list[str]) -> EmotionalTone:
    scores = {tone: _keyword_score(tokens, kws) for tone, kws in TONE_KEYWORDS.items()}
    return _pick_label(scores, EmotionalTone.NEUTRAL)


def _dedupe(values: Iterable) -> tuple:
    seen: list = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return tuple(seen)


def preferred_shots(
    tokens: list[str],
    category: SceneCategory,
    tone: EmotionalTone,
) -> tuple[tuple[int, ...], tuple[str, ...], tuple[float, ...]]:
    lenses, crops, angles = SHOT_TABLE[category]
    if tone in TONE_SHOT_OVERRIDES:
        lenses, crops, angles = TONE_SHOT_OVERRIDES[tone]
    angles = angles + TONE_EXTRA_ANGLES.get(tone, ())

    if has_keywords(tokens, CLOSE_UP_TRIGGERS):
        lenses, crops = lenses + (85,), crops + ("cu",)
    if has_keywords(tokens, FULL_BODY_TRIGGERS):
        lenses, crops = lenses + (35,), crops + ("full",)
    if has_keywords(tokens, PROFILE_TRIGGERS):
        angles = angles + (-90, 90)

    return _dedupe(lenses), _dedupe(crops), tuple(float(a) for a in _dedupe(angles))


def composition_needs(tokens: list[str], category: SceneCategory, tone: EmotionalTone) -> CompositionFlags:
    return CompositionFlags(
        requires_eye_contact=category == SceneCategory.DIALOGUE or has_keywords(tokens, EYE_CONTACT_TRIGGERS),
        requires_profile=has_keywords(tokens, PROFILE_TRIGGERS) or tone == EmotionalTone.CONTEMPLATIVE,
        requires_full_body=category in (SceneCategory.ACTION, SceneCategory.ESTABLISHING)
        or has_keywords(tokens, BODY_COMPOSITION_TRIGGERS),
        requires_hands_detail=has_keywords(tokens, HANDS_TRIGGERS),
    )


def _level(value: int) -> int:
    return max(1, min(10, value))


def camera_preferences(tokens: list[str], category: SceneCategory, tone: EmotionalTone) -> CameraPreferences:
    intimacy, dynamism, intensity = CAMERA_TABLE[category]
    d_intimacy, d_dynamism, d_intensity = TONE_CAMERA_DELTAS[tone]
    intimacy = _level(intimacy + d_intimacy)
    dynamism = _level(dynamism + d_dynamism)
    intensity = _level(intensity + d_intensity)

    if has_keywords(tokens, INTENSITY_TRIGGERS):
        intensity = _level(intensity + 1)
    if has_keywords(tokens, QUIET_TRIGGERS):
        intimacy = _level(intimacy + 1)
        dynamism = _level(dynamism - 1)
    if has_keywords(tokens, FAST_TRIGGERS):
        dynamism = _level(dynamism + 2)

    return CameraPreferences(
        intimacy_level=intimacy,
        dynamism_level=dynamism,
        emotional_intensity=intensity,
    )


def _all_trigger_keywords() -> tuple[str, ...]:
    groups: list[Iterable[str]] = [*CATEGORY_KEYWORDS.values(), *TONE_KEYWORDS.values()]
    groups += [
        CLOSE_UP_TRIGGERS,
        FULL_BODY_TRIGGERS,
        PROFILE_TRIGGERS,
        HANDS_TRIGGERS,
        EYE_CONTACT_TRIGGERS,
        QUIET_TRIGGERS,
        INTENSITY_TRIGGERS,
        FAST_TRIGGERS,
    ]
    return _dedupe(kw for group in groups for kw in group)


ALL_KEYWORDS = _all_trigger_keywords()


def compute_confidence(tokens: list[str], category: SceneCategory) -> float:
    matched = len(matched_tokens(tokens, ALL_KEYWORDS))
    strong = any(
        indicator in token
        for indicator in STRONG_CATEGORY_INDICATORS[category]
        for token in tokens
    )
    confidence = BASE_CONFIDENCE + CONFIDENCE_PER_MATCH * matched
    if strong:
        confidence += STRONG_INDICATOR_BONUS
    return min(MAX_CONFIDENCE, confidence)


def build_reasoning(category: SceneCategory, tone: EmotionalTone, tokens: list[str]) -> str:
    reasons = [f"Detected scene type: {category.value}", f"Emotional tone: {tone.value}"]
    if tokens:
        reasons.append(f"Key indicators: {', '.join(tokens[:5])}")
    reasons.append(LENS_RATIONALE[category])
    return ". ".join(reasons) + "."


def check_prompt_text(text: object) -> str:
    if not isinstance(text, str):
        raise ClassificationError(f"Prompt must be a string, got {type(text).__name__}.")
    if not text.strip():
        raise ClassificationError("Prompt text is empty.")
    return text


def classify(text: str) -> SceneIntent:
    """Classify a depiction request into a ``SceneIntent``.

    Raises:
        ClassificationError: if ``text`` is not a string or is blank.
    """
    tokens = tokenize(check_prompt_text(text))
    category = detect_scene_category(tokens)
    tone = detect_emotional_tone(tokens)
    lenses, crops, angles = preferred_shots(tokens, category, tone)

    return SceneIntent(
        scene_category=category,
        emotional_tone=tone,
        preferred_focal_lengths=lenses,
        preferred_crops=crops,
        preferred_angle_buckets=angles,
        composition=composition_needs(tokens, category, tone),
        camera=camera_preferences(tokens, category, tone),
        confidence=compute_confidence(tokens, category),
        keywords=tuple(tokens),
        reasoning=build_reasoning(category, tone, tokens),
    )
