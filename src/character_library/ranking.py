"""Scene-aware ranking of a character's reference assets."""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from character_library.config import RankingConfig
from character_library.constants import GAZE_TO_CAMERA, EmotionalTone, SceneCategory
from character_library.scene_intent import classify
from character_library.schemas.assets import (
    ReferenceAsset,
    ReferenceSearchResult,
    ScoredCandidate,
    SearchMetrics,
    SubScores,
)
from character_library.schemas.intent import CompositionFlags, SceneIntent


logger = logging.getLogger(__name__)


# Tags on an asset that mark it as suited to a scene category.
SCENE_TAG_ALIASES: dict[SceneCategory, tuple[str, ...]] = {
    SceneCategory.DIALOGUE: ("close_dialogue", "dialogue", "conversation"),
    SceneCategory.ACTION: ("action", "action_sequences"),
    SceneCategory.EMOTIONAL: ("emotional", "emotional_moments"),
    SceneCategory.ESTABLISHING: ("establishing", "establishing_shots", "introduction"),
    SceneCategory.TRANSITION: ("transition",),
}

TONE_EXPRESSIONS: dict[EmotionalTone, tuple[str, ...]] = {
    EmotionalTone.NEUTRAL: ("neutral",),
    EmotionalTone.TENSE: ("concerned", "worried", "tense"),
    EmotionalTone.INTIMATE: ("gentle", "soft", "vulnerable"),
    EmotionalTone.DRAMATIC: ("determined", "intense", "strong"),
    EmotionalTone.CONTEMPLATIVE: ("thoughtful", "contemplative", "pondering"),
}

CROP_DESCRIPTIONS = {
    "cu": "close-up intimacy",
    "mcu": "medium close-up balance",
    "3q": "three-quarter body context",
    "full": "full body coverage",
    "hands": "detailed hand work",
}


def clamp_score(value: float) -> float:
    return max(0.0, min(100.0, value))


def angular_distance(a: float, b: float) -> float:
    diff = abs(a - b) % 360.0
    return min(diff, 360.0 - diff)


def score_scene_type(asset: ReferenceAsset, category: SceneCategory, cfg: RankingConfig) -> float:
    labels: list[str] = list(asset.free_tags)
    if asset.shot_category is not None:
        labels.append(asset.shot_category.value)
    if not labels:
        return cfg.neutral_score

    if asset.shot_category == category:
        return cfg.full_credit
    aliases = SCENE_TAG_ALIASES[category]
    if any(label in aliases for label in labels):
        return cfg.full_credit
    return cfg.scene_mismatch_score


def score_focal_length(asset: ReferenceAsset, preferred: Sequence[int], cfg: RankingConfig) -> float:
    if asset.focal_length_mm is None or not preferred:
        return cfg.neutral_score
    if asset.focal_length_mm in preferred:
        return cfg.full_credit
    distance = min(abs(lens - asset.focal_length_mm) for lens in preferred)
    return max(cfg.focal_floor, cfg.full_credit - cfg.focal_decay_per_mm * distance)


def score_crop(asset: ReferenceAsset, preferred: Sequence[str], cfg: RankingConfig) -> float:
    if asset.crop is None or not preferred:
        return cfg.neutral_score
    if asset.crop in preferred:
        return cfg.full_credit
    similar = cfg.crop_similarity.get(asset.crop, [])
    if any(crop in similar for crop in preferred):
        return cfg.crop_similar_score
    return cfg.crop_mismatch_score


def score_angle(asset: ReferenceAsset, buckets: Sequence[float], cfg: RankingConfig) -> float:
    if asset.camera_angle_deg is None or not buckets:
        return cfg.neutral_score
    distance = min(angular_distance(asset.camera_angle_deg, bucket) for bucket in buckets)
    return max(cfg.angle_floor, cfg.full_credit - cfg.angle_decay_per_deg * distance)


def score_emotional_tone(asset: ReferenceAsset, tone: EmotionalTone, cfg: RankingConfig) -> float:
    if asset.expression is None:
        return cfg.neutral_score
    expressions = TONE_EXPRESSIONS.get(tone, ("neutral",))
    expression = asset.expression
    if any(expr in expression or expression in expr for expr in expressions):
        return cfg.full_credit
    return cfg.tone_mismatch_score


def score_composition(asset: ReferenceAsset, flags: CompositionFlags, cfg: RankingConfig) -> float:
    score = cfg.neutral_score
    looks_at_camera = asset.gaze == GAZE_TO_CAMERA

    if flags.requires_eye_contact and looks_at_camera:
        score += cfg.composition_eye_contact_bonus
    elif not flags.requires_eye_contact and not looks_at_camera:
        score += cfg.composition_no_eye_contact_bonus

    if flags.requires_profile and abs(asset.camera_angle_deg or 0.0) >= cfg.profile_min_abs_angle_deg:
        score += cfg.composition_profile_bonus
    if flags.requires_full_body and asset.crop == "full":
        score += cfg.composition_full_body_bonus
    if flags.requires_hands_detail and asset.crop == "hands":
        score += cfg.composition_hands_bonus

    return min(100.0, score)


def score_quality_prior(asset: ReferenceAsset, cfg: RankingConfig) -> float:
    if asset.quality_score is None:
        return cfg.quality_prior_default
    return clamp_score(asset.quality_score)


def compute_sub_scores(asset: ReferenceAsset, intent: SceneIntent, cfg: RankingConfig) -> SubScores:
    return SubScores(
        scene_type=score_scene_type(asset, intent.scene_category, cfg),
        focal_length=score_focal_length(asset, intent.preferred_focal_lengths, cfg),
        crop=score_crop(asset, intent.preferred_crops, cfg),
        angle=score_angle(asset, intent.preferred_angle_buckets, cfg),
        emotional_tone=score_emotional_tone(asset, intent.emotional_tone, cfg),
        composition=score_composition(asset, intent.composition, cfg),
        quality_prior=score_quality_prior(asset, cfg),
    )


def weighted_total(scores: SubScores, cfg: RankingConfig) -> float:
    w = cfg.weights
    total = (
        w.scene_type * scores.scene_type
        + w.focal_length * scores.focal_length
        + w.crop * scores.crop
        + w.angle * scores.angle
        + w.emotional_tone * scores.emotional_tone
        + w.composition * scores.composition
        + w.quality_prior * scores.quality_prior
    )
    return round(clamp_score(total), 4)


def filter_by_quality(candidates: Iterable[ReferenceAsset], min_quality_score: float | None) -> list[ReferenceAsset]:
    """Drop assets scored below ``min_quality_score``. Primary and unscored assets are kept."""
    pool = list(candidates)
    if min_quality_score is None:
        return pool
    return [
        asset
        for asset in pool
        if asset.is_primary or asset.quality_score is None or asset.quality_score >= min_quality_score
    ]


def _unique_by_id(candidates: Iterable[ReferenceAsset]) -> list[ReferenceAsset]:
    seen: set[str] = set()
    unique: list[ReferenceAsset] = []
    for asset in candidates:
        if asset.id in seen:
            continue
        seen.add(asset.id)
        unique.append(asset)
    return unique


def rank(
    candidates: Iterable[ReferenceAsset],
    intent: SceneIntent,
    config: RankingConfig | None = None,
) -> list[ScoredCandidate]:
    """Score and order candidates for ``intent``, best first.

    Ties on total score go to the primary asset, then to the higher historical
    quality score, then to input order. Duplicate ids keep their first
    occurrence. An empty input returns an empty list.
    """
    cfg = config or RankingConfig()
    unique = _unique_by_id(candidates)

    scored: list[tuple[tuple, ReferenceAsset, SubScores, float]] = []
    for index, asset in enumerate(unique):
        sub_scores = compute_sub_scores(asset, intent, cfg)
        total = weighted_total(sub_scores, cfg)
        quality = asset.quality_score if asset.quality_score is not None else -1.0
        sort_key = (-total, 0 if asset.is_primary else 1, -quality, index)
        scored.append((sort_key, asset, sub_scores, total))

    scored.sort(key=lambda item: item[0])

    ranked = [
        ScoredCandidate(asset=asset, sub_scores=sub_scores, total_score=total, rank=position)
        for position, (_key, asset, sub_scores, total) in enumerate(scored, start=1)
    ]
    if ranked:
        logger.debug(
            f"Ranked {len(ranked)} candidates for {intent.scene_category.value}/{intent.emotional_tone.value}; "
            f"top={ranked[0].asset.id} ({ranked[0].total_score})"
        )
    return ranked


def explain_selection(candidate: ScoredCandidate, intent: SceneIntent) -> str:
    """Human-readable reasons a candidate was picked for a scene."""
    reasons: list[str] = []
    asset = candidate.asset
    category = intent.scene_category.value

    if candidate.sub_scores.scene_type > 80:
        reasons.append(f"Perfect match for {category} scenes")
    elif candidate.sub_scores.scene_type > 60:
        reasons.append(f"Good fit for {category} scenes")

    if asset.focal_length_mm is not None and asset.focal_length_mm in intent.preferred_focal_lengths:
        if asset.focal_length_mm <= 35:
            lens_use = "action/body"
        elif asset.focal_length_mm <= 50:
            lens_use = "conversation"
        else:
            lens_use = "emotional"
        reasons.append(f"{asset.focal_length_mm}mm lens ideal for {lens_use} work")

    if asset.crop is not None and asset.crop in intent.preferred_crops:
        description = CROP_DESCRIPTIONS.get(asset.crop, "a matching framing")
        reasons.append(f"{asset.crop.upper()} crop provides {description}")

    if asset.quality_score is not None and asset.quality_score > 85:
        reasons.append(f"High quality score ({asset.quality_score:g}/100)")

    reasons.append(f"Overall compatibility score: {round(candidate.total_score)}/100")
    return ". ".join(reasons) + "."


def find_best_reference(
    candidates: Iterable[ReferenceAsset],
    text: str,
    *,
    min_quality_score: float | None = None,
    max_alternatives: int | None = None,
    config: RankingConfig | None = None,
) -> ReferenceSearchResult:
    """Classify ``text`` and pick the best reference asset for it."""
    cfg = config or RankingConfig()
    intent = classify(text)

    ranked = rank(filter_by_quality(candidates, min_quality_score), intent, cfg)
    if not ranked:
        return ReferenceSearchResult(
            success=False,
            intent=intent,
            error="No reference images found for this character",
        )

    best = ranked[0]
    limit = cfg.max_alternatives if max_alternatives is None else max_alternatives
    average = sum(c.total_score for c in ranked) / len(ranked)
    return ReferenceSearchResult(
        success=True,
        selected=best,
        reasoning=explain_selection(best, intent),
        intent=intent,
        alternatives=ranked[1 : 1 + limit],
        metrics=SearchMetrics(
            total_images_evaluated=len(ranked),
            average_score=round(average, 4),
            selection_confidence=round(best.total_score / 100.0, 4),
        ),
    )
