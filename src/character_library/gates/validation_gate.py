"""Quality / identity-consistency gate for synthesized images."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from character_library.errors import MissingPrimaryAssetError, ThresholdFailure, ValidationServiceError
from character_library.providers.base import ConsistencyService, SynthesisArtifact
from character_library.schemas.assets import ReferenceAsset
from character_library.schemas.requests import Thresholds


logger = logging.getLogger(__name__)

PASS_NOTE = "Image passed all validation checks."


@dataclass(frozen=True)
class ValidationVerdict:
    """Result of scoring one artifact against the primary asset."""

    is_valid: bool
    quality_score: float
    consistency_score: float
    notes: str
    failed_checks: list[str] = field(default_factory=list)
    embedding_ref: str | None = None

    def raise_for_thresholds(self) -> None:
        if not self.is_valid:
            raise ThresholdFailure(list(self.failed_checks), self.notes)


def _format_score(value: float) -> str:
    return f"{value:g}"


def build_notes(quality: float, consistency: float, thresholds: Thresholds) -> tuple[list[str], str]:
    failed: list[str] = []
    notes: list[str] = []
    if quality < thresholds.quality:
        failed.append("quality")
        notes.append(
            f"Quality score {_format_score(quality)} below threshold {_format_score(thresholds.quality)}."
        )
    if consistency < thresholds.consistency:
        failed.append("consistency")
        notes.append(
            f"Consistency score {_format_score(consistency)} below threshold "
            f"{_format_score(thresholds.consistency)}."
        )
    if not failed:
        return failed, PASS_NOTE
    return failed, " ".join(notes)


def _checked_score(name: str, value: object) -> float:
    try:
        score = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValidationServiceError(f"{name} is not numeric: {value!r}") from exc
    if not 0.0 <= score <= 100.0:
        raise ValidationServiceError(f"{name} {score} outside [0, 100].")
    return score


class ValidationGate:
    """Wraps the consistency service behind threshold comparisons."""

    def __init__(self, service: ConsistencyService):
        self.service = service

    def validate(
        self,
        artifact: SynthesisArtifact,
        baseline: ReferenceAsset | None,
        thresholds: Thresholds | None = None,
    ) -> ValidationVerdict:
        if baseline is None:
            raise MissingPrimaryAssetError("A primary asset is required as the consistency baseline.")
        limits = thresholds or Thresholds()

        try:
            scores = self.service.score(artifact, baseline.baseline_ref)
        except ValidationServiceError:
            raise
        except Exception as exc:
            raise ValidationServiceError(f"Consistency service failed: {exc}") from exc

        quality = _checked_score("quality_score", scores.quality_score)
        consistency = _checked_score("similarity_score", scores.similarity_score)
        failed, notes = build_notes(quality, consistency, limits)

        verdict = ValidationVerdict(
            is_valid=not failed,
            quality_score=quality,
            consistency_score=consistency,
            notes=notes,
            failed_checks=failed,
            embedding_ref=scores.embedding_ref,
        )
        logger.debug(f"Validated {artifact.artifact_ref} against {baseline.id}: {notes}")
        return verdict
