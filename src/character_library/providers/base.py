"""Collaborator contracts for image synthesis and consistency scoring."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from character_library.schemas.assets import ReferenceAsset


@dataclass(frozen=True)
class SynthesisArtifact:
    """Opaque handle to a freshly synthesized image."""

    artifact_ref: str
    image_url: str | None = None
    seed: int | None = None
    model: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ConsistencyScores:
    quality_score: float
    similarity_score: float
    explanation: str = ""
    embedding_ref: str | None = None


@runtime_checkable
class SynthesisProvider(Protocol):
    def submit(self, prompt_text: str, reference: ReferenceAsset, seed: int) -> SynthesisArtifact:
        """Synthesize one image conditioned on ``reference``.

        Raises:
            ProviderError: on any failure; the orchestrator records it and retries.
        """
        ...


@runtime_checkable
class ConsistencyService(Protocol):
    def score(self, artifact: SynthesisArtifact, baseline_ref: str) -> ConsistencyScores:
        """Score generic quality and identity similarity against the baseline asset.

        Raises:
            ValidationServiceError: on any failure.
        """
        ...
