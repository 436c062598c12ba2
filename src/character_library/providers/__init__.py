"""Image synthesis and consistency scoring adapters."""

from .base import (
    ConsistencyScores,
    ConsistencyService,
    SynthesisArtifact,
    SynthesisProvider,
)
from .dino import DinoConsistencyService
from .fal import FalSynthesisProvider

__all__ = [
    "ConsistencyScores",
    "ConsistencyService",
    "DinoConsistencyService",
    "FalSynthesisProvider",
    "SynthesisArtifact",
    "SynthesisProvider",
]
