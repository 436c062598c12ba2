"""Character reference selection and validated generation pipeline."""

from character_library.ranking import find_best_reference, rank
from character_library.scene_intent import classify
from character_library.state_machine.orchestrator import GenerationAttemptOrchestrator, request_generation

__version__ = "0.1.0"

__all__ = [
    "GenerationAttemptOrchestrator",
    "classify",
    "find_best_reference",
    "rank",
    "request_generation",
]
