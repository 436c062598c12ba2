"""Error taxonomy for the generation pipeline."""

from __future__ import annotations


class CharacterLibraryError(Exception):
    """Base class for all pipeline errors."""


class ConfigError(CharacterLibraryError, ValueError):
    """Raised when a pipeline configuration file cannot be used."""


class ClassificationError(CharacterLibraryError, ValueError):
    """Raised for an empty or malformed depiction prompt. Not retryable."""


class NoCandidatesError(CharacterLibraryError):
    """Raised when a character has no usable reference assets. Not retryable."""


class MissingPrimaryAssetError(NoCandidatesError):
    """Raised when a character has no primary asset to validate against."""


class ProviderError(CharacterLibraryError):
    """Raised by a synthesis provider; recorded and retried by the orchestrator."""


class ValidationServiceError(CharacterLibraryError):
    """Raised when the embedding/consistency service fails or answers garbage."""


class ThresholdFailure(CharacterLibraryError):
    """An artifact was scored but fell below at least one threshold."""

    def __init__(self, failed_checks: list[str], notes: str):
        super().__init__(notes)
        self.failed_checks = failed_checks
        self.notes = notes


class RecordStoreError(CharacterLibraryError):
    """Raised when the record store cannot read or append gallery entries."""


class InvalidTransitionError(CharacterLibraryError):
    """Raised when the generation state machine receives an illegal event."""
