"""Generation request and attempt history schemas."""

from __future__ import annotations

from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from character_library.constants import (
    DEFAULT_CONSISTENCY_THRESHOLD,
    DEFAULT_QUALITY_THRESHOLD,
    DEFAULT_RETRY_BUDGET,
    AttemptOutcome,
    GenerationState,
    SelectionStrategy,
    SourceKind,
    TerminalState,
)
from character_library.schemas.assets import ReferenceAsset, utc_now_iso
from character_library.schemas.intent import SceneIntent


def clamp_threshold(value: Any) -> float:
    return max(0.0, min(100.0, float(value)))


class Thresholds(BaseModel):
    """Validation floors; inputs outside [0, 100] are clamped, not rejected."""

    quality: float = DEFAULT_QUALITY_THRESHOLD
    consistency: float = DEFAULT_CONSISTENCY_THRESHOLD

    @field_validator("quality", "consistency", mode="before")
    @classmethod
    def clamp(cls, value: Any) -> float:
        if value is None:
            raise ValueError("threshold must be a number")
        return clamp_threshold(value)


class GenerationOptions(BaseModel):
    """Caller overrides for one generation request. Unset fields fall back to config."""

    model_config = ConfigDict(extra="forbid")

    thresholds: Thresholds | None = None
    retry_budget: int | None = Field(default=None, ge=1)
    seed: int | None = None
    tags: list[str] = Field(default_factory=list)
    min_quality_score: float | None = Field(default=None, ge=0, le=100)


class AttemptRecord(BaseModel):
    attempt_number: int = Field(ge=1)
    candidate_id: str
    candidate_source_kind: SourceKind
    strategy: SelectionStrategy
    seed: int
    outcome: AttemptOutcome
    quality_score: float | None = Field(default=None, ge=0, le=100)
    consistency_score: float | None = Field(default=None, ge=0, le=100)
    reason: str = ""
    artifact_ref: str | None = None
    timestamp: str = Field(default_factory=utc_now_iso)


def build_request_id() -> str:
    return f"gen-{str(uuid4())[:12]}"


class GenerationRequest(BaseModel):
    request_id: str = Field(default_factory=build_request_id)
    character_id: str = Field(min_length=1)
    prompt_text: str
    thresholds: Thresholds = Field(default_factory=Thresholds)
    retry_budget: int = Field(default=DEFAULT_RETRY_BUDGET, ge=1)
    min_quality_score: float | None = Field(default=None, ge=0, le=100)
    base_seed: int | None = None
    tags: list[str] = Field(default_factory=list)

    state: GenerationState = GenerationState.PENDING
    terminal_state: TerminalState | None = None
    intent: SceneIntent | None = None
    ranked_candidate_ids: list[str] = Field(default_factory=list)
    attempts: list[AttemptRecord] = Field(default_factory=list)
    accepted_asset: ReferenceAsset | None = None
    failure_reasons: list[str] = Field(default_factory=list)

    created_at: str = Field(default_factory=utc_now_iso)
    finished_at: str | None = None

    @model_validator(mode="after")
    def validate_history(self) -> "GenerationRequest":
        self.check_invariants()
        return self

    def check_invariants(self) -> None:
        if len(self.attempts) > self.retry_budget:
            raise ValueError(
                f"{len(self.attempts)} attempts recorded but retry_budget is {self.retry_budget}."
            )
        numbers = [attempt.attempt_number for attempt in self.attempts]
        if numbers != list(range(1, len(numbers) + 1)):
            raise ValueError("attempt numbers must be consecutive starting at 1.")
        successes = [a for a in self.attempts if a.outcome == AttemptOutcome.SUCCESS]
        if self.terminal_state == TerminalState.ACCEPTED:
            if not self.attempts or self.attempts[-1].outcome != AttemptOutcome.SUCCESS:
                raise ValueError("accepted request must end with a successful attempt.")
            if len(successes) != 1:
                raise ValueError("accepted request must contain exactly one successful attempt.")
        elif successes:
            raise ValueError(f"{self.terminal_state or 'unfinished'} request cannot contain a successful attempt.")

    @property
    def is_terminal(self) -> bool:
        return self.terminal_state is not None

    @property
    def attempts_used(self) -> int:
        return len(self.attempts)
