"""Generation state machine: transition table and candidate selection policy."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Sequence

from character_library.constants import GenerationState, SelectionStrategy
from character_library.errors import InvalidTransitionError, NoCandidatesError
from character_library.schemas.assets import ReferenceAsset


class GenerationEvent(StrEnum):
    START = "start"
    RANKED = "ranked"
    ATTEMPT_PASSED = "attempt_passed"
    ATTEMPT_FAILED = "attempt_failed"
    BUDGET_EXHAUSTED = "budget_exhausted"
    CANCELLED = "cancelled"
    PERSIST_FAILED = "persist_failed"


TRANSITIONS: dict[tuple[GenerationState, GenerationEvent], GenerationState] = {
    (GenerationState.PENDING, GenerationEvent.START): GenerationState.RANKING,
    (GenerationState.PENDING, GenerationEvent.CANCELLED): GenerationState.ABORTED,
    (GenerationState.RANKING, GenerationEvent.RANKED): GenerationState.ATTEMPTING,
    (GenerationState.RANKING, GenerationEvent.CANCELLED): GenerationState.ABORTED,
    (GenerationState.ATTEMPTING, GenerationEvent.ATTEMPT_PASSED): GenerationState.ACCEPTED,
    (GenerationState.ATTEMPTING, GenerationEvent.ATTEMPT_FAILED): GenerationState.ATTEMPTING,
    (GenerationState.ATTEMPTING, GenerationEvent.BUDGET_EXHAUSTED): GenerationState.EXHAUSTED,
    (GenerationState.ATTEMPTING, GenerationEvent.CANCELLED): GenerationState.ABORTED,
    (GenerationState.ATTEMPTING, GenerationEvent.PERSIST_FAILED): GenerationState.ABORTED,
}


def transition(state: GenerationState, event: GenerationEvent) -> GenerationState:
    try:
        return TRANSITIONS[(state, event)]
    except KeyError:
        raise InvalidTransitionError(f"Event '{event}' is not allowed in state {state}.") from None


def allowed_events(state: GenerationState) -> list[GenerationEvent]:
    return [event for (source, event) in TRANSITIONS if source == state]


@dataclass(frozen=True)
class CandidateSelection:
    attempt_number: int
    asset: ReferenceAsset
    strategy: SelectionStrategy


class CandidateCycler:
    """Picks the reference asset for each attempt.

    Attempt 1 takes the top-ranked candidate. Attempt 2 falls back to the
    primary asset when it differs from that candidate. Every other attempt
    takes ``ranked[(attempt - 1) % len(ranked)]``, wrapping around when the
    ranked list is shorter than the retry budget.
    """

    def __init__(self, ranked: Sequence[ReferenceAsset], primary: ReferenceAsset | None = None):
        if not ranked:
            raise NoCandidatesError("Cannot cycle over an empty candidate list.")
        self.ranked = list(ranked)
        self.primary = primary

    def select(self, attempt_number: int) -> CandidateSelection:
        if attempt_number < 1:
            raise ValueError(f"attempt_number must be >= 1, got {attempt_number}.")
        if attempt_number == 1:
            return CandidateSelection(1, self.ranked[0], SelectionStrategy.TOP_RANKED)
        if attempt_number == 2 and self.primary is not None and self.primary.id != self.ranked[0].id:
            return CandidateSelection(2, self.primary, SelectionStrategy.PRIMARY_FALLBACK)
        index = (attempt_number - 1) % len(self.ranked)
        return CandidateSelection(attempt_number, self.ranked[index], SelectionStrategy.CYCLE)

    def plan(self, retry_budget: int) -> list[CandidateSelection]:
        return [self.select(n) for n in range(1, retry_budget + 1)]
