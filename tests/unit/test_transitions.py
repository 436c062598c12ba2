"""Tests for the generation state machine table and candidate cycling."""

from __future__ import annotations

import pytest

from character_library.constants import GenerationState, SelectionStrategy
from character_library.errors import InvalidTransitionError, NoCandidatesError
from character_library.state_machine.transitions import (
    TRANSITIONS,
    CandidateCycler,
    GenerationEvent,
    allowed_events,
    transition,
)
from tests.helpers import make_asset, primary_asset


class TestTransitionTable:
    """Tests for transition."""

    def test_happy_path(self) -> None:
        state = GenerationState.PENDING
        for event in (
            GenerationEvent.START,
            GenerationEvent.RANKED,
            GenerationEvent.ATTEMPT_FAILED,
            GenerationEvent.ATTEMPT_PASSED,
        ):
            state = transition(state, event)
        assert state == GenerationState.ACCEPTED

    def test_budget_exhaustion_and_cancel(self) -> None:
        assert transition(GenerationState.ATTEMPTING, GenerationEvent.BUDGET_EXHAUSTED) == GenerationState.EXHAUSTED
        assert transition(GenerationState.ATTEMPTING, GenerationEvent.CANCELLED) == GenerationState.ABORTED

    def test_persist_failure_aborts_only_while_attempting(self) -> None:
        assert transition(GenerationState.ATTEMPTING, GenerationEvent.PERSIST_FAILED) == GenerationState.ABORTED
        with pytest.raises(InvalidTransitionError):
            transition(GenerationState.RANKING, GenerationEvent.PERSIST_FAILED)

    @pytest.mark.parametrize(
        "state",
        [GenerationState.ACCEPTED, GenerationState.EXHAUSTED, GenerationState.ABORTED],
    )
    def test_terminal_states_accept_no_events(self, state: GenerationState) -> None:
        assert allowed_events(state) == []
        for event in GenerationEvent:
            with pytest.raises(InvalidTransitionError):
                transition(state, event)

    def test_cannot_skip_ranking(self) -> None:
        with pytest.raises(InvalidTransitionError, match="attempt_passed"):
            transition(GenerationState.PENDING, GenerationEvent.ATTEMPT_PASSED)

    def test_every_target_is_a_known_state(self) -> None:
        assert set(TRANSITIONS.values()) <= set(GenerationState)


class TestCandidateCycler:
    """Tests for CandidateCycler."""

    def test_primary_fallback_on_second_attempt(self) -> None:
        ranked = [make_asset("top"), make_asset("second"), make_asset("third")]
        cycler = CandidateCycler(ranked, primary_asset())

        plan = cycler.plan(4)
        assert [s.asset.id for s in plan] == ["top", "ava-primary", "third", "top"]
        assert [s.strategy for s in plan] == [
            SelectionStrategy.TOP_RANKED,
            SelectionStrategy.PRIMARY_FALLBACK,
            SelectionStrategy.CYCLE,
            SelectionStrategy.CYCLE,
        ]

    def test_primary_already_top_ranked_cycles_instead(self) -> None:
        primary = primary_asset()
        cycler = CandidateCycler([primary, make_asset("second")], primary)

        second = cycler.select(2)
        assert second.asset.id == "second"
        assert second.strategy == SelectionStrategy.CYCLE

    def test_wraps_around_short_lists(self) -> None:
        primary = primary_asset()
        ranked = [make_asset("only"), primary]
        cycler = CandidateCycler(ranked, primary)

        assert [s.asset.id for s in cycler.plan(5)] == ["only", "ava-primary", "only", "ava-primary", "only"]

    def test_single_candidate_repeats(self) -> None:
        primary = primary_asset()
        cycler = CandidateCycler([primary], primary)
        assert {s.asset.id for s in cycler.plan(3)} == {"ava-primary"}

    def test_attempt_numbers_start_at_one(self) -> None:
        cycler = CandidateCycler([make_asset("a")])
        with pytest.raises(ValueError):
            cycler.select(0)

    def test_empty_ranking_is_rejected(self) -> None:
        with pytest.raises(NoCandidatesError):
            CandidateCycler([], primary_asset())
