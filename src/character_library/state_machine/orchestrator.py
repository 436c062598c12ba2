"""Bounded-retry generation loop: rank, synthesize, validate, persist."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable
from uuid import uuid4

from character_library.config import PipelineConfig
from character_library.constants import TERMINAL_STATES, AttemptOutcome, SourceKind
from character_library.errors import (
    InvalidTransitionError,
    MissingPrimaryAssetError,
    NoCandidatesError,
    ProviderError,
    RecordStoreError,
    ValidationServiceError,
)
from character_library.gates.validation_gate import ValidationGate, ValidationVerdict
from character_library.io.hashing import derive_seed
from character_library.providers.base import ConsistencyService, SynthesisArtifact, SynthesisProvider
from character_library.ranking import filter_by_quality, rank
from character_library.scene_intent import check_prompt_text, classify
from character_library.schemas.assets import ReferenceAsset, utc_now_iso
from character_library.schemas.intent import SceneIntent
from character_library.schemas.requests import AttemptRecord, GenerationOptions, GenerationRequest
from character_library.state_machine.transitions import (
    CandidateCycler,
    CandidateSelection,
    GenerationEvent,
    transition,
)
from character_library.store.base import RecordStore


logger = logging.getLogger(__name__)


def call_with_timeout(executor: ThreadPoolExecutor, fn: Callable[..., Any], timeout_s: float, *args: Any) -> Any:
    """Run ``fn`` on ``executor`` and wait at most ``timeout_s`` seconds.

    Raises ``concurrent.futures.TimeoutError`` when the call does not return in
    time. A call still queued behind a stuck one is cancelled; a running call
    is abandoned, not killed, and keeps the single worker busy until it returns.
    """
    future = executor.submit(fn, *args)
    try:
        return future.result(timeout=timeout_s)
    except FutureTimeoutError:
        future.cancel()
        raise


def _failure_outcome(verdict: ValidationVerdict) -> AttemptOutcome:
    if "quality" in verdict.failed_checks:
        return AttemptOutcome.QUALITY_FAIL
    return AttemptOutcome.CONSISTENCY_FAIL


class GenerationAttemptOrchestrator:
    def __init__(
        self,
        store: RecordStore,
        synthesis: SynthesisProvider,
        consistency: ConsistencyService,
        config: PipelineConfig | None = None,
    ):
        self.store = store
        self.synthesis = synthesis
        self.gate = ValidationGate(consistency)
        self.config = config or PipelineConfig()

    def _advance(self, request: GenerationRequest, event: GenerationEvent) -> None:
        previous = request.state
        request.state = transition(previous, event)
        logger.info(f"{request.request_id}: {previous} --{event}--> {request.state}")

    def _finish(self, request: GenerationRequest) -> GenerationRequest:
        request.terminal_state = TERMINAL_STATES[request.state]
        request.finished_at = utc_now_iso()
        request.check_invariants()
        logger.info(
            f"{request.request_id} finished {request.terminal_state} after {request.attempts_used} "
            f"of {request.retry_budget} attempts"
        )
        return request

    def _load_candidates(self, request: GenerationRequest) -> tuple[list[ReferenceAsset], ReferenceAsset]:
        candidates = filter_by_quality(
            self.store.list_reference_assets(request.character_id),
            request.min_quality_score,
        )
        if not candidates:
            raise NoCandidatesError(f"No reference assets found for character {request.character_id}.")
        primary = self.store.get_primary_asset(request.character_id)
        if primary is None:
            raise MissingPrimaryAssetError(
                f"Character {request.character_id} has no primary asset to validate against."
            )
        return candidates, primary

    def _record(
        self,
        request: GenerationRequest,
        selection: CandidateSelection,
        seed: int,
        outcome: AttemptOutcome,
        reason: str,
        artifact: SynthesisArtifact | None = None,
        verdict: ValidationVerdict | None = None,
    ) -> AttemptRecord:
        return AttemptRecord(
            attempt_number=selection.attempt_number,
            candidate_id=selection.asset.id,
            candidate_source_kind=selection.asset.source_kind,
            strategy=selection.strategy,
            seed=seed,
            outcome=outcome,
            quality_score=verdict.quality_score if verdict else None,
            consistency_score=verdict.consistency_score if verdict else None,
            reason=reason,
            artifact_ref=artifact.artifact_ref if artifact else None,
        )

    def _attempt(
        self,
        executor: ThreadPoolExecutor,
        request: GenerationRequest,
        selection: CandidateSelection,
        primary: ReferenceAsset,
    ) -> tuple[AttemptRecord, SynthesisArtifact | None, ValidationVerdict | None]:
        timeout_s = self.config.retry.call_timeout_s
        seed = derive_seed(request.request_id, selection.attempt_number, request.base_seed or 0)
        logger.info(
            f"{request.request_id} attempt {selection.attempt_number}/{request.retry_budget}: "
            f"{selection.strategy} candidate {selection.asset.id} seed={seed}"
        )

        try:
            artifact = call_with_timeout(executor, self.synthesis.submit, timeout_s, request.prompt_text, selection.asset, seed)
        except FutureTimeoutError:
            reason = f"Synthesis timed out after {timeout_s:g}s"
            return self._record(request, selection, seed, AttemptOutcome.PROVIDER_ERROR, reason), None, None
        except ProviderError as exc:
            return self._record(request, selection, seed, AttemptOutcome.PROVIDER_ERROR, str(exc)), None, None
        except Exception as exc:
            logger.exception(f"Unexpected synthesis failure for {request.request_id}")
            reason = f"{type(exc).__name__}: {exc}"
            return self._record(request, selection, seed, AttemptOutcome.PROVIDER_ERROR, reason), None, None

        try:
            verdict = call_with_timeout(executor, self.gate.validate, timeout_s, artifact, primary, request.thresholds)
        except FutureTimeoutError:
            reason = f"Validation timed out after {timeout_s:g}s"
            return self._record(request, selection, seed, AttemptOutcome.VALIDATION_ERROR, reason, artifact), artifact, None
        except ValidationServiceError as exc:
            return self._record(request, selection, seed, AttemptOutcome.VALIDATION_ERROR, str(exc), artifact), artifact, None

        outcome = AttemptOutcome.SUCCESS if verdict.is_valid else _failure_outcome(verdict)
        record = self._record(request, selection, seed, outcome, verdict.notes, artifact, verdict)
        return record, artifact, verdict

    def _build_generated_asset(
        self,
        request: GenerationRequest,
        intent: SceneIntent,
        reference: ReferenceAsset,
        artifact: SynthesisArtifact,
        verdict: ValidationVerdict,
    ) -> ReferenceAsset:
        return ReferenceAsset(
            id=str(uuid4()),
            owning_character_id=request.character_id,
            source_kind=SourceKind.GENERATED,
            shot_category=intent.scene_category,
            focal_length_mm=reference.focal_length_mm,
            crop=reference.crop,
            camera_angle_deg=reference.camera_angle_deg,
            gaze=reference.gaze,
            expression=reference.expression,
            free_tags=[*request.tags, *self.config.default_tags],
            quality_score=verdict.quality_score,
            consistency_score=verdict.consistency_score,
            image_url=artifact.image_url,
            embedding_ref=verdict.embedding_ref,
            generation_prompt=request.prompt_text,
            validation_notes=verdict.notes,
        )

    def run(self, request: GenerationRequest, cancel_event: threading.Event | None = None) -> GenerationRequest:
        """Drive ``request`` to a terminal state and return it.

        Raises ClassificationError, NoCandidatesError or MissingPrimaryAssetError
        before any collaborator is called. Every collaborator call for the
        request goes through one single-worker executor, so calls never overlap.
        """
        if request.is_terminal or request.attempts:
            raise InvalidTransitionError(f"Request {request.request_id} has already run.")

        intent = classify(request.prompt_text)
        candidates, primary = self._load_candidates(request)

        self._advance(request, GenerationEvent.START)
        request.intent = intent
        ranked = rank(candidates, intent, self.config.ranking)
        request.ranked_candidate_ids = [candidate.asset.id for candidate in ranked]
        self._advance(request, GenerationEvent.RANKED)

        cycler = CandidateCycler([candidate.asset for candidate in ranked], primary)
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"collaborator-{request.request_id}")
        try:
            return self._run_attempts(executor, request, intent, cycler, primary, cancel_event)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _run_attempts(
        self,
        executor: ThreadPoolExecutor,
        request: GenerationRequest,
        intent: SceneIntent,
        cycler: CandidateCycler,
        primary: ReferenceAsset,
        cancel_event: threading.Event | None,
    ) -> GenerationRequest:
        for attempt_number in range(1, request.retry_budget + 1):
            if cancel_event is not None and cancel_event.is_set():
                request.failure_reasons.append(f"Cancelled before attempt {attempt_number}.")
                self._advance(request, GenerationEvent.CANCELLED)
                return self._finish(request)

            selection = cycler.select(attempt_number)
            record, artifact, verdict = self._attempt(executor, request, selection, primary)

            if record.outcome == AttemptOutcome.SUCCESS:
                asset = self._build_generated_asset(request, intent, selection.asset, artifact, verdict)
                try:
                    self.store.append_gallery_entry(request.character_id, asset)
                except RecordStoreError as exc:
                    logger.error(f"{request.request_id} could not save accepted image: {exc}")
                    reason = f"Passed validation but could not be saved: {exc}"
                    request.attempts.append(
                        record.model_copy(update={"outcome": AttemptOutcome.STORE_ERROR, "reason": reason})
                    )
                    request.failure_reasons.append(f"Attempt {attempt_number} ({AttemptOutcome.STORE_ERROR}): {reason}")
                    self._advance(request, GenerationEvent.PERSIST_FAILED)
                    return self._finish(request)
                request.attempts.append(record)
                request.accepted_asset = asset
                self._advance(request, GenerationEvent.ATTEMPT_PASSED)
                return self._finish(request)

            request.attempts.append(record)
            logger.warning(f"{request.request_id} attempt {attempt_number} {record.outcome}: {record.reason}")
            request.failure_reasons.append(f"Attempt {attempt_number} ({record.outcome}): {record.reason}")
            if attempt_number < request.retry_budget:
                self._advance(request, GenerationEvent.ATTEMPT_FAILED)

        self._advance(request, GenerationEvent.BUDGET_EXHAUSTED)
        return self._finish(request)


def build_request(
    character_id: str,
    prompt_text: str,
    options: GenerationOptions | None = None,
    config: PipelineConfig | None = None,
) -> GenerationRequest:
    cfg = config or PipelineConfig()
    opts = options or GenerationOptions()
    return GenerationRequest(
        character_id=character_id,
        prompt_text=check_prompt_text(prompt_text),
        thresholds=opts.thresholds or cfg.thresholds,
        retry_budget=opts.retry_budget or cfg.retry.retry_budget,
        min_quality_score=opts.min_quality_score,
        base_seed=opts.seed,
        tags=list(opts.tags),
    )


def request_generation(
    character_id: str,
    prompt_text: str,
    options: GenerationOptions | None = None,
    *,
    store: RecordStore,
    synthesis: SynthesisProvider,
    consistency: ConsistencyService,
    config: PipelineConfig | None = None,
    cancel_event: threading.Event | None = None,
) -> GenerationRequest:
    """Generate and validate one image of ``character_id`` for ``prompt_text``.

    Returns the request once it reaches ``accepted``, ``exhausted`` or
    ``aborted``. Only ``accepted`` appends a new asset to ``store``.
    """
    request = build_request(character_id, prompt_text, options, config)
    orchestrator = GenerationAttemptOrchestrator(store, synthesis, consistency, config)
    return orchestrator.run(request, cancel_event=cancel_event)
