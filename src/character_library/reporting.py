"""Reporting helpers."""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Any

from character_library.config import PipelineConfig, config_dict_for_hash
from character_library.constants import AttemptOutcome
from character_library.io.hashing import sha256_json
from character_library.io.json_io import dump_canonical_json
from character_library.schemas.requests import GenerationRequest


def build_generation_report(request: GenerationRequest, config: PipelineConfig | None = None) -> dict[str, Any]:
    payload = request.model_dump(mode="json")
    counts = Counter(attempt.outcome.value for attempt in request.attempts)
    passed = counts.get(AttemptOutcome.SUCCESS.value, 0)

    return {
        "request_id": request.request_id,
        "character_id": request.character_id,
        "prompt_text": request.prompt_text,
        "terminal_state": request.terminal_state.value if request.terminal_state else None,
        "thresholds": payload["thresholds"],
        "retry_budget": request.retry_budget,
        "attempts_used": request.attempts_used,
        "passed": passed,
        "failed": request.attempts_used - passed,
        "outcome_counts": dict(sorted(counts.items())),
        "attempts": [
            {
                "attempt": attempt.attempt_number,
                "candidate_id": attempt.candidate_id,
                "strategy": attempt.strategy.value,
                "outcome": attempt.outcome.value,
                "quality_score": attempt.quality_score,
                "consistency_score": attempt.consistency_score,
                "reason": attempt.reason,
            }
            for attempt in request.attempts
        ],
        "ranked_candidate_ids": list(request.ranked_candidate_ids),
        "accepted_asset_id": request.accepted_asset.id if request.accepted_asset else None,
        "failure_reasons": list(request.failure_reasons),
        "created_at": request.created_at,
        "finished_at": request.finished_at,
        "request_hash": sha256_json(payload),
        "config_hash": sha256_json(config_dict_for_hash(config)) if config is not None else None,
    }


def write_generation_report(output_path: Path, request: GenerationRequest, config: PipelineConfig | None = None) -> Path:
    dump_canonical_json(output_path, build_generation_report(request, config))
    return output_path
