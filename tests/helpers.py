from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Any

from character_library.constants import SourceKind
from character_library.errors import ProviderError
from character_library.io.json_io import dump_canonical_json
from character_library.providers.base import ConsistencyScores, SynthesisArtifact
from character_library.schemas.assets import ReferenceAsset

CHARACTER_ID = "char-ava"


def write_json(path: Path, payload: Any) -> Path:
    dump_canonical_json(path, payload)
    return path


def write_config(path: Path, overrides: dict[str, Any] | None = None) -> Path:
    payload: dict[str, Any] = {
        "project_name": "test-character-library",
        "thresholds": {"quality": 70, "consistency": 85},
        "retry": {"retry_budget": 3, "call_timeout_s": 5},
    }
    if overrides:
        payload.update(overrides)
    out = path / "config.yaml"
    # JSON is valid YAML.
    write_json(out, payload)
    return out


def make_asset(asset_id: str, **overrides: Any) -> ReferenceAsset:
    fields: dict[str, Any] = {
        "id": asset_id,
        "owning_character_id": CHARACTER_ID,
        "source_kind": SourceKind.CORE,
    }
    fields.update(overrides)
    return ReferenceAsset.model_validate(fields)


def primary_asset(**overrides: Any) -> ReferenceAsset:
    """Generic front-facing portrait with no shot metadata."""
    fields: dict[str, Any] = {"source_kind": SourceKind.PRIMARY, "quality_score": 90}
    fields.update(overrides)
    return make_asset("ava-primary", **fields)


def tele_close_up(**overrides: Any) -> ReferenceAsset:
    fields: dict[str, Any] = {
        "focal_length_mm": 85,
        "crop": "cu",
        "camera_angle_deg": 0,
        "gaze": "off_camera",
        "expression": "gentle",
        "free_tags": ["emotional", "close"],
        "quality_score": 80,
    }
    fields.update(overrides)
    return make_asset("ava-tele-cu", **fields)


def wide_action(**overrides: Any) -> ReferenceAsset:
    fields: dict[str, Any] = {
        "focal_length_mm": 24,
        "crop": "full",
        "camera_angle_deg": 45,
        "gaze": "off_camera",
        "expression": "determined",
        "free_tags": ["action_sequences"],
        "quality_score": 78,
    }
    fields.update(overrides)
    return make_asset("ava-wide-action", **fields)


def sample_gallery() -> list[ReferenceAsset]:
    return [primary_asset(), tele_close_up(), wide_action()]


class FakeSynthesisProvider:
    """Returns a new artifact per call; fails on the listed 1-based call numbers."""

    def __init__(self, fail_on: set[int] | None = None, delay_s: float = 0.0, on_call=None):
        self.fail_on = fail_on or set()
        self.delay_s = delay_s
        self.on_call = on_call
        self.calls: list[tuple[str, str, int]] = []
        self._lock = threading.Lock()

    def submit(self, prompt_text: str, reference: ReferenceAsset, seed: int) -> SynthesisArtifact:
        with self._lock:
            self.calls.append((prompt_text, reference.id, seed))
            number = len(self.calls)
        if self.on_call is not None:
            self.on_call(number)
        if self.delay_s:
            time.sleep(self.delay_s)
        if number in self.fail_on:
            raise ProviderError(f"synthetic provider failure on call {number}")
        return SynthesisArtifact(
            artifact_ref=f"artifact-{number}",
            image_url=f"https://images.test/artifact-{number}.jpg",
            seed=seed,
            model="fake-model",
        )


class FakeConsistencyService:
    """Replays scripted (quality, similarity) pairs; an Exception entry is raised instead."""

    def __init__(self, script: list[Any] | None = None):
        self.script = list(script or [(90.0, 92.0)])
        self.calls: list[tuple[str, str]] = []

    def score(self, artifact: SynthesisArtifact, baseline_ref: str) -> ConsistencyScores:
        self.calls.append((artifact.artifact_ref, baseline_ref))
        index = min(len(self.calls), len(self.script)) - 1
        entry = self.script[index]
        if isinstance(entry, Exception):
            raise entry
        quality, similarity = entry
        return ConsistencyScores(
            quality_score=quality,
            similarity_score=similarity,
            explanation="scripted",
            embedding_ref=f"emb-{artifact.artifact_ref}",
        )
