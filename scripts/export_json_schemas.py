#!/usr/bin/env python
"""Export JSON Schemas for the gallery and generation records."""

from __future__ import annotations

from pathlib import Path

from character_library.config import PipelineConfig
from character_library.io.json_io import dump_canonical_json
from character_library.schemas.assets import ReferenceAsset, ReferenceSearchResult
from character_library.schemas.intent import SceneIntent
from character_library.schemas.requests import AttemptRecord, GenerationRequest

PUBLIC_MODELS = {
    "reference_asset": ReferenceAsset,
    "scene_intent": SceneIntent,
    "reference_search_result": ReferenceSearchResult,
    "attempt_record": AttemptRecord,
    "generation_request": GenerationRequest,
    "pipeline_config": PipelineConfig,
}


def main() -> None:
    root = Path(__file__).resolve().parents[1]
    out_dir = root / "schemas"
    for name, model in PUBLIC_MODELS.items():
        out_path = out_dir / f"{name}.schema.json"
        dump_canonical_json(out_path, model.model_json_schema())
        print("wrote", out_path)


if __name__ == "__main__":
    main()
