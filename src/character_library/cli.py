"""Command line interface."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
import typer

# Load .env file for API keys
load_dotenv()

from character_library.config import PipelineConfig, load_config
from character_library.constants import SourceKind, TerminalState
from character_library.errors import ConfigError
from character_library.io.json_io import load_json
from character_library.providers import DinoConsistencyService, FalSynthesisProvider
from character_library.providers.base import ConsistencyService, SynthesisProvider
from character_library.ranking import find_best_reference
from character_library.reporting import build_generation_report, write_generation_report
from character_library.scene_intent import classify
from character_library.schemas.assets import ReferenceAsset
from character_library.schemas.requests import GenerationOptions, Thresholds
from character_library.state_machine.orchestrator import request_generation
from character_library.store import JsonRecordStore

app = typer.Typer(help="Character reference library and validated generation CLI", add_completion=False)

DEFAULT_STORE_DIR = Path("library")


def _emit(payload: dict) -> None:
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=True))


def _fail(exc: Exception) -> None:
    _emit({"error": str(exc)})
    raise typer.Exit(code=1)


def _load_pipeline_config(config: Path | None) -> PipelineConfig:
    if config is None:
        return PipelineConfig()
    return load_config(config.resolve())


def build_collaborators(config: PipelineConfig, style: str | None = None) -> tuple[SynthesisProvider, ConsistencyService]:
    """Build the HTTP adapters from API keys found in the environment."""
    settings = config.providers
    fal_key = settings.fal_api_key()
    dino_key = settings.dino_api_key()
    if not fal_key:
        raise ConfigError(f"Missing fal.ai API key (set {settings.fal_api_key_env}).")
    if not dino_key:
        raise ConfigError(f"Missing DINOv3 API key (set {settings.dino_api_key_env}).")

    synthesis = FalSynthesisProvider(
        fal_key,
        base_url=settings.fal_base_url,
        text_to_image_model=settings.fal_text_to_image_model,
        image_to_image_model=settings.fal_image_to_image_model,
        style=style or config.style,
        request_timeout_s=settings.request_timeout_s,
    )
    consistency = DinoConsistencyService(
        dino_key,
        base_url=settings.dino_base_url,
        request_timeout_s=settings.request_timeout_s,
    )
    return synthesis, consistency


def _read_assets(character_id: str, file: Path) -> list[ReferenceAsset]:
    raw: Any = load_json(file)
    if isinstance(raw, dict):
        raw = raw.get("assets", [raw])
    if not isinstance(raw, list):
        raise ValueError(f"{file} must contain an asset object or a list of assets.")
    assets: list[ReferenceAsset] = []
    for item in raw:
        item = {"owning_character_id": character_id, "source_kind": SourceKind.CORE.value, **item}
        assets.append(ReferenceAsset.model_validate(item))
    return assets


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level: DEBUG, INFO, WARNING, ERROR"),
) -> None:
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command("classify")
def classify_cmd(text: str = typer.Option(..., "--text", help="Depiction request to classify")) -> None:
    """Classify a depiction request into scene intent."""
    try:
        intent = classify(text)
    except Exception as exc:
        _fail(exc)
    _emit(intent.model_dump(mode="json"))


@app.command("rank")
def rank_cmd(
    character_id: str = typer.Option(..., "--character-id", help="Character ID"),
    text: str = typer.Option(..., "--text", help="Depiction request"),
    min_quality: float | None = typer.Option(None, "--min-quality", help="Skip candidates below this quality score"),
    store_dir: Path = typer.Option(DEFAULT_STORE_DIR, "--store-dir", help="Record store directory"),
    config: Path | None = typer.Option(None, "--config", help="Path to YAML config"),
) -> None:
    """Pick the best stored reference asset for a depiction request."""
    try:
        cfg = _load_pipeline_config(config)
        store = JsonRecordStore(store_dir)
        result = find_best_reference(
            store.list_reference_assets(character_id),
            text,
            min_quality_score=min_quality,
            config=cfg.ranking,
        )
    except Exception as exc:
        _fail(exc)
    _emit(result.model_dump(mode="json"))
    if not result.success:
        raise typer.Exit(code=1)


@app.command("ingest")
def ingest_cmd(
    character_id: str = typer.Option(..., "--character-id", help="Character ID"),
    file: Path = typer.Option(..., "--file", help="JSON file with one asset or a list of assets"),
    store_dir: Path = typer.Option(DEFAULT_STORE_DIR, "--store-dir", help="Record store directory"),
) -> None:
    """Append curated reference assets to a character gallery."""
    try:
        store = JsonRecordStore(store_dir)
        assets = _read_assets(character_id, file.resolve())
        for asset in assets:
            store.append_gallery_entry(character_id, asset)
    except Exception as exc:
        _fail(exc)
    _emit({"character_id": character_id, "ingested": [asset.id for asset in assets]})


@app.command("generate")
def generate_cmd(
    character_id: str = typer.Option(..., "--character-id", help="Character ID"),
    text: str = typer.Option(..., "--text", help="Depiction request"),
    retry_budget: int | None = typer.Option(None, "--retry-budget", help="Maximum generation attempts"),
    quality_threshold: float | None = typer.Option(None, "--quality-threshold", help="Minimum quality score"),
    consistency_threshold: float | None = typer.Option(
        None,
        "--consistency-threshold",
        help="Minimum identity-consistency score",
    ),
    seed: int | None = typer.Option(None, "--seed", help="Base seed for variation seeds"),
    style: str | None = typer.Option(None, "--style", help="Prompt style preset"),
    tag: list[str] = typer.Option([], "--tag", help="Extra tag for the generated asset (repeatable)"),
    store_dir: Path = typer.Option(DEFAULT_STORE_DIR, "--store-dir", help="Record store directory"),
    config: Path | None = typer.Option(None, "--config", help="Path to YAML config"),
    report: Path | None = typer.Option(None, "--report", help="Write a JSON generation report here"),
) -> None:
    """Generate a validated image of a character. Exits 2 when no attempt passed."""
    try:
        cfg = _load_pipeline_config(config)
        thresholds = None
        if quality_threshold is not None or consistency_threshold is not None:
            thresholds = Thresholds(
                quality=quality_threshold if quality_threshold is not None else cfg.thresholds.quality,
                consistency=(
                    consistency_threshold if consistency_threshold is not None else cfg.thresholds.consistency
                ),
            )
        options = GenerationOptions(
            thresholds=thresholds,
            retry_budget=retry_budget,
            seed=seed,
            tags=list(tag),
        )
        synthesis, consistency = build_collaborators(cfg, style)
        request = request_generation(
            character_id,
            text,
            options,
            store=JsonRecordStore(store_dir),
            synthesis=synthesis,
            consistency=consistency,
            config=cfg,
        )
        if report is not None:
            write_generation_report(report.resolve(), request, cfg)
    except Exception as exc:
        _fail(exc)

    payload = build_generation_report(request, cfg)
    if report is not None:
        payload["report"] = str(report.resolve())
    _emit(payload)
    if request.terminal_state != TerminalState.ACCEPTED:
        raise typer.Exit(code=2)


if __name__ == "__main__":
    app()
