"""File-backed record store.

Layout under ``base_dir``::

    characters/<character_id>/gallery.jsonl   one ReferenceAsset per line
    characters/<character_id>/events.jsonl    append log of gallery writes

Lines are only ever appended. The primary asset is the most recently
appended entry whose ``source_kind`` is ``primary``.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path

from pydantic import ValidationError

from character_library.errors import RecordStoreError
from character_library.io.json_io import append_jsonl, iter_jsonl
from character_library.schemas.assets import ReferenceAsset, utc_now_iso
from character_library.store.base import check_character_id, check_owner


logger = logging.getLogger(__name__)


class JsonRecordStore:
    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)
        self._lock = threading.Lock()

    def character_dir(self, character_id: str) -> Path:
        return self.base_dir / "characters" / check_character_id(character_id)

    def gallery_path(self, character_id: str) -> Path:
        return self.character_dir(character_id) / "gallery.jsonl"

    def events_path(self, character_id: str) -> Path:
        return self.character_dir(character_id) / "events.jsonl"

    def append_event(self, character_id: str, event_type: str, payload: dict) -> None:
        line = {"at": utc_now_iso(), "event": event_type, "payload": payload}
        try:
            append_jsonl(self.events_path(character_id), line)
        except OSError as exc:
            raise RecordStoreError(f"Cannot write events for {character_id}: {exc}") from exc

    def _read_gallery(self, character_id: str) -> list[ReferenceAsset]:
        path = self.gallery_path(character_id)
        try:
            return [ReferenceAsset.model_validate(item) for item in iter_jsonl(path)]
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            raise RecordStoreError(f"Corrupt gallery {path}: {exc}") from exc

    def append_gallery_entry(self, character_id: str, asset: ReferenceAsset) -> None:
        check_owner(character_id, asset)
        with self._lock:
            if any(existing.id == asset.id for existing in self._read_gallery(character_id)):
                raise RecordStoreError(f"Asset {asset.id} already exists for {character_id}.")
            try:
                append_jsonl(self.gallery_path(character_id), asset.model_dump(mode="json"))
            except OSError as exc:
                raise RecordStoreError(f"Cannot append to gallery for {character_id}: {exc}") from exc
            self.append_event(
                character_id,
                "gallery_entry_appended",
                {"asset_id": asset.id, "source_kind": asset.source_kind.value},
            )
        logger.info(f"Appended {asset.source_kind.value} asset {asset.id} to {character_id} gallery")

    def list_reference_assets(self, character_id: str) -> list[ReferenceAsset]:
        with self._lock:
            return self._read_gallery(character_id)

    def get_primary_asset(self, character_id: str) -> ReferenceAsset | None:
        primaries = [asset for asset in self.list_reference_assets(character_id) if asset.is_primary]
        return primaries[-1] if primaries else None
