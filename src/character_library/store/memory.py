"""In-process record store."""

from __future__ import annotations

import threading

from character_library.errors import RecordStoreError
from character_library.schemas.assets import ReferenceAsset
from character_library.store.base import check_character_id, check_owner


class InMemoryRecordStore:
    def __init__(self, assets: list[ReferenceAsset] | None = None):
        self._lock = threading.Lock()
        self._galleries: dict[str, list[ReferenceAsset]] = {}
        for asset in assets or []:
            self.append_gallery_entry(asset.owning_character_id, asset)

    def append_gallery_entry(self, character_id: str, asset: ReferenceAsset) -> None:
        check_character_id(character_id)
        check_owner(character_id, asset)
        with self._lock:
            gallery = self._galleries.setdefault(character_id, [])
            if any(existing.id == asset.id for existing in gallery):
                raise RecordStoreError(f"Asset {asset.id} already exists for {character_id}.")
            gallery.append(asset)

    def list_reference_assets(self, character_id: str) -> list[ReferenceAsset]:
        with self._lock:
            return list(self._galleries.get(character_id, []))

    def get_primary_asset(self, character_id: str) -> ReferenceAsset | None:
        primaries = [asset for asset in self.list_reference_assets(character_id) if asset.is_primary]
        return primaries[-1] if primaries else None
