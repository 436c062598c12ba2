"""Record store contract for character galleries."""

from __future__ import annotations

import re
from typing import Protocol, runtime_checkable

from character_library.errors import RecordStoreError
from character_library.schemas.assets import ReferenceAsset


CHARACTER_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


def check_character_id(character_id: str) -> str:
    if not CHARACTER_ID_PATTERN.match(character_id or "") or ".." in character_id:
        raise RecordStoreError(f"Invalid character id: {character_id!r}")
    return character_id


def check_owner(character_id: str, asset: ReferenceAsset) -> None:
    if asset.owning_character_id != character_id:
        raise RecordStoreError(
            f"Asset {asset.id} belongs to {asset.owning_character_id}, not {character_id}."
        )


@runtime_checkable
class RecordStore(Protocol):
    """Append-only gallery of reference assets, keyed by character."""

    def append_gallery_entry(self, character_id: str, asset: ReferenceAsset) -> None: ...

    def list_reference_assets(self, character_id: str) -> list[ReferenceAsset]: ...

    def get_primary_asset(self, character_id: str) -> ReferenceAsset | None: ...
