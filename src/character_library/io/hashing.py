"""Hash helpers."""

from __future__ import annotations

import hashlib
import json
from typing import Any


def sha256_bytes(payload: bytes) -> str:
    return hashlib.sha256(payload).hexdigest()


def sha256_json(data: Any) -> str:
    canonical = json.dumps(data, sort_keys=True, ensure_ascii=True, separators=(",", ":"))
    return sha256_bytes(canonical.encode("utf-8"))


def derive_seed(*parts: Any, modulus: int = 2**31 - 1) -> int:
    """Deterministic non-negative integer seed from arbitrary JSON-able parts."""
    digest = sha256_json([str(part) for part in parts])
    return int(digest[:16], 16) % modulus
