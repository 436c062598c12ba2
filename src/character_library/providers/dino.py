"""DINOv3 embedding service adapter for quality and identity-consistency scores."""

from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import Any
from urllib.parse import urlparse

import requests

from character_library.errors import ValidationServiceError
from character_library.providers.base import ConsistencyScores, SynthesisArtifact


logger = logging.getLogger(__name__)


def _filename_for(artifact: SynthesisArtifact) -> str:
    if artifact.image_url:
        name = PurePosixPath(urlparse(artifact.image_url).path).name
        if name:
            return name
    return f"{artifact.artifact_ref[-24:].replace('/', '_')}.jpg"


class DinoConsistencyService:
    """Uploads an artifact once, then asks for its quality and its similarity to a baseline."""

    def __init__(self, api_key: str, *, base_url: str = "https://dino.ft.tc", request_timeout_s: float = 60.0):
        if not api_key.strip():
            raise ValueError("api_key must be provided.")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.request_timeout_s = request_timeout_s

    def _headers(self, json_body: bool = False) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    def _post_json(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = requests.post(url, headers=self._headers(json_body=True), json=payload, timeout=self.request_timeout_s)
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as exc:
            raise ValidationServiceError(f"DINOv3 request to {path} failed: {exc}") from exc
        except ValueError as exc:
            raise ValidationServiceError(f"DINOv3 {path} returned a non-JSON response.") from exc
        if not isinstance(body, dict):
            raise ValidationServiceError(f"DINOv3 {path} response is not a JSON object.")
        return body

    def upload_artifact(self, artifact: SynthesisArtifact) -> str:
        """Register the artifact with the service and return its asset id."""
        existing = artifact.metadata.get("embedding_ref")
        if existing:
            return str(existing)
        if not artifact.image_url:
            raise ValidationServiceError(f"Artifact {artifact.artifact_ref} has no image_url to upload.")

        try:
            download = requests.get(artifact.image_url, timeout=self.request_timeout_s)
            download.raise_for_status()
            filename = _filename_for(artifact)
            response = requests.post(
                f"{self.base_url}/api/v1/upload-media",
                headers=self._headers(),
                files={"file": (filename, download.content, "image/jpeg")},
                timeout=self.request_timeout_s,
            )
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as exc:
            raise ValidationServiceError(f"DINOv3 upload failed: {exc}") from exc
        except ValueError as exc:
            raise ValidationServiceError("DINOv3 upload returned a non-JSON response.") from exc

        asset_id = body.get("asset_id") if isinstance(body, dict) else None
        if not asset_id:
            raise ValidationServiceError(f"asset_id missing in upload response: {body}")
        return str(asset_id)

    def analyze_quality(self, asset_id: str) -> float:
        body = self._post_json("/api/v1/analyze-quality", {"asset_id": asset_id})
        if "quality_score" not in body:
            raise ValidationServiceError(f"quality_score missing in response: {body}")
        return body["quality_score"]

    def validate_consistency(self, test_asset_id: str, reference_asset_id: str) -> dict[str, Any]:
        body = self._post_json(
            "/api/v1/validate-consistency",
            {"reference_asset_id": reference_asset_id, "test_asset_id": test_asset_id},
        )
        if "similarity_score" not in body:
            raise ValidationServiceError(f"similarity_score missing in response: {body}")
        return body

    def score(self, artifact: SynthesisArtifact, baseline_ref: str) -> ConsistencyScores:
        asset_id = self.upload_artifact(artifact)
        quality = self.analyze_quality(asset_id)
        consistency = self.validate_consistency(asset_id, baseline_ref)
        logger.debug(f"DINOv3 scored {asset_id}: quality={quality} similarity={consistency['similarity_score']}")
        return ConsistencyScores(
            quality_score=quality,
            similarity_score=consistency["similarity_score"],
            explanation=str(consistency.get("explanation", "")),
            embedding_ref=asset_id,
        )
