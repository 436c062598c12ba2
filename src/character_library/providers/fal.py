"""fal.ai image synthesis adapter (nano-banana text-to-image / edit)."""

from __future__ import annotations

import logging
from typing import Any

import requests

from character_library.errors import ProviderError
from character_library.providers.base import SynthesisArtifact
from character_library.schemas.assets import ReferenceAsset


logger = logging.getLogger(__name__)


STYLE_SUFFIXES = {
    "character_turnaround": (
        "Create a professional character reference sheet with clean background, "
        "consistent lighting, high quality and detailed features."
    ),
    "character_production": (
        "Create a cinematic quality image with professional lighting, high detail, "
        "and production-ready quality."
    ),
}
DEFAULT_STYLE_SUFFIX = "Create a high quality, detailed image."


def enhance_prompt(prompt_text: str, style: str | None) -> str:
    suffix = STYLE_SUFFIXES.get(style or "", DEFAULT_STYLE_SUFFIX)
    return f"{prompt_text.rstrip('. ')}. {suffix}"


def build_fal_payload(
    prompt_text: str,
    reference: ReferenceAsset | None,
    seed: int | None,
    *,
    style: str | None = None,
) -> dict[str, Any]:
    """Build a fal.run request body.

    A reference with an ``image_url`` switches the call to image-to-image by
    passing ``image_urls``.
    """
    payload: dict[str, Any] = {
        "prompt": enhance_prompt(prompt_text, style),
        "num_images": 1,
        "output_format": "jpeg",
    }
    if seed is not None:
        payload["seed"] = seed
    if reference is not None and reference.image_url:
        payload["image_urls"] = [reference.image_url]
    return payload


class FalSynthesisProvider:
    """Blocking client for fal.run synchronous endpoints."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://fal.run",
        text_to_image_model: str = "fal-ai/nano-banana",
        image_to_image_model: str = "fal-ai/nano-banana/edit",
        style: str | None = "character_production",
        request_timeout_s: float = 60.0,
    ):
        if not api_key.strip():
            raise ValueError("api_key must be provided.")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.text_to_image_model = text_to_image_model
        self.image_to_image_model = image_to_image_model
        self.style = style
        self.request_timeout_s = request_timeout_s

    def model_for(self, reference: ReferenceAsset | None) -> str:
        if reference is not None and reference.image_url:
            return self.image_to_image_model
        return self.text_to_image_model

    def submit(self, prompt_text: str, reference: ReferenceAsset, seed: int) -> SynthesisArtifact:
        model = self.model_for(reference)
        payload = build_fal_payload(prompt_text, reference, seed, style=self.style)
        url = f"{self.base_url}/{model}"
        headers = {
            "Authorization": f"Key {self.api_key}",
            "Content-Type": "application/json",
        }
        logger.info(f"Generating image with {model}: {prompt_text[:50]}...")
        try:
            response = requests.post(url, headers=headers, json=payload, timeout=self.request_timeout_s)
            response.raise_for_status()
            body = response.json()
        except requests.Timeout as exc:
            raise ProviderError(f"fal.ai request timed out after {self.request_timeout_s}s") from exc
        except requests.RequestException as exc:
            raise ProviderError(f"fal.ai request failed: {exc}") from exc
        except ValueError as exc:
            raise ProviderError("fal.ai returned a non-JSON response.") from exc

        images = body.get("images") if isinstance(body, dict) else None
        if not images or not isinstance(images[0], dict) or not images[0].get("url"):
            raise ProviderError(f"No images returned from fal.ai: {str(body)[:200]}")

        image_url = str(images[0]["url"])
        return SynthesisArtifact(
            artifact_ref=image_url,
            image_url=image_url,
            seed=body.get("seed", seed),
            model=model,
            metadata={"reference_id": reference.id, "prompt": payload["prompt"]},
        )
