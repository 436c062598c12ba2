from __future__ import annotations

from typing import Any

import pytest
import requests

from character_library.errors import ProviderError, ValidationServiceError
from character_library.providers import (
    ConsistencyService,
    DinoConsistencyService,
    FalSynthesisProvider,
    SynthesisArtifact,
    SynthesisProvider,
)
from character_library.providers.fal import build_fal_payload, enhance_prompt
from tests.helpers import make_asset, tele_close_up


class _FakeResponse:
    def __init__(self, payload: Any = None, status_code: int = 200, content: bytes = b""):
        self._payload = payload
        self.status_code = status_code
        self.content = content

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class TestFalSynthesisProvider:
    """Tests for FalSynthesisProvider."""

    def test_payload_uses_reference_image_and_seed(self) -> None:
        asset = tele_close_up(image_url="https://cdn.test/ava-cu.jpg")
        payload = build_fal_payload("Ava laughs", asset, 1234, style="character_turnaround")

        assert payload["image_urls"] == ["https://cdn.test/ava-cu.jpg"]
        assert payload["seed"] == 1234
        assert payload["num_images"] == 1
        assert payload["output_format"] == "jpeg"
        assert payload["prompt"].startswith("Ava laughs. Create a professional character reference sheet")

    def test_prompt_without_style_gets_default_suffix(self) -> None:
        assert enhance_prompt("Ava waits.", None) == "Ava waits. Create a high quality, detailed image."

    def test_submit_posts_to_edit_model(self, monkeypatch: pytest.MonkeyPatch) -> None:
        captured: dict[str, Any] = {}

        def fake_post(url: str, headers: dict, json: dict, timeout: float) -> _FakeResponse:
            captured.update(url=url, headers=headers, json=json, timeout=timeout)
            return _FakeResponse({"images": [{"url": "https://fal.media/out.jpg"}], "seed": 99})

        monkeypatch.setattr(requests, "post", fake_post)
        provider = FalSynthesisProvider("fal-key", request_timeout_s=12)
        artifact = provider.submit("Ava laughs", tele_close_up(image_url="https://cdn.test/ava-cu.jpg"), 5)

        assert captured["url"] == "https://fal.run/fal-ai/nano-banana/edit"
        assert captured["headers"]["Authorization"] == "Key fal-key"
        assert captured["timeout"] == 12
        assert artifact.image_url == "https://fal.media/out.jpg"
        assert artifact.seed == 99
        assert artifact.model == "fal-ai/nano-banana/edit"
        assert artifact.metadata["reference_id"] == "ava-tele-cu"

    def test_reference_without_image_uses_text_to_image(self) -> None:
        provider = FalSynthesisProvider("fal-key")
        assert provider.model_for(make_asset("bare")) == "fal-ai/nano-banana"

    @pytest.mark.parametrize(
        "response",
        [
            _FakeResponse({"images": []}),
            _FakeResponse({"detail": "bad"}, status_code=422),
            _FakeResponse(ValueError("not json")),
        ],
    )
    def test_bad_responses_raise_provider_error(self, monkeypatch: pytest.MonkeyPatch, response: _FakeResponse) -> None:
        monkeypatch.setattr(requests, "post", lambda *args, **kwargs: response)
        with pytest.raises(ProviderError):
            FalSynthesisProvider("fal-key").submit("Ava", make_asset("bare"), 1)

    def test_timeout_raises_provider_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def fake_post(*args: Any, **kwargs: Any) -> _FakeResponse:
            raise requests.Timeout("slow")

        monkeypatch.setattr(requests, "post", fake_post)
        with pytest.raises(ProviderError, match="timed out"):
            FalSynthesisProvider("fal-key").submit("Ava", make_asset("bare"), 1)

    def test_requires_api_key(self) -> None:
        with pytest.raises(ValueError):
            FalSynthesisProvider("  ")

    def test_satisfies_protocol(self) -> None:
        assert isinstance(FalSynthesisProvider("fal-key"), SynthesisProvider)


class TestDinoConsistencyService:
    """Tests for DinoConsistencyService."""

    ARTIFACT = SynthesisArtifact(artifact_ref="https://fal.media/out.jpg", image_url="https://fal.media/out.jpg")

    def _install(self, monkeypatch: pytest.MonkeyPatch, routes: dict[str, Any]) -> list[tuple[str, Any]]:
        calls: list[tuple[str, Any]] = []

        def fake_get(url: str, timeout: float) -> _FakeResponse:
            calls.append(("GET", url))
            return _FakeResponse(content=b"jpeg-bytes")

        def fake_post(url: str, headers: dict, timeout: float, json: Any = None, files: Any = None) -> _FakeResponse:
            calls.append((url, json if json is not None else files))
            assert headers["Authorization"] == "Bearer dino-key"
            path = url.removeprefix("https://dino.test")
            return routes[path]

        monkeypatch.setattr(requests, "get", fake_get)
        monkeypatch.setattr(requests, "post", fake_post)
        return calls

    def test_uploads_then_scores(self, monkeypatch: pytest.MonkeyPatch) -> None:
        calls = self._install(
            monkeypatch,
            {
                "/api/v1/upload-media": _FakeResponse({"asset_id": "dino-77"}),
                "/api/v1/analyze-quality": _FakeResponse({"quality_score": 81.5}),
                "/api/v1/validate-consistency": _FakeResponse({"similarity_score": 88, "explanation": "same face"}),
            },
        )
        service = DinoConsistencyService("dino-key", base_url="https://dino.test/")

        scores = service.score(self.ARTIFACT, "dino-primary")

        assert scores.quality_score == 81.5
        assert scores.similarity_score == 88
        assert scores.explanation == "same face"
        assert scores.embedding_ref == "dino-77"
        assert calls[0] == ("GET", "https://fal.media/out.jpg")
        upload_url, files = calls[1]
        assert upload_url == "https://dino.test/api/v1/upload-media"
        assert files["file"][0] == "out.jpg"
        assert files["file"][1] == b"jpeg-bytes"
        assert calls[2] == ("https://dino.test/api/v1/analyze-quality", {"asset_id": "dino-77"})
        assert calls[3] == (
            "https://dino.test/api/v1/validate-consistency",
            {"reference_asset_id": "dino-primary", "test_asset_id": "dino-77"},
        )

    def test_registered_artifact_skips_upload(self, monkeypatch: pytest.MonkeyPatch) -> None:
        calls = self._install(
            monkeypatch,
            {
                "/api/v1/analyze-quality": _FakeResponse({"quality_score": 90}),
                "/api/v1/validate-consistency": _FakeResponse({"similarity_score": 95}),
            },
        )
        artifact = SynthesisArtifact(artifact_ref="x", metadata={"embedding_ref": "dino-known"})

        DinoConsistencyService("dino-key", base_url="https://dino.test").score(artifact, "dino-primary")

        assert [url for url, _ in calls] == [
            "https://dino.test/api/v1/analyze-quality",
            "https://dino.test/api/v1/validate-consistency",
        ]

    def test_missing_similarity_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        self._install(
            monkeypatch,
            {
                "/api/v1/upload-media": _FakeResponse({"asset_id": "dino-77"}),
                "/api/v1/analyze-quality": _FakeResponse({"quality_score": 90}),
                "/api/v1/validate-consistency": _FakeResponse({"error": "no face"}),
            },
        )
        with pytest.raises(ValidationServiceError, match="similarity_score"):
            DinoConsistencyService("dino-key", base_url="https://dino.test").score(self.ARTIFACT, "dino-primary")

    def test_http_error_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        self._install(monkeypatch, {"/api/v1/upload-media": _FakeResponse({}, status_code=503)})
        with pytest.raises(ValidationServiceError, match="upload failed"):
            DinoConsistencyService("dino-key", base_url="https://dino.test").score(self.ARTIFACT, "dino-primary")

    def test_artifact_without_image_cannot_be_uploaded(self) -> None:
        service = DinoConsistencyService("dino-key")
        with pytest.raises(ValidationServiceError, match="no image_url"):
            service.score(SynthesisArtifact(artifact_ref="x"), "dino-primary")

    def test_satisfies_protocol(self) -> None:
        assert isinstance(DinoConsistencyService("dino-key"), ConsistencyService)
