"""Tests for the AI image providers (all HTTP calls mocked)."""

from __future__ import annotations

import base64
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from covergen.errors import (
    ConfigurationMissing,
    ProviderInvalidResponse,
    ProviderRequestError,
    ProviderSafetyBlock,
    ProviderTimeout,
)
from covergen.models import PromptAttempt
from covergen.providers import PROVIDERS, get_provider
from covergen.providers.base import ANTI_TEXT_SUFFIX
from covergen.providers.gemini import parse_generate_content
from covergen.providers.hailuo import parse_image_response

IMAGE_BYTES = b"\x89PNG fake image payload"
IMAGE_B64 = base64.b64encode(IMAGE_BYTES).decode()


@pytest.fixture
def attempt():
    return PromptAttempt(prompt="Escena de prueba", negative="", level="contextual")


def _json_response(payload: dict, status: int = 200, url: str = "http://localhost") -> httpx.Response:
    return httpx.Response(status, json=payload, request=httpx.Request("POST", url))


def _mock_client(mock_client_cls, post=None, get_content: bytes | None = None):
    mock_client = AsyncMock()
    if isinstance(post, Exception):
        mock_client.post.side_effect = post
    else:
        mock_client.post.return_value = post
    if get_content is not None:
        mock_get = MagicMock()
        mock_get.content = get_content
        mock_get.raise_for_status = MagicMock()
        mock_client.get.return_value = mock_get
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    mock_client_cls.return_value = mock_client
    return mock_client


def test_registry_has_all_providers():
    assert {"internal", "dall-e-3", "dall-e-2", "hailuo", "gemini"} <= set(PROVIDERS)


def test_unknown_provider_raises(sample_config):
    with pytest.raises(ConfigurationMissing):
        get_provider(sample_config, "midjourney")


@pytest.mark.asyncio
async def test_missing_api_key_raises(attempt, sample_request):
    provider = get_provider({}, "dall-e-3")
    with pytest.raises(ConfigurationMissing) as exc_info:
        await provider.generate(attempt, sample_request)
    assert exc_info.value.user_facing is True


# --- OpenAI ---

@pytest.mark.asyncio
@patch("covergen.providers.openai_images.httpx.AsyncClient")
async def test_openai_generate_b64(mock_client_cls, sample_config, attempt, sample_request):
    mock_client = _mock_client(
        mock_client_cls,
        _json_response({"data": [{"b64_json": IMAGE_B64, "revised_prompt": "revised"}]}),
    )
    provider = get_provider(sample_config, "dall-e-3")
    result = await provider.generate(attempt, sample_request)

    assert result.ok is True
    assert result.image_bytes == IMAGE_BYTES
    assert result.provider == "dall-e-3"
    assert result.kind == "ai"
    assert result.cost_usd == 0.04
    assert result.metadata["revised_prompt"] == "revised"

    args, kwargs = mock_client.post.call_args
    assert args[0] == "http://localhost:9999/v1/images/generations"
    payload = kwargs["json"]
    assert payload["model"] == "dall-e-3"
    assert payload["size"] == "1792x1024"
    assert payload["quality"] == "standard"
    assert payload["prompt"].endswith(ANTI_TEXT_SUFFIX)
    assert kwargs["headers"]["Authorization"] == "Bearer test-key"


@pytest.mark.asyncio
@patch("covergen.providers.openai_images.httpx.AsyncClient")
async def test_dalle2_uses_square_size(mock_client_cls, sample_config, attempt, sample_request):
    mock_client = _mock_client(
        mock_client_cls, _json_response({"data": [{"b64_json": IMAGE_B64}]}),
    )
    provider = get_provider(sample_config, "dall-e-2")
    result = await provider.generate(attempt, sample_request)

    payload = mock_client.post.call_args.kwargs["json"]
    assert payload["model"] == "dall-e-2"
    assert payload["size"] == "1024x1024"
    assert "quality" not in payload
    assert result.cost_usd == 0.02


@pytest.mark.asyncio
@patch("covergen.providers.openai_images.httpx.AsyncClient")
async def test_openai_downloads_url_response(mock_client_cls, sample_config, attempt, sample_request):
    mock_client = _mock_client(
        mock_client_cls,
        _json_response({"data": [{"url": "http://cdn.example.com/img.png"}]}),
        get_content=IMAGE_BYTES,
    )
    provider = get_provider(sample_config, "dall-e-3")
    result = await provider.generate(attempt, sample_request)

    assert result.image_bytes == IMAGE_BYTES
    assert result.image_url == "http://cdn.example.com/img.png"
    mock_client.get.assert_called_once_with("http://cdn.example.com/img.png")


@pytest.mark.asyncio
@patch("covergen.providers.openai_images.httpx.AsyncClient")
async def test_openai_content_policy_is_safety_block(
    mock_client_cls, sample_config, attempt, sample_request,
):
    _mock_client(mock_client_cls, _json_response(
        {"error": {"code": "content_policy_violation", "message": "Rejected"}}, status=400,
    ))
    provider = get_provider(sample_config, "dall-e-3")
    with pytest.raises(ProviderSafetyBlock) as exc_info:
        await provider.generate(attempt, sample_request)
    assert provider.is_retryable(exc_info.value)


@pytest.mark.asyncio
@patch("covergen.providers.openai_images.httpx.AsyncClient")
async def test_openai_safety_message_is_safety_block(
    mock_client_cls, sample_config, attempt, sample_request,
):
    _mock_client(mock_client_cls, _json_response(
        {"error": {"message": "Your request was rejected by our safety system."}}, status=400,
    ))
    provider = get_provider(sample_config, "dall-e-3")
    with pytest.raises(ProviderSafetyBlock):
        await provider.generate(attempt, sample_request)


@pytest.mark.asyncio
@patch("covergen.providers.openai_images.httpx.AsyncClient")
async def test_openai_auth_failure(mock_client_cls, sample_config, attempt, sample_request):
    _mock_client(mock_client_cls, _json_response(
        {"error": {"message": "Incorrect API key"}}, status=401,
    ))
    provider = get_provider(sample_config, "dall-e-3")
    with pytest.raises(ProviderRequestError) as exc_info:
        await provider.generate(attempt, sample_request)
    assert exc_info.value.code == "AUTH_FAILED"
    assert not provider.is_retryable(exc_info.value)


@pytest.mark.asyncio
@patch("covergen.providers.openai_images.httpx.AsyncClient")
async def test_openai_timeout(mock_client_cls, sample_config, attempt, sample_request):
    mock_client = _mock_client(mock_client_cls, httpx.ReadTimeout("slow"))
    provider = get_provider(sample_config, "dall-e-3")
    with pytest.raises(ProviderTimeout) as exc_info:
        await provider.generate(attempt, sample_request)
    assert exc_info.value.code == "TIMEOUT"
    assert mock_client.post.call_count == 1


@pytest.mark.asyncio
@patch("covergen.providers.openai_images.httpx.AsyncClient")
async def test_openai_empty_data(mock_client_cls, sample_config, attempt, sample_request):
    _mock_client(mock_client_cls, _json_response({"data": []}))
    provider = get_provider(sample_config, "dall-e-3")
    with pytest.raises(ProviderInvalidResponse):
        await provider.generate(attempt, sample_request)


# --- Hailuo ---

@pytest.mark.asyncio
@patch("covergen.providers.hailuo.httpx.AsyncClient")
async def test_hailuo_generate(mock_client_cls, sample_config, attempt, sample_request):
    mock_client = _mock_client(
        mock_client_cls,
        _json_response({
            "data": {"image_urls": ["http://cdn.example.com/a.jpeg"]},
            "base_resp": {"status_code": 0, "status_msg": "success"},
        }),
        get_content=IMAGE_BYTES,
    )
    provider = get_provider(sample_config, "hailuo")
    result = await provider.generate(attempt, sample_request)

    assert result.image_bytes == IMAGE_BYTES
    assert result.cost_usd == 0.0035
    args, kwargs = mock_client.post.call_args
    assert args[0] == "http://localhost:9998/v1/image_generation"
    assert kwargs["json"]["aspect_ratio"] == "16:9"
    assert kwargs["json"]["model"] == "image-01"


@pytest.mark.asyncio
@patch("covergen.providers.hailuo.httpx.AsyncClient")
async def test_hailuo_sensitive_content(mock_client_cls, sample_config, attempt, sample_request):
    _mock_client(mock_client_cls, _json_response({
        "base_resp": {"status_code": 1026, "status_msg": "input new_sensitive"},
    }))
    provider = get_provider(sample_config, "hailuo")
    with pytest.raises(ProviderSafetyBlock):
        await provider.generate(attempt, sample_request)


def test_hailuo_other_status_is_request_error():
    with pytest.raises(ProviderRequestError):
        parse_image_response({"base_resp": {"status_code": 1008, "status_msg": "insufficient balance"}})


@pytest.mark.parametrize("payload", [
    {"data": {"image_urls": ["http://x/1.jpg"]}},
    {"image_urls": ["http://x/1.jpg"]},
    {"data": {"images": [{"url": "http://x/1.jpg"}]}},
    {"data": [{"url": "http://x/1.jpg"}]},
])
def test_hailuo_url_shapes(payload):
    assert parse_image_response(payload).url == "http://x/1.jpg"


def test_hailuo_base64_shape():
    image = parse_image_response({"data": {"image_base64": [IMAGE_B64]}})
    assert image.b64 == IMAGE_B64
    assert image.url is None


def test_hailuo_no_image():
    with pytest.raises(ProviderInvalidResponse):
        parse_image_response({"data": {}})


@pytest.mark.parametrize("payload", [
    {"base_resp": "oops"},
    {"base_resp": {"status_code": "1026"}},
    ["not", "an", "object"],
])
def test_hailuo_malformed_body_is_invalid_response(payload):
    with pytest.raises(ProviderInvalidResponse):
        parse_image_response(payload)


# --- Gemini ---

def _gemini_payload(**candidate):
    base = {
        "content": {"parts": [
            {"text": "Aquí está la imagen"},
            {"inlineData": {"mimeType": "image/png", "data": IMAGE_B64}},
        ]},
        "finishReason": "STOP",
    }
    base.update(candidate)
    return {"candidates": [base]}


@pytest.mark.asyncio
@patch("covergen.providers.gemini.httpx.AsyncClient")
async def test_gemini_generate(mock_client_cls, sample_config, attempt, sample_request):
    mock_client = _mock_client(mock_client_cls, _json_response(_gemini_payload()))
    provider = get_provider(sample_config, "gemini")
    result = await provider.generate(attempt, sample_request)

    assert result.image_bytes == IMAGE_BYTES
    assert result.metadata["mime_type"] == "image/png"
    args, kwargs = mock_client.post.call_args
    assert args[0].startswith("http://localhost:9997/v1beta/models/")
    assert args[0].endswith(":generateContent")
    assert kwargs["headers"]["x-goog-api-key"] == "test-key"
    assert kwargs["json"]["generationConfig"]["responseModalities"] == ["TEXT", "IMAGE"]


def test_gemini_prompt_block():
    with pytest.raises(ProviderSafetyBlock):
        parse_generate_content({"promptFeedback": {"blockReason": "SAFETY"}})


def test_gemini_safety_finish_reason():
    with pytest.raises(ProviderSafetyBlock):
        parse_generate_content(_gemini_payload(finishReason="IMAGE_SAFETY"))


def test_gemini_text_only_response():
    payload = {"candidates": [{"content": {"parts": [{"text": "No puedo"}]}}]}
    with pytest.raises(ProviderInvalidResponse):
        parse_generate_content(payload)


def test_gemini_no_candidates():
    with pytest.raises(ProviderInvalidResponse):
        parse_generate_content({"candidates": []})


@pytest.mark.parametrize("payload", [
    {"promptFeedback": "blocked"},
    {"candidates": "oops"},
    {"candidates": ["oops"]},
    {"candidates": [{"content": {"parts": ["oops"]}}]},
    {"candidates": [{"content": {"parts": [{"inlineData": "oops"}]}}]},
    {"candidates": [{"finishReason": ["SAFETY"], "content": "oops"}]},
])
def test_gemini_malformed_body_is_invalid_response(payload):
    with pytest.raises(ProviderInvalidResponse):
        parse_generate_content(payload)


def test_gemini_skips_malformed_parts():
    payload = {"candidates": [{"content": {"parts": [
        "oops",
        {"inlineData": {"mimeType": "image/png", "data": IMAGE_B64}},
    ]}}]}
    assert parse_generate_content(payload).data == IMAGE_B64
