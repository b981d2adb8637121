"""Hailuo (MiniMax image-01) provider."""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass

import httpx

from covergen.errors import (
    GenerationError,
    ProviderInvalidResponse,
    ProviderRequestError,
    ProviderSafetyBlock,
)
from covergen.models import GenerationRequest, PromptAttempt, ProviderResult
from covergen.providers import register_provider
from covergen.providers.base import BaseImageProvider, download_bytes

logger = logging.getLogger(__name__)

# base_resp status codes for sensitive input / output
SENSITIVE_STATUS_CODES = {1026, 1027}
DOWNLOAD_TIMEOUT = 30


@dataclass
class HailuoImage:
    """One image out of a MiniMax response: a CDN url or inline base64."""

    url: str | None = None
    b64: str | None = None


def _dig(data, *path):
    for key in path:
        if isinstance(key, int):
            if not isinstance(data, list) or len(data) <= key:
                return None
        elif not isinstance(data, dict):
            return None
        data = data[key] if isinstance(key, int) else data.get(key)
    return data


# Shapes seen across image-01 API revisions
_URL_PATHS = [
    ("data", "image_urls", 0),
    ("image_urls", 0),
    ("data", "images", 0, "url"),
    ("images", 0, "url"),
    ("data", 0, "url"),
]
_B64_PATHS = [
    ("data", "image_base64", 0),
    ("image_base64", 0),
    ("data", "images", 0, "b64_json"),
    ("data", 0, "b64_json"),
]


def check_base_resp(data: dict) -> None:
    """Raise the mapped error when MiniMax reports a non-zero status."""
    if not isinstance(data, dict):
        raise ProviderInvalidResponse("Hailuo response is not an object", provider="hailuo")
    base_resp = data.get("base_resp") or {}
    if not isinstance(base_resp, dict):
        raise ProviderInvalidResponse("Hailuo base_resp is not an object", provider="hailuo")
    status = base_resp.get("status_code", data.get("code", 0)) or 0
    if not isinstance(status, int):
        raise ProviderInvalidResponse(
            f"Hailuo status is not a number: {status!r}", provider="hailuo",
        )
    if status == 0:
        return
    message = str(base_resp.get("status_msg") or data.get("msg") or f"status {status}")
    if status in SENSITIVE_STATUS_CODES or "sensitive" in message.lower():
        raise ProviderSafetyBlock(f"Hailuo content block: {message}", provider="hailuo")
    raise ProviderRequestError(f"Hailuo error {status}: {message}", provider="hailuo")


def parse_image_response(data: dict) -> HailuoImage:
    check_base_resp(data)
    for path in _URL_PATHS:
        url = _dig(data, *path)
        if isinstance(url, str) and url:
            return HailuoImage(url=url)
    for path in _B64_PATHS:
        b64 = _dig(data, *path)
        if isinstance(b64, str) and b64:
            return HailuoImage(b64=b64)
    raise ProviderInvalidResponse("Hailuo response has no image", provider="hailuo")


@register_provider("hailuo")
class HailuoProvider(BaseImageProvider):
    async def generate(
        self, attempt: PromptAttempt, request: GenerationRequest,
    ) -> ProviderResult:
        api_key = self._require_api_key()
        payload = {
            "model": self.settings["model"],
            "prompt": self._with_anti_text(attempt.prompt),
            "aspect_ratio": "16:9",
            "response_format": "url",
            "n": 1,
            "prompt_optimizer": True,
        }
        data = await self._call(self._post, api_key, payload)
        image = parse_image_response(data)

        if image.url:
            image_bytes = await self._call(download_bytes, image.url, timeout=DOWNLOAD_TIMEOUT)
        else:
            try:
                image_bytes = base64.b64decode(image.b64)
            except (binascii.Error, ValueError) as exc:
                raise ProviderInvalidResponse(
                    "Invalid base64 image from hailuo", provider=self.name,
                ) from exc

        logger.info("hailuo generated image for %s (%s)", request.request_id, attempt.level)
        return self._result(image_bytes, image_url=image.url, model=self.settings["model"])

    async def _post(self, api_key: str, payload: dict) -> dict:
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        url = f"{self.settings['base_url']}/v1/image_generation"
        async with httpx.AsyncClient(timeout=self.settings["timeout"]) as client:
            resp = await client.post(url, json=payload, headers=headers)
            resp.raise_for_status()
            return resp.json()

    def _map_status_error(self, exc: httpx.HTTPStatusError) -> GenerationError:
        try:
            check_base_resp(exc.response.json())
        except ProviderInvalidResponse:
            pass
        except GenerationError as mapped:
            return mapped
        except ValueError:
            pass
        return super()._map_status_error(exc)
