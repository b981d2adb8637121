"""OpenAI Images API provider (DALL-E 3 / DALL-E 2)."""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass

import httpx

from covergen.errors import GenerationError, ProviderInvalidResponse, ProviderSafetyBlock
from covergen.models import GenerationRequest, PromptAttempt, ProviderResult
from covergen.providers import register_provider
from covergen.providers.base import BaseImageProvider, download_bytes

logger = logging.getLogger(__name__)

SAFETY_CODES = {"content_policy_violation", "moderation_blocked"}


@dataclass
class OpenAIImage:
    """Normalised ``data[0]`` entry of an images response."""

    b64_json: str | None = None
    url: str | None = None
    revised_prompt: str | None = None


def parse_images_response(data: dict) -> OpenAIImage:
    items = data.get("data") if isinstance(data, dict) else None
    if not items or not isinstance(items, list) or not isinstance(items[0], dict):
        raise ProviderInvalidResponse("OpenAI response has no image data")
    first = items[0]
    image = OpenAIImage(
        b64_json=first.get("b64_json") if isinstance(first.get("b64_json"), str) else None,
        url=first.get("url") if isinstance(first.get("url"), str) else None,
        revised_prompt=first.get("revised_prompt"),
    )
    if not image.b64_json and not image.url:
        raise ProviderInvalidResponse("OpenAI image entry has neither b64_json nor url")
    return image


@register_provider("dall-e-2")
@register_provider("dall-e-3")
class OpenAIImageProvider(BaseImageProvider):
    """OpenAI image generation; the provider id selects the model."""

    @property
    def model(self) -> str:
        return self.settings["model"] or self.provider_id

    def image_size(self) -> str:
        return "1792x1024" if self.model == "dall-e-3" else "1024x1024"

    async def generate(
        self, attempt: PromptAttempt, request: GenerationRequest,
    ) -> ProviderResult:
        api_key = self._require_api_key()
        payload = {
            "model": self.model,
            "prompt": self._with_anti_text(attempt.prompt),
            "n": 1,
            "size": self.image_size(),
            "response_format": "b64_json",
        }
        if self.model == "dall-e-3":
            payload["quality"] = "standard"

        data = await self._call(self._post, api_key, payload)
        image = parse_images_response(data)

        if image.b64_json:
            try:
                image_bytes = base64.b64decode(image.b64_json)
            except (binascii.Error, ValueError) as exc:
                raise ProviderInvalidResponse(
                    f"Invalid base64 image from {self.name}", provider=self.name,
                ) from exc
        else:
            image_bytes = await self._call(download_bytes, image.url, timeout=30)

        logger.info("%s generated image for %s (%s)", self.name, request.request_id, attempt.level)
        return self._result(
            image_bytes,
            image_url=image.url,
            model=self.model,
            size=self.image_size(),
            revised_prompt=image.revised_prompt,
        )

    async def _post(self, api_key: str, payload: dict) -> dict:
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        url = f"{self.settings['base_url']}/v1/images/generations"
        async with httpx.AsyncClient(timeout=self.settings["timeout"]) as client:
            resp = await client.post(url, json=payload, headers=headers)
            resp.raise_for_status()
            return resp.json()

    def _map_status_error(self, exc: httpx.HTTPStatusError) -> GenerationError:
        if exc.response.status_code == 400:
            try:
                error = exc.response.json().get("error", {}) or {}
            except (ValueError, AttributeError):
                error = {}
            code = str(error.get("code") or "")
            message = str(error.get("message") or "")
            if code in SAFETY_CODES or "safety system" in message.lower():
                return ProviderSafetyBlock(
                    message or "Prompt rejected by content policy", provider=self.name,
                )
        return super()._map_status_error(exc)
