"""Google Gemini image generation provider."""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass

import httpx

from covergen.errors import ProviderInvalidResponse, ProviderSafetyBlock
from covergen.models import GenerationRequest, PromptAttempt, ProviderResult
from covergen.providers import register_provider
from covergen.providers.base import BaseImageProvider

logger = logging.getLogger(__name__)

SAFETY_FINISH_REASONS = {"SAFETY", "PROHIBITED_CONTENT", "IMAGE_SAFETY", "BLOCKLIST", "SPII"}


@dataclass
class GeminiImage:
    data: str
    mime_type: str
    text: str = ""


def parse_generate_content(data: dict) -> GeminiImage:
    """Pull the first inline image out of a generateContent response."""
    if not isinstance(data, dict):
        raise ProviderInvalidResponse("Gemini response is not an object", provider="gemini")

    feedback = data.get("promptFeedback") or {}
    if not isinstance(feedback, dict):
        raise ProviderInvalidResponse("Gemini promptFeedback is not an object", provider="gemini")
    block_reason = feedback.get("blockReason")
    if block_reason:
        raise ProviderSafetyBlock(f"Gemini blocked prompt: {block_reason}", provider="gemini")

    candidates = data.get("candidates") or []
    if not isinstance(candidates, list):
        raise ProviderInvalidResponse("Gemini candidates is not a list", provider="gemini")
    if not candidates:
        raise ProviderInvalidResponse("Gemini response has no candidates", provider="gemini")
    candidate = candidates[0] or {}
    if not isinstance(candidate, dict):
        raise ProviderInvalidResponse("Gemini candidate is not an object", provider="gemini")
    finish_reason = candidate.get("finishReason") or ""
    if isinstance(finish_reason, str) and finish_reason in SAFETY_FINISH_REASONS:
        raise ProviderSafetyBlock(
            f"Gemini stopped generation: {finish_reason}", provider="gemini",
        )

    content = candidate.get("content") or {}
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        parts = []

    text_parts = []
    for part in parts:
        if not isinstance(part, dict):
            continue
        inline = part.get("inlineData") or part.get("inline_data")
        if isinstance(inline, dict):
            mime_type = str(inline.get("mimeType", inline.get("mime_type", "")))
            data_b64 = inline.get("data")
            if mime_type.startswith("image/") and isinstance(data_b64, str):
                return GeminiImage(
                    data=data_b64, mime_type=mime_type, text=" ".join(text_parts),
                )
        if isinstance(part.get("text"), str) and part["text"]:
            text_parts.append(part["text"])

    raise ProviderInvalidResponse("Gemini response contains no image part", provider="gemini")


@register_provider("gemini")
class GeminiProvider(BaseImageProvider):
    async def generate(
        self, attempt: PromptAttempt, request: GenerationRequest,
    ) -> ProviderResult:
        api_key = self._require_api_key()
        payload = {
            "contents": [{"parts": [{"text": self._with_anti_text(attempt.prompt)}]}],
            "generationConfig": {"responseModalities": ["TEXT", "IMAGE"]},
        }
        data = await self._call(self._post, api_key, payload)
        image = parse_generate_content(data)
        try:
            image_bytes = base64.b64decode(image.data)
        except (binascii.Error, ValueError) as exc:
            raise ProviderInvalidResponse(
                "Invalid base64 image from gemini", provider=self.name,
            ) from exc
        if not image_bytes:
            raise ProviderInvalidResponse("Gemini returned an empty image", provider=self.name)

        logger.info("gemini generated image for %s (%s)", request.request_id, attempt.level)
        return self._result(
            image_bytes, model=self.settings["model"], mime_type=image.mime_type,
        )

    async def _post(self, api_key: str, payload: dict) -> dict:
        headers = {
            "x-goog-api-key": api_key,
            "Content-Type": "application/json",
        }
        url = (
            f"{self.settings['base_url']}/v1beta/models/"
            f"{self.settings['model']}:generateContent"
        )
        async with httpx.AsyncClient(timeout=self.settings["timeout"]) as client:
            resp = await client.post(url, json=payload, headers=headers)
            resp.raise_for_status()
            return resp.json()
