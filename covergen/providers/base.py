"""Abstract base class for image providers."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import httpx

from covergen.config import get_image_settings, get_provider_config
from covergen.errors import (
    ConfigurationMissing,
    GenerationError,
    ProviderInvalidResponse,
    ProviderRequestError,
    ProviderSafetyBlock,
    ProviderTimeout,
)
from covergen.models import GenerationRequest, PromptAttempt, ProviderResult
from covergen.retry import retry_async

logger = logging.getLogger(__name__)

ANTI_TEXT_SUFFIX = (
    "Sin texto, letras, logotipos ni marcas de agua visibles en la imagen."
)


class BaseImageProvider(ABC):
    """Base class for image providers.

    Adapters are stateless per call: the orchestrator walks the prompt
    ladder and hands one attempt at a time to ``generate``.
    """

    kind = "ai"

    def __init__(self, config: dict, provider_id: str):
        self.config = config
        self.provider_id = provider_id
        self.settings = get_provider_config(config, provider_id)
        self.image_settings = get_image_settings(config)

    @property
    def name(self) -> str:
        return self.provider_id

    @property
    def cost_per_image(self) -> float:
        return self.settings["cost_per_image"]

    @abstractmethod
    async def generate(
        self, attempt: PromptAttempt, request: GenerationRequest,
    ) -> ProviderResult:
        """Produce image bytes for one prompt attempt."""
        ...

    def is_retryable(self, exc: Exception) -> bool:
        """Whether ``exc`` should move the ladder to the next rung."""
        return isinstance(exc, ProviderSafetyBlock)

    def _require_api_key(self) -> str:
        api_key = self.settings["api_key"]
        if not api_key:
            raise ConfigurationMissing(
                f"No API key configured for {self.name}", provider=self.name,
            )
        return api_key

    def _with_anti_text(self, prompt: str) -> str:
        if self.image_settings["disable_anti_text"]:
            return prompt
        return f"{prompt.rstrip()} {ANTI_TEXT_SUFFIX}"

    async def _call(self, fn, *args, **kwargs):
        """Run a transport call with retries, mapping failures to the taxonomy."""
        try:
            return await retry_async(
                fn, *args, max_retries=self.settings["max_retries"], base_delay=1.0,
                **kwargs,
            )
        except GenerationError:
            raise
        except httpx.TimeoutException as exc:
            raise ProviderTimeout(
                f"{self.name} timed out: {exc}", provider=self.name,
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise self._map_status_error(exc) from exc
        except (httpx.HTTPError, ConnectionError) as exc:
            raise ProviderRequestError(
                f"{self.name} request failed: {exc}", provider=self.name,
            ) from exc
        except ValueError as exc:
            # Response body was not JSON
            raise ProviderInvalidResponse(
                f"{self.name} returned malformed JSON: {exc}", provider=self.name,
            ) from exc

    def _map_status_error(self, exc: httpx.HTTPStatusError) -> GenerationError:
        """Map an HTTP error status to the shared taxonomy.

        Subclasses override this to detect their own safety-block shape.
        """
        status = exc.response.status_code
        if status == 429:
            code = "RATE_LIMITED"
        elif status in (401, 403):
            code = "AUTH_FAILED"
        else:
            code = None
        return ProviderRequestError(
            f"{self.name} HTTP {status}: {_error_text(exc.response)}",
            code=code,
            provider=self.name,
        )

    def _result(self, image_bytes: bytes, image_url: str | None = None, **metadata) -> ProviderResult:
        return ProviderResult(
            ok=True,
            provider=self.name,
            kind=self.kind,
            image_bytes=image_bytes,
            image_url=image_url,
            metadata=metadata,
            cost_usd=self.cost_per_image,
        )


def _error_text(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return str(error.get("message", ""))[:200]
        if error:
            return str(error)[:200]
    return str(body)[:200]


async def download_bytes(url: str, timeout: float = 30.0) -> bytes:
    """Fetch a generated image from a provider CDN."""
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
        resp = await client.get(url)
        resp.raise_for_status()
        return resp.content
