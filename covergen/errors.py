"""Shared error taxonomy for cover generation.

Every failure that crosses a module boundary is a ``GenerationError``
subclass. ``user_facing`` errors must reach the caller unchanged; all
others may be degraded to a placeholder by the orchestrator.
"""

from __future__ import annotations


class GenerationError(Exception):
    """Base class for all cover-generation failures."""

    code = "GENERATION_ERROR"
    user_facing = False
    retryable = False
    status_code = 500

    def __init__(
        self,
        message: str = "",
        *,
        code: str | None = None,
        provider: str | None = None,
    ):
        super().__init__(message or self.code)
        self.message = message or self.code
        if code:
            self.code = code
        self.provider = provider


class ProviderTimeout(GenerationError):
    code = "TIMEOUT"
    status_code = 504


class ProviderSafetyBlock(GenerationError):
    """The provider refused the prompt under its content policy."""

    code = "CONTENT_POLICY"
    status_code = 400


class LadderExhausted(GenerationError):
    """Every rung of the prompt ladder was safety-blocked."""

    code = "LADDER_EXHAUSTED"
    status_code = 400


class ProviderInvalidResponse(GenerationError):
    code = "INVALID_RESPONSE"
    status_code = 502


class ProviderRequestError(GenerationError):
    """Network, auth or quota failure talking to a provider."""

    code = "PROVIDER_ERROR"
    status_code = 502


class SourceQualityRejected(GenerationError):
    code = "LOW_QUALITY_IMAGE"
    user_facing = True
    status_code = 422


class NoSourceAvailable(GenerationError):
    code = "NO_SOURCE_URL"
    user_facing = True
    status_code = 422


class ConfigurationMissing(GenerationError):
    code = "CONFIGURATION_MISSING"
    user_facing = True
    status_code = 500


class FilesystemError(GenerationError):
    code = "FILESYSTEM_ERROR"
    status_code = 500


class ConcurrencyRejected(GenerationError):
    """A batch generation for the same tenant is already running."""

    code = "GENERATION_IN_PROGRESS"
    retryable = True
    status_code = 429


class InvalidRequest(GenerationError):
    """The request itself is unusable, e.g. a request id that is not a safe path segment."""

    code = "INVALID_REQUEST"
    user_facing = True
    status_code = 400
