"""Image provider registry."""

from __future__ import annotations

from typing import TYPE_CHECKING

from covergen.errors import ConfigurationMissing

if TYPE_CHECKING:
    from covergen.providers.base import BaseImageProvider

PROVIDERS: dict[str, type[BaseImageProvider]] = {}


def register_provider(name: str):
    """Decorator to register an image provider under ``name``.

    Stack it to expose one implementation under several ids.
    """

    def decorator(cls):
        PROVIDERS[name] = cls
        return cls

    return decorator


def get_provider(config: dict, name: str) -> BaseImageProvider:
    """Instantiate the provider registered as ``name``."""
    if name not in PROVIDERS:
        raise ConfigurationMissing(f"Unknown image provider: {name}", provider=name)
    return PROVIDERS[name](config, name)


# Import implementations to trigger registration
from covergen.providers.gemini import GeminiProvider  # noqa: E402, F401
from covergen.providers.hailuo import HailuoProvider  # noqa: E402, F401
from covergen.providers.internal import InternalProvider  # noqa: E402, F401
from covergen.providers.openai_images import OpenAIImageProvider  # noqa: E402, F401
