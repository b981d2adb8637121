"""Load configuration from YAML with env var substitution, plus typed getters."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml

IMAGE_DEFAULTS: dict[str, Any] = {
    "prompt_mode": "augmented",
    "disable_person_detector": False,
    "disable_editorial_mode": False,
    "disable_qa_rules": False,
    "disable_anti_text": False,
    "disable_auto_context": False,
    "disable_auto_negative": False,
    "default_provider": "dall-e-3",
    "force_provider": None,
    "strict_mode": False,
    "default_style": "news_photojournalism",
    "negative_default": "fantasy art, anime, futuristic sci-fi, cartoon style",
    "default_locale": "es-CU",
    "keywords_threshold": 2,
    "disaster_threshold": 0.75,
    "default_tenant": "levantatecuba",
    "avif": True,
}

PROVIDER_DEFAULTS: dict[str, dict[str, Any]] = {
    "internal": {"timeout": 12, "max_retries": 1, "cost_per_image": 0.0},
    "dall-e-3": {
        "base_url": "https://api.openai.com",
        "model": "dall-e-3",
        "timeout": 120,
        "max_retries": 2,
        "cost_per_image": 0.04,
    },
    "dall-e-2": {
        "base_url": "https://api.openai.com",
        "model": "dall-e-2",
        "timeout": 120,
        "max_retries": 2,
        "cost_per_image": 0.02,
    },
    "hailuo": {
        "base_url": "https://api.minimax.io",
        "model": "image-01",
        "timeout": 60,
        "max_retries": 2,
        "cost_per_image": 0.0035,
    },
    "gemini": {
        "base_url": "https://generativelanguage.googleapis.com",
        "model": "gemini-2.0-flash-exp-image-generation",
        "timeout": 90,
        "max_retries": 2,
        "cost_per_image": 0.039,
    },
}

# Providers sharing one credential block
_CREDENTIAL_ALIASES = {"dall-e-3": "openai", "dall-e-2": "openai"}

_TRUTHY = {"1", "true", "yes", "on"}


def _load_dotenv(path: str | Path = ".env") -> None:
    """Load a .env file into os.environ (without overwriting existing vars)."""
    env_path = Path(path)
    if not env_path.is_file():
        return
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip().strip("'\"")
            if key and key not in os.environ:
                os.environ[key] = value


def _resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ${ENV_VAR} patterns in config values."""
    if isinstance(value, str):
        pattern = re.compile(r"\$\{([^}]+)\}")
        match = pattern.search(value)
        if match:
            # A whole-string placeholder resolves to the bare value
            if match.group(0) == value:
                return os.environ.get(match.group(1), "")
            return pattern.sub(lambda m: os.environ.get(m.group(1), ""), value)
        return value
    if isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_env_vars(item) for item in value]
    return value


def load_config(path: str | Path = "config.yaml") -> dict[str, Any]:
    """Load config from YAML file and resolve environment variables."""
    _load_dotenv()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    return _resolve_env_vars(raw)


def _as_bool(value: Any) -> bool:
    # Env-substituted flags arrive as strings
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return bool(value)


def get_image_settings(config: dict) -> dict[str, Any]:
    """Image pipeline flags merged over defaults.

    Every flag has a default, so an empty config yields a working pipeline.
    """
    raw = config.get("image", {}) or {}
    settings = dict(IMAGE_DEFAULTS)
    for key, value in raw.items():
        if value is None or value == "":
            continue
        settings[key] = value

    for key, default in IMAGE_DEFAULTS.items():
        if isinstance(default, bool):
            settings[key] = _as_bool(settings[key])
    settings["keywords_threshold"] = int(settings["keywords_threshold"])
    settings["disaster_threshold"] = float(settings["disaster_threshold"])

    mode = str(settings["prompt_mode"]).lower()
    if mode not in ("raw", "minimal", "augmented"):
        mode = IMAGE_DEFAULTS["prompt_mode"]
    settings["prompt_mode"] = mode
    settings["is_raw_mode"] = mode == "raw" or settings["disable_auto_context"]
    return settings


def get_provider_config(config: dict, name: str) -> dict[str, Any]:
    """Connection settings for one image provider."""
    providers = config.get("providers", {}) or {}
    provider_cfg = dict(providers.get(_CREDENTIAL_ALIASES.get(name, name), {}) or {})
    provider_cfg.update(providers.get(name, {}) or {})
    defaults = PROVIDER_DEFAULTS.get(name, {})

    return {
        "name": name,
        "api_key": provider_cfg.get("api_key", "") or "",
        "base_url": (provider_cfg.get("base_url") or defaults.get("base_url", "")).rstrip("/"),
        "model": provider_cfg.get("model") or defaults.get("model", ""),
        "timeout": float(provider_cfg.get("timeout", defaults.get("timeout", 60))),
        "max_retries": int(provider_cfg.get("max_retries", defaults.get("max_retries", 2))),
        "cost_per_image": float(
            provider_cfg.get("cost_per_image", defaults.get("cost_per_image", 0.0))
        ),
    }


def get_media_paths(config: dict) -> dict[str, Path]:
    """Final media root and scratch root for encoding."""
    media = config.get("media", {}) or {}
    return {
        "media_root": Path(media.get("root", "media/news")),
        "tmp_root": Path(media.get("tmp_root", "tmp/redactor_uploads")),
    }


def get_db_path(config: dict) -> str:
    """Get database path from config."""
    return config.get("database", {}).get("path", "data/covergen.db")
