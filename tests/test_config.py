"""Tests for config loading and env var resolution."""

from __future__ import annotations

from pathlib import Path

import pytest

from covergen.config import (
    get_db_path,
    get_image_settings,
    get_media_paths,
    get_provider_config,
    load_config,
)


def test_load_config(sample_config):
    """Config loads and has expected structure."""
    assert "image" in sample_config
    assert "providers" in sample_config
    assert "media" in sample_config


def test_env_var_resolution(tmp_path, monkeypatch):
    """Environment variables in ${VAR} format are resolved."""
    monkeypatch.setenv("TEST_OPENAI_KEY", "sk-secret")
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text("""
providers:
  openai:
    api_key: "${TEST_OPENAI_KEY}"
    base_url: "https://${TEST_OPENAI_KEY}.example.com"
""")
    config = load_config(str(cfg_path))
    assert config["providers"]["openai"]["api_key"] == "sk-secret"
    assert config["providers"]["openai"]["base_url"] == "https://sk-secret.example.com"


def test_missing_config_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "nope.yaml"))


def test_empty_config_gives_usable_defaults():
    """Zero configuration still yields a working pipeline."""
    settings = get_image_settings({})
    assert settings["prompt_mode"] == "augmented"
    assert settings["default_provider"] == "dall-e-3"
    assert settings["force_provider"] is None
    assert settings["strict_mode"] is False
    assert settings["default_locale"] == "es-CU"
    assert settings["keywords_threshold"] == 2
    assert settings["disaster_threshold"] == 0.75
    assert settings["is_raw_mode"] is False


def test_string_flags_from_env_are_coerced(monkeypatch, tmp_path):
    """Flags substituted from env vars arrive as strings and become bools."""
    monkeypatch.setenv("IMG_DISABLE_PERSON_DETECTOR", "true")
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text("""
image:
  disable_person_detector: "${IMG_DISABLE_PERSON_DETECTOR}"
  force_provider: "${IMG_FORCE_PROVIDER}"
  keywords_threshold: "3"
""")
    settings = get_image_settings(load_config(str(cfg_path)))
    assert settings["disable_person_detector"] is True
    # Unset env var resolves to "" and falls back to the default
    assert settings["force_provider"] is None
    assert settings["keywords_threshold"] == 3


def test_raw_mode_follows_auto_context_flag():
    settings = get_image_settings({"image": {"disable_auto_context": True}})
    assert settings["is_raw_mode"] is True
    assert get_image_settings({"image": {"prompt_mode": "raw"}})["is_raw_mode"] is True


def test_unknown_prompt_mode_falls_back():
    assert get_image_settings({"image": {"prompt_mode": "fancy"}})["prompt_mode"] == "augmented"


def test_openai_models_share_credentials(sample_config):
    """dall-e-3 and dall-e-2 read the shared openai block."""
    cfg3 = get_provider_config(sample_config, "dall-e-3")
    cfg2 = get_provider_config(sample_config, "dall-e-2")
    assert cfg3["api_key"] == cfg2["api_key"] == "test-key"
    assert cfg3["model"] == "dall-e-3"
    assert cfg2["model"] == "dall-e-2"
    assert cfg3["cost_per_image"] == 0.04
    assert cfg2["cost_per_image"] == 0.02


def test_provider_defaults_without_config():
    cfg = get_provider_config({}, "hailuo")
    assert cfg["api_key"] == ""
    assert cfg["base_url"] == "https://api.minimax.io"
    assert cfg["model"] == "image-01"
    assert cfg["timeout"] == 60


def test_get_media_paths(sample_config, tmp_path):
    paths = get_media_paths(sample_config)
    assert paths["media_root"] == tmp_path / "media" / "news"
    assert paths["tmp_root"] == tmp_path / "tmp" / "uploads"
    assert get_media_paths({})["media_root"] == Path("media/news")


def test_get_db_path(sample_config):
    """DB path is extracted from config."""
    assert get_db_path(sample_config).endswith("test.db")
