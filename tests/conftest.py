"""Shared test fixtures."""

from __future__ import annotations

import io
import os

import pytest
from PIL import Image

from covergen.config import load_config
from covergen.db import get_connection, init_db
from covergen.models import GenerationRequest, SourceRef


@pytest.fixture
def sample_config(tmp_path):
    """Minimal config for testing (no real API keys)."""
    config_text = """
image:
  prompt_mode: augmented
  default_provider: "dall-e-3"
  avif: false

providers:
  openai:
    api_key: "test-key"
    base_url: "http://localhost:9999"
  hailuo:
    api_key: "test-key"
    base_url: "http://localhost:9998"
  gemini:
    api_key: "test-key"
    base_url: "http://localhost:9997"

media:
  root: "ROOT_PLACEHOLDER/media/news"
  tmp_root: "ROOT_PLACEHOLDER/tmp/uploads"

database:
  path: "ROOT_PLACEHOLDER/test.db"
"""
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text(config_text.replace("ROOT_PLACEHOLDER", str(tmp_path)))
    return load_config(str(cfg_path))


@pytest.fixture
def db_conn(sample_config):
    """Initialized test database connection."""
    db_path = sample_config["database"]["path"]
    init_db(db_path)
    conn = get_connection(db_path)
    yield conn
    conn.close()


def make_image_bytes(width: int = 800, height: int = 600, fmt: str = "PNG") -> bytes:
    """Random-noise image; noise keeps PNG output well above 20KB."""
    img = Image.frombytes("RGB", (width, height), os.urandom(width * height * 3))
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def image_factory():
    return make_image_bytes


@pytest.fixture
def good_image():
    return make_image_bytes()


@pytest.fixture
def tiny_image():
    """50x50 image, far below the size and byte minimums."""
    img = Image.new("RGB", (50, 50), (200, 30, 30))
    buf = io.BytesIO()
    img.save(buf, format="BMP")
    data = buf.getvalue()
    assert len(data) < 20 * 1024
    return data


@pytest.fixture
def sample_request():
    return GenerationRequest(
        request_id="req-1",
        title="Gobierno anuncia nuevas medidas económicas",
        summary="El presidente y el ministro de economía presentaron el decreto.",
        content="El gobierno presentó un decreto sobre precios y salario en La Habana.",
        tags=("economía",),
        category="Política",
        sources=(SourceRef(url="https://news.example.com/a/1", outlet="Example"),),
    )
