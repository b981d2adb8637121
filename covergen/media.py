"""Cover validation, multi-format encoding and atomic persistence.

Layout produced per request id::

    <media_root>/<request_id>/cover.jpg
    <media_root>/<request_id>/cover.webp
    <media_root>/<request_id>/cover.avif   (when Pillow has AVIF support)

Every file is written to a uniquely named ``cover.<ext>.<token>.tmp`` and
renamed into place, so a reader never observes a partial file even when two
runs store the same request concurrently. Scratch data lives under
``<tmp_root>/<request_id>/<token>`` and is removed in the background.
"""

from __future__ import annotations

import asyncio
import contextlib
import hashlib
import io
import logging
import os
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

from PIL import Image, ImageEnhance, ImageFilter, ImageOps, UnidentifiedImageError, features

from covergen.config import get_image_settings, get_media_paths
from covergen.errors import FilesystemError, SourceQualityRejected
from covergen.models import PersistedAsset, validate_request_id
from covergen.retry import remove_tree_with_retry

logger = logging.getLogger(__name__)

COVER_SIZE = (1280, 720)
SATURATION = 1.08

MIN_WIDTH = 600
MIN_HEIGHT = 400
MIN_BYTES = 20 * 1024
MAX_AGE = timedelta(days=365 * 5)

# (extension, Pillow format, save options), best format first
ENCODINGS = [
    ("avif", "AVIF", {"quality": 58}),
    ("webp", "WEBP", {"quality": 82, "method": 4}),
    ("jpg", "JPEG", {"quality": 82, "optimize": True, "progressive": True}),
]
ALL_EXTENSIONS = {ext for ext, _, _ in ENCODINGS}
FALLBACK_EXTENSION = "jpg"

PLACEHOLDER_TOP = (24, 24, 27)
PLACEHOLDER_BOTTOM = (39, 39, 42)


def avif_supported() -> bool:
    return bool(features.check("avif"))


def inspect_image(data: bytes) -> tuple[int, int, str]:
    """Decode fully and return ``(width, height, format)``.

    Raises SourceQualityRejected for bytes Pillow cannot decode.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            return img.width, img.height, img.format or ""
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as exc:
        raise SourceQualityRejected(f"Corrupt or unsupported image: {exc}") from exc


def validate_image(
    data: bytes,
    last_modified: datetime | None = None,
    now: datetime | None = None,
) -> tuple[int, int]:
    """Reject images below the minimum size, byte count or freshness."""
    width, height, _ = inspect_image(data)
    if width < MIN_WIDTH or height < MIN_HEIGHT:
        raise SourceQualityRejected(
            f"Low quality image: {width}x{height}px, "
            f"at least {MIN_WIDTH}x{MIN_HEIGHT}px required"
        )
    if len(data) < MIN_BYTES:
        raise SourceQualityRejected(
            f"Low quality image: {len(data)} bytes, at least {MIN_BYTES} required"
        )
    if last_modified is not None:
        now = now or datetime.now(timezone.utc)
        if last_modified.tzinfo is None:
            last_modified = last_modified.replace(tzinfo=timezone.utc)
        age = now - last_modified
        if age > MAX_AGE:
            raise SourceQualityRejected(
                f"Source image too old (~{age.days} days)", code="IMAGE_TOO_OLD",
            )
    return width, height


def render_cover(source: Path) -> Image.Image:
    """Cover-fit to 1280x720 with a light saturation boost and sharpen."""
    with Image.open(source) as src:
        src.seek(0)  # first frame of animated GIFs
        img = ImageOps.exif_transpose(src).convert("RGB")
    img = ImageOps.fit(img, COVER_SIZE, method=Image.Resampling.LANCZOS)
    img = ImageEnhance.Color(img).enhance(SATURATION)
    return img.filter(ImageFilter.UnsharpMask(radius=1.0, percent=60, threshold=2))


def render_placeholder() -> Image.Image:
    """Neutral dark gradient used when generation degrades."""
    mask = Image.linear_gradient("L").resize(COVER_SIZE)
    top = Image.new("RGB", COVER_SIZE, PLACEHOLDER_TOP)
    bottom = Image.new("RGB", COVER_SIZE, PLACEHOLDER_BOTTOM)
    return Image.composite(bottom, top, mask)


def encode(img: Image.Image, extensions: set[str]) -> dict[str, bytes]:
    encoded = {}
    for ext, fmt, options in ENCODINGS:
        if ext not in extensions:
            continue
        buf = io.BytesIO()
        img.save(buf, format=fmt, **options)
        encoded[ext] = buf.getvalue()
    return encoded


def write_atomic(path: Path, data: bytes) -> None:
    """Write to a private temp file beside ``path`` and rename over it."""
    tmp = path.with_name(f"{path.name}.{uuid.uuid4().hex[:12]}.tmp")
    try:
        with open(tmp, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except OSError:
        with contextlib.suppress(FileNotFoundError):
            tmp.unlink()
        raise


class MediaStore:
    """Persist encoded covers for generation requests."""

    def __init__(self, config: dict):
        paths = get_media_paths(config)
        self.media_root: Path = paths["media_root"]
        self.tmp_root: Path = paths["tmp_root"]
        self.avif = get_image_settings(config)["avif"] and avif_supported()
        self._cleanups: set[asyncio.Task] = set()

    def _extensions(self) -> set[str]:
        if self.avif:
            return set(ALL_EXTENSIONS)
        return ALL_EXTENSIONS - {"avif"}

    async def persist(
        self,
        data: bytes,
        request_id: str,
        provider: str,
        kind: str = "ai",
        last_modified: datetime | None = None,
    ) -> PersistedAsset:
        """Validate, encode and atomically store ``data`` as the request's cover.

        Raises SourceQualityRejected before any final file is touched when
        the input is below the quality minimums.
        """
        validate_request_id(request_id)
        work_dir = self.tmp_root / request_id / uuid.uuid4().hex[:12]
        try:
            source = await asyncio.to_thread(self._stage, work_dir, data)
            await asyncio.to_thread(validate_image, data, last_modified)
            img = await asyncio.to_thread(render_cover, source)
            encoded = await asyncio.to_thread(encode, img, self._extensions())
            asset = await asyncio.to_thread(
                self._commit, request_id, encoded, provider, kind,
            )
        except OSError as exc:
            raise FilesystemError(f"Cannot persist cover for {request_id}: {exc}") from exc
        finally:
            self.schedule_cleanup(work_dir)

        logger.info(
            "Persisted cover for %s (%s, %s) hash=%s",
            request_id, provider, "+".join(sorted(asset.formats)), asset.content_hash[:12],
        )
        return asset

    async def persist_placeholder(self, request_id: str) -> PersistedAsset:
        """Store the neutral placeholder as the request's cover."""
        validate_request_id(request_id)
        try:
            img = await asyncio.to_thread(render_placeholder)
            encoded = await asyncio.to_thread(encode, img, {"webp", "jpg"})
            asset = await asyncio.to_thread(
                self._commit, request_id, encoded, "placeholder", "placeholder",
            )
        except OSError as exc:
            raise FilesystemError(
                f"Cannot persist placeholder for {request_id}: {exc}"
            ) from exc
        logger.info("Persisted placeholder for %s", request_id)
        return asset

    def _stage(self, work_dir: Path, data: bytes) -> Path:
        work_dir.mkdir(parents=True, exist_ok=True)
        source = work_dir / "source.bin"
        source.write_bytes(data)
        return source

    def _commit(
        self, request_id: str, encoded: dict[str, bytes], provider: str, kind: str,
    ) -> PersistedAsset:
        media_dir = self.media_root / request_id
        media_dir.mkdir(parents=True, exist_ok=True)

        formats = {}
        for ext, blob in encoded.items():
            final = media_dir / f"cover.{ext}"
            write_atomic(final, blob)
            formats[ext] = str(final)

        # A regeneration supersedes every format of the previous one
        for ext in ALL_EXTENSIONS - set(encoded):
            (media_dir / f"cover.{ext}").unlink(missing_ok=True)

        primary_ext = "avif" if "avif" in encoded else "webp"
        return PersistedAsset(
            request_id=request_id,
            primary_path=formats[primary_ext],
            fallback_path=formats[FALLBACK_EXTENSION],
            content_hash=hashlib.sha256(encoded[primary_ext]).hexdigest(),
            provider=provider,
            kind=kind,
            formats=formats,
        )

    def schedule_cleanup(self, work_dir: Path) -> None:
        """Remove scratch data without making the caller wait for it."""
        task = asyncio.get_running_loop().create_task(self._cleanup(work_dir))
        self._cleanups.add(task)
        task.add_done_callback(self._cleanups.discard)

    async def _cleanup(self, work_dir: Path) -> None:
        try:
            await remove_tree_with_retry(work_dir)
        except FilesystemError:
            logger.exception("Temp cleanup failed for %s", work_dir)
            return
        # The per-request parent goes too once no other run is using it
        with contextlib.suppress(OSError):
            work_dir.parent.rmdir()

    async def wait_for_cleanups(self) -> None:
        if self._cleanups:
            await asyncio.gather(*list(self._cleanups))
