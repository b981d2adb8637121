"""Local-extraction provider: reuse the real photo from the article's source page.

Never substitutes a lower-quality image. If no candidate passes the
quality checks the request fails with a user-facing error so an editor
can pick another source.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from email.utils import parsedate_to_datetime
from urllib.parse import parse_qs, urljoin, urlparse

import httpx
import trafilatura
from bs4 import BeautifulSoup

from covergen.errors import NoSourceAvailable, SourceQualityRejected
from covergen.media import MIN_HEIGHT, MIN_WIDTH, validate_image
from covergen.models import GenerationRequest, PromptAttempt, ProviderResult
from covergen.providers import register_provider
from covergen.providers.base import BaseImageProvider
from covergen.retry import retry_async

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
PAGE_TIMEOUT = 10
MAX_IMAGE_BYTES = 10 * 1024 * 1024
MAX_CANDIDATES = 15
ALLOWED_MIME_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp", "image/gif"}

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif", ".avif")
IMAGE_SERVICE_PATTERNS = (
    "imagedelivery.net", "/_next/image", "/wp-content/uploads", "/images/",
    "/media/", "cdn.", "cloudinary.com", "imgix.net",
)
REJECT_KEYWORDS = (
    "spinner", "loader", "loading", "placeholder", "icon", "logo", "avatar",
    "badge", "button", "arrow", "social", "share", "pixel", "tracking", "ads",
    "banner", "thumbnail-small", "favicon",
)
# Whole tokens only: "ads" must not hit "uploads"
_REJECT_PATTERN = re.compile(
    r"(?<![a-z])(?:" + "|".join(re.escape(k) for k in REJECT_KEYWORDS) + r")s?(?![a-z])"
)

# (css selector, priority, origin, require size attributes)
CANDIDATE_SELECTORS = [
    ("article figure img, main figure img, .article-content figure img, "
     ".post-content figure img", 10, "figure", False),
    (".media-block-wrap img, .article-media img, .post-media img, "
     ".entry-content img", 8, "media-block", False),
    ("article img[width][height], main img[width][height]", 7, "article-with-dims", True),
    ("article img, main img, .article-body img, .post-body img", 5, "content", False),
]
# Accepted as soon as they validate, without comparing against the rest
DIRECT_ORIGINS = {"hint", "og:image"}


@dataclass
class Candidate:
    url: str
    priority: int
    origin: str


@dataclass
class DownloadedImage:
    url: str
    data: bytes
    content_type: str
    last_modified: datetime | None = None


def is_valid_image_url(url: str) -> bool:
    """Accept URLs that look like images: extension, image CDN or image query."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return False
    path = parsed.path.lower()
    if any(ext in path for ext in IMAGE_EXTENSIONS):
        return True
    lowered = url.lower()
    if any(pattern in lowered for pattern in IMAGE_SERVICE_PATTERNS):
        return True
    query = parse_qs(parsed.query)
    return any(key in query for key in ("url", "image", "src"))


def should_reject_image_url(url: str) -> bool:
    return bool(_REJECT_PATTERN.search(url.lower()))


def _int_attr(value) -> int:
    try:
        return int(str(value).strip().rstrip("px"))
    except (TypeError, ValueError):
        return 0


def extract_image_candidates(html: str, page_url: str) -> list[Candidate]:
    """Ordered image candidates from a page: og:image, article images, twitter:image."""
    raw: list[Candidate] = []

    metadata = trafilatura.extract_metadata(html, default_url=page_url)
    if metadata is not None and metadata.image:
        raw.append(Candidate(metadata.image, 100, "og:image"))

    soup = BeautifulSoup(html, "html.parser")
    og = soup.find("meta", attrs={"property": "og:image"})
    if og and og.get("content"):
        raw.append(Candidate(og["content"], 100, "og:image"))

    for selector, priority, origin, needs_dims in CANDIDATE_SELECTORS:
        for img in soup.select(selector):
            src = img.get("src") or img.get("data-src")
            if not src:
                continue
            if needs_dims and (
                _int_attr(img.get("width")) < MIN_WIDTH
                or _int_attr(img.get("height")) < MIN_HEIGHT
            ):
                continue
            raw.append(Candidate(src, priority, origin))

    twitter = soup.find("meta", attrs={"name": "twitter:image"})
    if twitter and twitter.get("content"):
        raw.append(Candidate(twitter["content"], 3, "twitter:image"))

    seen: set[str] = set()
    candidates = []
    for candidate in raw:
        url = urljoin(page_url, candidate.url.strip())
        if url in seen:
            continue
        seen.add(url)
        if not is_valid_image_url(url):
            logger.debug("Skipping non-image URL %s", url[:120])
            continue
        if should_reject_image_url(url):
            logger.debug("Skipping junk image URL %s", url[:120])
            continue
        candidates.append(Candidate(url, candidate.priority, candidate.origin))
    return candidates[:MAX_CANDIDATES]


def _parse_last_modified(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None


async def _fetch_html(url: str) -> str:
    headers = {
        "User-Agent": USER_AGENT,
        "Accept": "text/html,application/xhtml+xml",
        "Accept-Language": "es-ES,es;q=0.9,en;q=0.8",
    }
    async with httpx.AsyncClient(timeout=PAGE_TIMEOUT, follow_redirects=True) as client:
        resp = await client.get(url, headers=headers)
        resp.raise_for_status()
        return resp.text


async def download_image(
    url: str, referer: str | None = None, timeout: float = 12,
) -> DownloadedImage | None:
    """Download a candidate image; None when the source refuses or it is not an image."""
    headers = {"User-Agent": USER_AGENT, "Accept": "image/*"}
    if referer:
        headers["Referer"] = referer
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
        resp = await client.get(url, headers=headers)

    if resp.status_code == 403:
        logger.warning("Source blocked image download (403): %s", url[:120])
        return None
    resp.raise_for_status()

    content_type = resp.headers.get("content-type", "").split(";")[0].strip().lower()
    if content_type not in ALLOWED_MIME_TYPES:
        logger.debug("Unsupported content type %s for %s", content_type, url[:120])
        return None
    if len(resp.content) > MAX_IMAGE_BYTES:
        logger.debug("Image too large (%d bytes): %s", len(resp.content), url[:120])
        return None

    return DownloadedImage(
        url=url,
        data=resp.content,
        content_type=content_type,
        last_modified=_parse_last_modified(resp.headers.get("last-modified")),
    )


@register_provider("internal")
class InternalProvider(BaseImageProvider):
    """Take the cover from the article's own source pages."""

    kind = "processed"

    async def generate(
        self, attempt: PromptAttempt, request: GenerationRequest,
    ) -> ProviderResult:
        if not request.sources:
            raise NoSourceAvailable(
                "No source URL available to extract an image from",
                code="NO_SOURCE_URL", provider=self.name,
            )

        quality_error: SourceQualityRejected | None = None
        for source in request.sources:
            candidates = []
            if source.image_url:
                candidates.append(Candidate(urljoin(source.url, source.image_url), 200, "hint"))
            if source.url:
                candidates.extend(await self._page_candidates(source.url))

            best: tuple[float, DownloadedImage, Candidate, tuple[int, int]] | None = None
            for candidate in candidates[:MAX_CANDIDATES]:
                image = await self._download(candidate.url, source.url)
                if image is None:
                    continue
                try:
                    size = await asyncio.to_thread(
                        validate_image, image.data, image.last_modified,
                    )
                except SourceQualityRejected as exc:
                    logger.info("Rejected %s: %s", candidate.url[:120], exc.message)
                    quality_error = exc
                    continue

                if candidate.origin in DIRECT_ORIGINS:
                    return self._accept(image, candidate, size, source.url)
                score = candidate.priority + (size[0] * size[1]) / 100_000
                if best is None or score > best[0]:
                    best = (score, image, candidate, size)

            if best is not None:
                _, image, candidate, size = best
                return self._accept(image, candidate, size, source.url)

        if quality_error is not None:
            raise quality_error
        raise NoSourceAvailable(
            "No valid image found on the source pages",
            code="NO_VALID_IMAGE_FOUND", provider=self.name,
        )

    def _accept(self, image, candidate, size, source_url) -> ProviderResult:
        logger.info(
            "Using %s image %dx%d from %s", candidate.origin, size[0], size[1], source_url,
        )
        return self._result(
            image.data,
            image_url=image.url,
            source_url=source_url,
            origin=candidate.origin,
            width=size[0],
            height=size[1],
            last_modified=image.last_modified,
        )

    async def _page_candidates(self, page_url: str) -> list[Candidate]:
        try:
            html = await retry_async(
                _fetch_html, page_url,
                max_retries=self.settings["max_retries"], base_delay=0.5,
            )
        except httpx.HTTPError as exc:
            logger.warning("Could not fetch source page %s: %s", page_url, exc)
            return []
        return extract_image_candidates(html, page_url)

    async def _download(self, url: str, referer: str | None) -> DownloadedImage | None:
        try:
            return await download_image(url, referer, timeout=self.settings["timeout"])
        except httpx.HTTPError as exc:
            logger.warning("Image download failed for %s: %s", url[:120], exc)
            return None
