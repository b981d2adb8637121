"""Retry logic with exponential backoff for provider calls and temp cleanup."""

from __future__ import annotations

import asyncio
import errno
import logging
import shutil
from pathlib import Path

import httpx

from covergen.errors import FilesystemError

logger = logging.getLogger(__name__)

RETRYABLE_HTTP_CODES = {429, 500, 502, 503, 504}
RETRYABLE_EXCEPTIONS = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.RemoteProtocolError,
    ConnectionError,
)

# Transient lock conditions seen when another process still holds a file
RETRYABLE_FS_ERRNOS = {errno.EBUSY, errno.EPERM, errno.EACCES, errno.ENOTEMPTY}


async def retry_async(
    fn,
    *args,
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    **kwargs,
):
    """Call an async function with exponential backoff on transient failures.

    Retries on:
    - httpx connection errors
    - HTTP 429 (rate limit) and 5xx (server errors)

    Read timeouts are not retried: an image provider that stops answering
    is reported to the caller as a timeout straight away.
    """
    last_exc = None
    for attempt in range(max_retries + 1):
        try:
            return await fn(*args, **kwargs)
        except RETRYABLE_EXCEPTIONS as exc:
            last_exc = exc
            if attempt == max_retries:
                break
            delay = min(base_delay * (2**attempt), max_delay)
            logger.warning(
                "Retry %d/%d after %s: %s (waiting %.1fs)",
                attempt + 1, max_retries, type(exc).__name__, exc, delay,
            )
            await asyncio.sleep(delay)
        except httpx.HTTPStatusError as exc:
            last_exc = exc
            if exc.response.status_code not in RETRYABLE_HTTP_CODES:
                raise
            if attempt == max_retries:
                break
            # Use Retry-After header if present (rate limiting)
            retry_after = exc.response.headers.get("retry-after")
            if retry_after:
                try:
                    delay = min(float(retry_after), max_delay)
                except ValueError:
                    delay = min(base_delay * (2**attempt), max_delay)
            else:
                delay = min(base_delay * (2**attempt), max_delay)
            logger.warning(
                "Retry %d/%d after HTTP %d (waiting %.1fs)",
                attempt + 1, max_retries,
                exc.response.status_code, delay,
            )
            await asyncio.sleep(delay)

    raise last_exc  # type: ignore[misc]


async def remove_tree_with_retry(
    path: str | Path,
    attempts: int = 10,
    base_delay: float = 0.15,
    max_delay: float = 2.0,
) -> None:
    """Delete a directory tree, retrying while it is transiently locked.

    A path that is already gone counts as success. Raises FilesystemError
    once ``attempts`` are used up or on a non-transient error.
    """
    path = Path(path)
    for attempt in range(attempts):
        try:
            await asyncio.to_thread(shutil.rmtree, path)
            return
        except FileNotFoundError:
            return
        except OSError as exc:
            if exc.errno not in RETRYABLE_FS_ERRNOS:
                raise FilesystemError(f"Cannot remove {path}: {exc}") from exc
            if attempt == attempts - 1:
                raise FilesystemError(
                    f"Cannot remove {path} after {attempts} attempts: {exc}"
                ) from exc
            delay = min(base_delay * (2**attempt), max_delay)
            logger.debug(
                "Cleanup retry %d/%d for %s (%s), waiting %.2fs",
                attempt + 1, attempts, path, exc.strerror, delay,
            )
            await asyncio.sleep(delay)
