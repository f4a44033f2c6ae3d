"""Remote asset download and audio probing."""

from __future__ import annotations

import contextlib
import logging
import os
import re
from pathlib import Path
from typing import Optional, Union

import httpx

from .errors import AssetFetchError

logger = logging.getLogger("render_orchestrator.assets")

DEFAULT_TIMEOUT = httpx.Timeout(30.0, read=120.0)
CHUNK_SIZE = 1024 * 1024

_GITHUB_BLOB_RE = re.compile(
    r"^https?://github\.com/(?P<owner>[^/]+)/(?P<repo>[^/]+)/blob/(?P<path>[^?#]+)"
)


def normalize_asset_url(url: str) -> str:
    """Rewrite GitHub ``blob`` page links to their raw download URL."""

    match = _GITHUB_BLOB_RE.match(url.strip())
    if not match:
        return url.strip()
    return (
        "https://raw.githubusercontent.com/"
        f"{match.group('owner')}/{match.group('repo')}/{match.group('path')}"
    )


async def fetch_remote_asset(
    url: str,
    destination: Union[str, Path],
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> Path:
    """Download ``url`` to ``destination`` in a single attempt.

    The body is streamed into ``<destination>.part`` and only renamed into
    place once the full payload arrived, so a failed download never leaves
    a file at ``destination``.
    """

    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    partial = destination.with_name(destination.name + ".part")
    resolved_url = normalize_asset_url(url)
    if resolved_url != url:
        logger.info("Resolved asset URL %s -> %s", url, resolved_url)

    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(follow_redirects=True, timeout=DEFAULT_TIMEOUT)

    written = 0
    try:
        async with client.stream("GET", resolved_url) as response:
            if not response.is_success:
                raise AssetFetchError(
                    url,
                    f"server responded with {response.reason_phrase or 'an error'}",
                    status_code=response.status_code,
                )
            expected = None
            # Content-Length counts encoded bytes; only compare identity transfers.
            if response.headers.get("Content-Encoding", "identity") == "identity":
                expected = response.headers.get("Content-Length")
            with partial.open("wb") as dst:
                async for chunk in response.aiter_bytes(CHUNK_SIZE):
                    dst.write(chunk)
                    written += len(chunk)
            status_code = response.status_code

        if expected is not None and expected.isdigit() and int(expected) != written:
            raise AssetFetchError(
                url,
                f"transfer interrupted after {written} of {expected} bytes",
                status_code=status_code,
            )
        if written == 0:
            raise AssetFetchError(url, "empty response body", status_code=status_code)
        os.replace(partial, destination)
    except httpx.HTTPError as exc:
        raise AssetFetchError(url, str(exc) or exc.__class__.__name__) from exc
    finally:
        with contextlib.suppress(FileNotFoundError):
            partial.unlink()
        if owns_client:
            await client.aclose()

    logger.info("Downloaded %d bytes to %s", written, destination)
    return destination


def probe_audio_duration(path: Union[str, Path]) -> float:
    """Return the duration of an audio file in seconds."""

    # moviepy pulls in numpy/imageio; import only when a duration is needed.
    from moviepy import AudioFileClip

    with AudioFileClip(str(path)) as clip:
        duration = float(clip.duration or 0.0)
    if duration <= 0:
        raise ValueError(f"could not determine audio duration for {path}")
    return duration
