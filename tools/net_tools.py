"""Network leaves: downloading remote build inputs."""

from __future__ import annotations

import logging
from pathlib import Path

import httpx

logger = logging.getLogger("wavebuild.net")

DEFAULT_TIMEOUT = httpx.Timeout(connect=10.0, read=60.0, write=10.0, pool=5.0)


def build_client(timeout: httpx.Timeout = DEFAULT_TIMEOUT) -> httpx.Client:
    return httpx.Client(timeout=timeout, follow_redirects=True)


def download(client: httpx.Client, url: str, dest: Path) -> Path:
    """Stream ``url`` into ``dest``; raises httpx.HTTPStatusError on 4xx/5xx."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    partial = dest.with_name(dest.name + ".part")
    with client.stream("GET", url) as response:
        response.raise_for_status()
        with partial.open("wb") as fh:
            for chunk in response.iter_bytes():
                fh.write(chunk)
    partial.replace(dest)
    logger.info('Download "%s" done', url)
    return dest
