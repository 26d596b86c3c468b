"""Thin httpx helpers shared by providers, series sources, and the downloader."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import TYPE_CHECKING

import httpx
from loguru import logger

from ..errors import NetworkError, RunCancelled

if TYPE_CHECKING:
    from ..config import ThemeSongConfig

log = logger.bind(stage="http")

CHUNK_SIZE = 64 * 1024


def build_client(config: ThemeSongConfig, verify: bool = True) -> httpx.Client:
    """Client with the pipeline User-Agent, timeout, and redirects followed.

    verify=False disables TLS certificate validation for every request made
    through the client.
    """
    if not verify:
        log.debug("TLS certificate validation disabled for this client")
    return httpx.Client(
        headers={"User-Agent": config.user_agent},
        timeout=config.http_timeout,
        follow_redirects=True,
        verify=verify,
    )


def get_text(client: httpx.Client, url: str) -> str | None:
    """GET url and return the body, or None on a non-2xx response."""
    log.debug(f"GET {url}")
    try:
        resp = client.get(url)
    except httpx.HTTPError as e:
        raise NetworkError(url, str(e)) from e

    if not resp.is_success:
        log.warning(f"HTTP {resp.status_code} for {url}")
        return None
    return resp.text


def head_exists(client: httpx.Client, url: str) -> bool:
    """HEAD url (no body transfer). True when the server answers 2xx."""
    log.debug(f"HEAD {url}")
    try:
        resp = client.head(url)
    except httpx.HTTPError as e:
        raise NetworkError(url, str(e)) from e
    return resp.is_success


def download_file(
    client: httpx.Client,
    url: str,
    dest: Path,
    cancel: threading.Event | None = None,
) -> None:
    """Stream url into dest, replacing whatever is there.

    Checks cancel between chunks. Leaves any partial file for the caller
    to clean up.
    """
    log.info(f"Downloading {url} -> {dest}")
    try:
        with client.stream("GET", url) as resp:
            if not resp.is_success:
                raise NetworkError(url, f"HTTP {resp.status_code}")
            with open(dest, "wb") as fh:
                for chunk in resp.iter_bytes(CHUNK_SIZE):
                    if cancel is not None and cancel.is_set():
                        raise RunCancelled(f"Download cancelled: {url}")
                    fh.write(chunk)
    except httpx.HTTPError as e:
        raise NetworkError(url, str(e)) from e

    log.debug(f"Downloaded {dest.stat().st_size:,} bytes to {dest.name}")
