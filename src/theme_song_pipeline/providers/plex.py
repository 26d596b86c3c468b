"""Plex theme host: one mp3 per TVDB id, probed with a HEAD request."""

import httpx
from loguru import logger

from ..api.http import head_exists
from ..models import SeriesRecord
from .base import ThemeSongProvider

log = logger.bind(stage="plex")

BASE_URL = "http://tvthemes.plexapp.com"


def theme_url(tvdb_id: str) -> str:
    return f"{BASE_URL}/{tvdb_id}.mp3"


class PlexProvider(ThemeSongProvider):
    name = "Plex"

    def __init__(self, client: httpx.Client, priority: int = 1, enabled: bool = True) -> None:
        super().__init__(priority=priority, enabled=enabled)
        self.client = client

    def resolve(self, series: SeriesRecord) -> str | None:
        if not series.tvdb_id:
            log.debug(f"No TVDB id for {series.name}")
            return None

        url = theme_url(series.tvdb_id)
        log.debug(f"Checking Plex for {series.name} at {url}")
        if head_exists(self.client, url):
            log.info(f"Found theme song for {series.name} on Plex")
            return url

        log.debug(f"No theme song for {series.name} on Plex")
        return None
