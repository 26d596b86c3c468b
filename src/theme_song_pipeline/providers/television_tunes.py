"""televisiontunes.com scraper.

Flow: section index page -> title match -> show page -> mp3 reference.
"""

import html
import re

import httpx
from loguru import logger

from ..api.http import get_text
from ..matcher import find_series_match, section_key
from ..models import SeriesRecord
from .base import ThemeSongProvider

log = logger.bind(stage="tvtunes")

BASE_URL = "http://televisiontunes.com"

_AUDIO_REF_RE = re.compile(
    r"televisiontunes\.com/uploads/audio/(?P<themesong>.*?)\.mp3",
    re.IGNORECASE,
)


def section_url(name: str) -> str:
    return f"{BASE_URL}/{section_key(name)}-theme-songs.html"


def extract_audio_url(page_html: str) -> str | None:
    """First uploads/audio/*.mp3 reference on a show page, entity-decoded."""
    match = _AUDIO_REF_RE.search(page_html or "")
    if not match:
        return None
    return f"{BASE_URL}/uploads/audio/{html.unescape(match.group('themesong'))}.mp3"


class TelevisionTunesProvider(ThemeSongProvider):
    name = "TelevisionTunes"

    def __init__(self, client: httpx.Client, priority: int = 2, enabled: bool = True) -> None:
        super().__init__(priority=priority, enabled=enabled)
        self.client = client

    def resolve(self, series: SeriesRecord) -> str | None:
        log.debug(f"Searching TelevisionTunes for {series.name}")

        index_url = section_url(series.name)
        index_html = get_text(self.client, index_url)
        if not index_html:
            log.warning(f"Failed to retrieve index page {index_url}")
            return None

        candidate = find_series_match(index_html, series.name)
        if candidate is None:
            log.debug(f"{series.name} not listed on {index_url}")
            return None

        page_html = get_text(self.client, f"{BASE_URL}/{candidate.path}")
        if not page_html:
            return None

        url = extract_audio_url(page_html)
        if url:
            log.info(f"Found theme song for {series.name} on TelevisionTunes")
            log.debug(f"Theme song URL: {url}")
        else:
            log.debug(f"No audio reference on {candidate.path}")
        return url
