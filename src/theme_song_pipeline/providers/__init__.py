"""Provider registry -- builds the configured set of theme song providers.

Providers:
    plex             -- Direct probe. Builds tvthemes.plexapp.com/<tvdb>.mp3
                        and confirms it with a HEAD request. Needs a TVDB id.
    television_tunes -- Scraper. Fetches the section index page for the
                        title, matches the title with matcher.find_series_match,
                        then pulls the mp3 reference from the show page.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import ThemeSongProvider
from .plex import PlexProvider
from .television_tunes import TelevisionTunesProvider

if TYPE_CHECKING:
    import httpx

    from ..config import ThemeSongConfig

__all__ = [
    "PlexProvider",
    "TelevisionTunesProvider",
    "ThemeSongProvider",
    "build_providers",
]


def build_providers(
    config: ThemeSongConfig,
    probe_client: httpx.Client,
    scrape_client: httpx.Client,
) -> list[ThemeSongProvider]:
    """Instantiate every provider with its configured priority and enabled flag."""
    return [
        PlexProvider(
            probe_client,
            priority=config.plex_provider_priority,
            enabled=config.plex_provider_enabled,
        ),
        TelevisionTunesProvider(
            scrape_client,
            priority=config.television_tunes_provider_priority,
            enabled=config.television_tunes_provider_enabled,
        ),
    ]
