"""Read-only series sources.

Both sources answer the same question: which non-virtual series with a
known TVDB id exist, where do they live, and do they already have a
theme song. Nothing here writes to the library.

    FilesystemSeriesSource -- walks library folders (one folder per show)
    JellyfinSeriesSource   -- asks a Jellyfin server via /Items
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import httpx
from loguru import logger

from .errors import ConfigError, NetworkError
from .models import AUDIO_EXTENSIONS, THEME_FILENAME, THEME_MUSIC_DIR, SeriesRecord
from .sanitize import generate_series_id

if TYPE_CHECKING:
    from .config import ThemeSongConfig

log = logger.bind(stage="library")

NFO_FILENAME = "tvshow.nfo"

# [tvdbid-81189], {tvdb-81189}, (tvdb 81189)
_FOLDER_TVDB_RE = re.compile(r"[\[{(]\s*tvdb(?:id)?[-_=\s]?(\d+)\s*[\]})]", re.IGNORECASE)
_NFO_UNIQUEID_RE = re.compile(
    r'<uniqueid[^>]*type="tvdb"[^>]*>\s*(\d+)\s*</uniqueid>', re.IGNORECASE
)
_NFO_TVDBID_RE = re.compile(r"<tvdbid>\s*(\d+)\s*</tvdbid>", re.IGNORECASE)
_NFO_TITLE_RE = re.compile(r"<title>\s*(.*?)\s*</title>", re.IGNORECASE | re.DOTALL)


class SeriesSource(Protocol):
    def list_series(self) -> list[SeriesRecord]: ...


def has_theme_song(series_path: Path) -> bool:
    """True if theme.mp3 exists or theme-music/ holds at least one audio file."""
    if (series_path / THEME_FILENAME).is_file():
        return True
    theme_dir = series_path / THEME_MUSIC_DIR
    if theme_dir.is_dir():
        return any(
            f.is_file() and f.suffix.lower() in AUDIO_EXTENSIONS
            for f in theme_dir.iterdir()
        )
    return False


def parse_nfo(text: str) -> dict:
    """Pull title and tvdb_id out of a Kodi-style tvshow.nfo."""
    result: dict[str, str] = {}
    title = _NFO_TITLE_RE.search(text)
    if title and title.group(1):
        result["title"] = title.group(1)
    tvdb = _NFO_UNIQUEID_RE.search(text) or _NFO_TVDBID_RE.search(text)
    if tvdb:
        result["tvdb_id"] = tvdb.group(1)
    return result


def strip_id_tags(folder_name: str) -> str:
    """'Lost (2004) [tvdbid-73739]' -> 'Lost (2004)'."""
    return re.sub(r"\s+", " ", _FOLDER_TVDB_RE.sub("", folder_name)).strip()


class FilesystemSeriesSource:
    """Every visible sub-folder of a library folder is a series."""

    def __init__(self, library_dirs: list[Path]) -> None:
        self.library_dirs = [Path(d) for d in library_dirs]

    def _read_series(self, folder: Path) -> SeriesRecord | None:
        info: dict[str, str] = {}
        nfo = folder / NFO_FILENAME
        if nfo.is_file():
            try:
                info = parse_nfo(nfo.read_text(encoding="utf-8", errors="replace"))
            except OSError as e:
                log.warning(f"Cannot read {nfo}: {e}")

        tvdb_id = info.get("tvdb_id")
        if not tvdb_id:
            folder_tag = _FOLDER_TVDB_RE.search(folder.name)
            tvdb_id = folder_tag.group(1) if folder_tag else None
        if not tvdb_id:
            log.debug(f"Skipping {folder.name}: no TVDB id")
            return None

        return SeriesRecord(
            id=generate_series_id(folder),
            name=info.get("title") or strip_id_tags(folder.name),
            path=folder,
            tvdb_id=tvdb_id,
            has_theme=has_theme_song(folder),
        )

    def list_series(self) -> list[SeriesRecord]:
        series: list[SeriesRecord] = []
        for root in self.library_dirs:
            if not root.is_dir():
                log.warning(f"Library folder not found: {root}")
                continue
            for folder in sorted(root.iterdir()):
                if not folder.is_dir() or folder.name.startswith("."):
                    continue
                record = self._read_series(folder)
                if record is not None:
                    series.append(record)
        log.info(f"Found {len(series)} series in {len(self.library_dirs)} library folder(s)")
        return series


class JellyfinSeriesSource:
    """Series from a Jellyfin server. Paths must be reachable from this host."""

    def __init__(self, base_url: str, api_key: str, client: httpx.Client) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.client = client

    def list_series(self) -> list[SeriesRecord]:
        params = {
            "IncludeItemTypes": "Series",
            "Recursive": "true",
            "IsVirtualItem": "false",
            "HasTvdbId": "true",
            "Fields": "Path,ProviderIds",
        }
        url = f"{self.base_url}/Items"
        try:
            resp = self.client.get(
                url,
                params=params,
                headers={"X-Emby-Token": self.api_key},
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise NetworkError(url, str(e)) from e

        try:
            items = resp.json().get("Items", [])
        except ValueError as e:
            raise NetworkError(url, f"invalid JSON response: {e}") from e

        series: list[SeriesRecord] = []
        for item in items:
            path = item.get("Path")
            tvdb_id = (item.get("ProviderIds") or {}).get("Tvdb")
            if not path or not tvdb_id:
                log.debug(f"Skipping {item.get('Name')!r}: missing path or TVDB id")
                continue
            folder = Path(path)
            series.append(
                SeriesRecord(
                    id=item.get("Id") or generate_series_id(folder),
                    name=item.get("Name", folder.name),
                    path=folder,
                    tvdb_id=str(tvdb_id),
                    has_theme=has_theme_song(folder),
                )
            )
        log.info(f"Jellyfin reported {len(series)} series")
        return series


def build_series_source(
    config: ThemeSongConfig,
    client: httpx.Client | None = None,
) -> SeriesSource:
    """Jellyfin when jellyfin_url is set, otherwise the library folders."""
    if config.jellyfin_url:
        if client is None:
            raise ConfigError("Jellyfin source needs an HTTP client")
        return JellyfinSeriesSource(config.jellyfin_url, config.jellyfin_api_key, client)
    if config.library_dirs:
        return FilesystemSeriesSource(config.library_dirs)
    raise ConfigError("No series source configured: set LIBRARY_DIRS or JELLYFIN_URL")
