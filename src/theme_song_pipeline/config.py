"""Pipeline configuration via pydantic-settings (.env + env vars)."""

import sys
from pathlib import Path

from loguru import logger
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import CACHE_SUBDIR


class ThemeSongConfig(BaseSettings):
    """All pipeline configuration with layered resolution:
    .env file < environment variables < constructor kwargs.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # -- Directories --
    cache_root: Path = Path("/var/cache/theme-song-pipeline")
    log_dir: Path = Path("/var/log/theme-song-pipeline")
    lock_dir: Path = Path("/var/lib/theme-song-pipeline/locks")

    # -- Series source --
    library_dirs: list[Path] = []
    jellyfin_url: str = ""
    jellyfin_api_key: str = ""

    # -- Normalization --
    normalize_audio: bool = True
    normalize_audio_volume: int = -15
    ffmpeg_bin: str = "ffmpeg"
    ffmpeg_timeout: float = 300.0

    # -- Providers (lower priority is tried first) --
    plex_provider_enabled: bool = True
    plex_provider_priority: int = 1
    television_tunes_provider_enabled: bool = True
    television_tunes_provider_priority: int = 2

    # -- Network --
    http_timeout: float = 30.0
    user_agent: str = "theme-song-pipeline/1.0"
    # The scrape host serves a broken certificate chain; validation is off
    # for it (and for downloads) unless explicitly enabled.
    scrape_verify_tls: bool = False

    # -- Behavior --
    max_workers: int = 1
    verbose: bool = False
    log_level: str = "INFO"

    @property
    def cache_dir(self) -> Path:
        """Scratch directory for downloads. Created lazily per run."""
        return self.cache_root / CACHE_SUBDIR

    def ensure_dirs(self) -> None:
        """Create log and lock directories if they don't exist."""
        for d in (self.log_dir, self.lock_dir):
            d.mkdir(parents=True, exist_ok=True)

    def setup_logging(self) -> None:
        """Configure loguru for the pipeline."""
        logger.remove()  # Remove default stderr handler

        log_format = (
            "{time:YYYY-MM-DDTHH:mm:ssZ} | {level:<8} | "
            "{extra[stage]:<12} | {message}"
        )

        def _default_extra(record):
            record["extra"].setdefault("stage", "")
            return True

        logger.add(
            sys.stderr,
            format=log_format,
            level="DEBUG" if self.verbose else self.log_level.upper(),
            filter=_default_extra,
        )

        self.log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(self.log_dir / "theme-songs.log"),
            format=log_format,
            level="DEBUG",
            rotation="10 MB",
            retention="30 days",
            filter=_default_extra,
        )
