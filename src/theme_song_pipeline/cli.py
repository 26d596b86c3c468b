"""CLI entry point for the theme song pipeline."""

import signal
import sys
import threading
from pathlib import Path

import click
from loguru import logger

from .concurrency import LockError
from .config import ThemeSongConfig
from .errors import ConfigError, NetworkError
from .runner import ThemeSongRunner

log = logger.bind(stage="cli")


@click.command()
@click.argument(
    "library_dirs",
    nargs=-1,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@click.option("--jellyfin-url", default=None, help="Read series from this Jellyfin server.")
@click.option("--jellyfin-api-key", default=None, help="Jellyfin API key.")
@click.option("--no-normalize", is_flag=True, help="Keep downloaded audio as-is.")
@click.option(
    "--target-volume",
    type=int,
    default=None,
    help="Target peak volume in dB (e.g. -15).",
)
@click.option("--workers", type=click.IntRange(min=1), default=None, help="Series processed in parallel.")
@click.option("--no-lock", is_flag=True, help="Skip single-run locking.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.option(
    "-c",
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Path to .env file.",
)
def main(
    library_dirs: tuple[Path, ...],
    jellyfin_url: str | None,
    jellyfin_api_key: str | None,
    no_normalize: bool,
    target_volume: int | None,
    workers: int | None,
    no_lock: bool,
    verbose: bool,
    config_file: str | None,
) -> None:
    """Download and normalize theme songs for every TV series in a library."""
    # Pass CLI flags as kwargs so they win over .env and environment
    config_kwargs: dict = {"verbose": verbose}
    if library_dirs:
        config_kwargs["library_dirs"] = list(library_dirs)
    if jellyfin_url:
        config_kwargs["jellyfin_url"] = jellyfin_url
    if jellyfin_api_key:
        config_kwargs["jellyfin_api_key"] = jellyfin_api_key
    if no_normalize:
        config_kwargs["normalize_audio"] = False
    if target_volume is not None:
        config_kwargs["normalize_audio_volume"] = target_volume
    if workers is not None:
        config_kwargs["max_workers"] = workers
    if verbose:
        config_kwargs["log_level"] = "DEBUG"
    if config_file:
        config_kwargs["_env_file"] = config_file

    config = ThemeSongConfig(**config_kwargs)
    config.setup_logging()

    cancel = threading.Event()

    def _request_stop(signum, frame):
        log.warning("Stop requested, finishing current series")
        cancel.set()

    signal.signal(signal.SIGTERM, _request_stop)

    log.info(
        f"Starting theme song run: normalize={config.normalize_audio} "
        f"target={config.normalize_audio_volume}dB workers={config.max_workers}"
    )
    try:
        ThemeSongRunner(config).run(cancel=cancel, skip_lock=no_lock)
    except (LockError, ConfigError, NetworkError) as e:
        click.echo(f"ERROR: {e}", err=True)
        sys.exit(1)
