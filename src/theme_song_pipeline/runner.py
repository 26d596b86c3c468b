"""Pipeline runner -- the "run full-library acquisition" action."""

from __future__ import annotations

import threading
from functools import partial

import click
from loguru import logger

from .api.http import build_client, download_file
from .chain import ResolutionChain
from .concurrency import acquire_global_lock, release_global_lock
from .config import ThemeSongConfig
from .library import build_series_source
from .models import BatchResult
from .normalize import normalize_file
from .orchestrator import run_batch
from .providers import build_providers

log = logger.bind(stage="runner")


class ThemeSongRunner:
    """Wires config into clients, providers, and a series source, then runs a batch.

    Only one run per lock directory can be in flight; a second concurrent
    run raises LockError before touching anything.
    """

    def __init__(self, config: ThemeSongConfig) -> None:
        self.config = config

    def run(
        self,
        cancel: threading.Event | None = None,
        skip_lock: bool = False,
    ) -> BatchResult:
        config = self.config
        config.ensure_dirs()
        lock = acquire_global_lock(config.lock_dir, skip=skip_lock)
        try:
            with (
                build_client(config) as probe_client,
                build_client(config, verify=config.scrape_verify_tls) as scrape_client,
            ):
                source = build_series_source(config, probe_client)
                providers = build_providers(config, probe_client, scrape_client)
                chain = ResolutionChain(providers)

                click.echo(
                    "Providers: "
                    + (", ".join(p.name for p in chain.providers) or "none enabled")
                )
                result = run_batch(
                    source=source,
                    chain=chain,
                    cache_dir=config.cache_dir,
                    download=partial(download_file, scrape_client, cancel=cancel),
                    normalize=partial(normalize_file, config=config),
                    max_workers=config.max_workers,
                    cancel=cancel,
                )
        finally:
            release_global_lock(lock)

        click.echo(
            f"\nRun complete: {result.placed} placed, {result.not_found} not found, "
            f"{result.skipped} skipped, {result.failed} failed"
        )
        if result.failed:
            log.warning(f"Run had {result.failed} failures out of {result.total}")
        return result
