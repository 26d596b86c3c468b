"""Full-library acquisition: resolve, download, normalize, and place theme songs.

Each series is handled on its own. Any failure is logged, its scratch
files are removed, and the run moves on to the next series. Nothing is
retried within a run; the next run re-checks theme presence from scratch.

Scratch files live in one shared cache directory, created lazily, and
are named from the series name + TVDB id so concurrent workers (and
repeated runs) never collide.
"""

from __future__ import annotations

import errno
import os
import shutil
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from .errors import PlacementError, categorize_error
from .models import (
    THEME_FILENAME,
    AcquisitionResult,
    BatchResult,
    ErrorCategory,
    Outcome,
    SeriesRecord,
)
from .normalize import normalized_output_path
from .sanitize import cache_filename

if TYPE_CHECKING:
    from .chain import ResolutionChain
    from .library import SeriesSource

log = logger.bind(stage="orchestrator")

Downloader = Callable[[str, Path], None]
Normalizer = Callable[[Path], Path]


class ThemeCache:
    """Scratch directory shared by all series in a run."""

    def __init__(self, cache_dir: Path) -> None:
        self.cache_dir = cache_dir
        self._lock = threading.Lock()
        self._ready = False

    def ensure(self) -> Path:
        """Create the cache directory once, on first use."""
        with self._lock:
            if not self._ready:
                self.cache_dir.mkdir(parents=True, exist_ok=True)
                self._ready = True
                log.debug(f"Cache directory ready: {self.cache_dir}")
        return self.cache_dir

    def temp_path(self, series: SeriesRecord) -> Path:
        return self.ensure() / cache_filename(series.name, series.tvdb_id)


def place_theme(source: Path, dest: Path) -> None:
    """Move source onto dest atomically, replacing any earlier file.

    Falls back to copy + rename when source and dest are on different
    filesystems, so dest is never observed half-written.
    """
    if not dest.parent.is_dir():
        raise PlacementError(f"Series folder does not exist: {dest.parent}")
    try:
        os.replace(source, dest)
        return
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise PlacementError(f"Cannot move {source} to {dest}: {e}") from e

    staging = dest.with_name(f".{dest.name}.partial")
    try:
        shutil.copy2(source, staging)
        os.replace(staging, dest)
    except OSError as e:
        staging.unlink(missing_ok=True)
        raise PlacementError(f"Cannot copy {source} to {dest}: {e}") from e
    source.unlink(missing_ok=True)


def _remove_scratch(temp: Path) -> None:
    for path in (temp, normalized_output_path(temp)):
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            log.warning(f"Could not remove scratch file {path}: {e}")


def acquire_one(
    series: SeriesRecord,
    chain: ResolutionChain,
    cache: ThemeCache,
    download: Downloader,
    normalize: Normalizer,
) -> AcquisitionResult:
    """Run every step for a single series. Raises only on unexpected errors."""
    if series.has_theme:
        log.debug(f"{series.name} already has a theme song")
        return AcquisitionResult(series=series.name, outcome=Outcome.SKIPPED)

    found = chain.resolve(series)
    if not found.found:
        log.info(f"{series.name} theme song not found")
        return AcquisitionResult(
            series=series.name,
            outcome=Outcome.NOT_FOUND,
            category=ErrorCategory.NOT_FOUND,
        )

    temp = cache.temp_path(series)
    dest = series.path / THEME_FILENAME
    try:
        log.info(f"Downloading {series.name} theme song from {found.provider}")
        download(found.url, temp)
        final = normalize(temp)
        place_theme(final, dest)
    except Exception as e:
        category = categorize_error(e)
        log.error(f"{series.name}: theme song failed ({category}): {e}")
        return AcquisitionResult(
            series=series.name,
            outcome=Outcome.FAILED,
            provider=found.provider,
            url=found.url,
            error=str(e),
            category=category,
        )
    finally:
        _remove_scratch(temp)

    log.info(f"{series.name} theme song placed at {dest}")
    return AcquisitionResult(
        series=series.name,
        outcome=Outcome.PLACED,
        provider=found.provider,
        url=found.url,
    )


def _acquire_safe(
    series: SeriesRecord,
    chain: ResolutionChain,
    cache: ThemeCache,
    download: Downloader,
    normalize: Normalizer,
) -> AcquisitionResult:
    """acquire_one that turns any stray exception into a FAILED result."""
    try:
        return acquire_one(series, chain, cache, download, normalize)
    except Exception as e:
        category = categorize_error(e)
        log.error(f"Error processing {series.name} ({category}): {e}")
        return AcquisitionResult(
            series=series.name,
            outcome=Outcome.FAILED,
            error=str(e),
            category=category,
        )


def run_batch(
    source: SeriesSource,
    chain: ResolutionChain,
    cache_dir: Path,
    download: Downloader,
    normalize: Normalizer,
    max_workers: int = 1,
    cancel: threading.Event | None = None,
) -> BatchResult:
    """Acquire theme songs for every series the source reports.

    Sequential when max_workers <= 1, otherwise a bounded thread pool.
    The cancel event is checked before each series is started.
    """
    series_list = source.list_series()
    result = BatchResult(total=len(series_list))
    if not series_list:
        log.warning("No series to process")
        return result

    cache = ThemeCache(cache_dir)
    log.info(
        f"Starting theme song run: {len(series_list)} series, "
        f"max_workers={max(1, max_workers)}"
    )

    def _cancelled() -> bool:
        return cancel is not None and cancel.is_set()

    if max_workers <= 1:
        for series in series_list:
            if _cancelled():
                result.cancelled = True
                log.warning("Run cancelled, stopping before remaining series")
                break
            result.record(_acquire_safe(series, chain, cache, download, normalize))
    else:

        def _worker(series: SeriesRecord) -> AcquisitionResult | None:
            if _cancelled():
                return None
            return _acquire_safe(series, chain, cache, download, normalize)

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [executor.submit(_worker, s) for s in series_list]
            for future in as_completed(futures):
                outcome = future.result()
                if outcome is None:
                    result.cancelled = True
                    continue
                result.record(outcome)

    if _cancelled():
        result.cancelled = True

    log.info(
        f"Run complete: {result.placed} placed, {result.not_found} not found, "
        f"{result.skipped} skipped, {result.failed} failed"
        + (" (cancelled)" if result.cancelled else "")
    )
    return result
