"""Loudness normalization: decide whether a track needs re-encoding, and do it.

The decision is a pure comparison of the configured target against the
measured peak volume. Files within tolerance are returned untouched, so
running this twice on the same file only costs a second measurement.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from .ffmpeg import encode_normalized, measure_volume, parse_volume_value
from .models import NORMALIZED_PREFIX, VOLUME_TOLERANCE_DB, NormalizationDecision

if TYPE_CHECKING:
    from .config import ThemeSongConfig

log = logger.bind(stage="normalize")


def format_target(volume_db: int) -> str:
    """Render the configured target volume, e.g. -15 -> '-15dB'."""
    return f"{volume_db}dB"


def decide(
    target_db: float,
    measured_db: float,
    tolerance: float = VOLUME_TOLERANCE_DB,
) -> NormalizationDecision:
    return NormalizationDecision(
        target_db=target_db,
        measured_db=measured_db,
        tolerance=tolerance,
    )


def normalized_output_path(file: Path) -> Path:
    """Sibling output path: /cache/Show_1.mp3 -> /cache/normalized_Show_1.mp3."""
    return file.with_name(f"{NORMALIZED_PREFIX}{file.name}")


def check_input_readable(file: Path) -> None:
    """Raise FileNotFoundError / PermissionError if file can't be read."""
    if not file.is_file():
        raise FileNotFoundError(f"File not found: {file}")
    try:
        with open(file, "rb"):
            pass
    except OSError as exc:
        raise PermissionError(f"File is not accessible: {file}") from exc


def analyze(file: Path, config: ThemeSongConfig) -> NormalizationDecision:
    """Measure file and compare it against the configured target."""
    check_input_readable(file)
    target = parse_volume_value(format_target(config.normalize_audio_volume))
    measured = measure_volume(
        file,
        ffmpeg_bin=config.ffmpeg_bin,
        timeout=config.ffmpeg_timeout,
    )
    decision = decide(target, measured.db)
    log.debug(
        f"{file.name}: target={target} dB measured={measured.db} dB "
        f"verdict={decision.verdict}"
    )
    return decision


def normalize_file(file: Path, config: ThemeSongConfig) -> Path:
    """Return a path holding a normalized version of file.

    Returns file itself when normalization is disabled or the volume is
    already within tolerance. Otherwise writes normalized_<name> next to
    it and returns that path. Raises ExternalToolError if ffmpeg fails;
    the source file is left in place either way.
    """
    if not config.normalize_audio:
        log.debug("Audio normalization is disabled in configuration")
        return file

    decision = analyze(file, config)
    if not decision.needs_normalization:
        log.info(
            f"Volume already normalized for {file.name}: {decision.measured_db} dB"
        )
        return file

    output = normalized_output_path(file)
    if output.exists():
        output.unlink()

    log.info(f"Normalizing {file.name} -> {output.name}")
    try:
        encode_normalized(
            file,
            output,
            ffmpeg_bin=config.ffmpeg_bin,
            timeout=config.ffmpeg_timeout,
        )
    except Exception:
        output.unlink(missing_ok=True)
        raise

    return output


def is_normalization_required(file: Path, config: ThemeSongConfig) -> bool:
    """True when file would be re-encoded by normalize_file."""
    if not config.normalize_audio:
        return False
    try:
        return analyze(file, config).needs_normalization
    except Exception as e:
        log.warning(f"Could not determine if normalization is required for {file}: {e}")
        return False
