"""Filename sanitization and series id generation."""

import hashlib
import re
from pathlib import Path

from loguru import logger

log = logger.bind(stage="sanitize")

MAX_FILENAME_BYTES = 255


def sanitize_filename(filename: str) -> str:
    """Sanitize a filename component (not a full path).

    Replaces unsafe chars with underscores, removes leading dots,
    collapses repeated underscores, truncates to 255 bytes preserving extension.
    """
    # Replace unsafe characters
    sanitized = re.sub(r'[/\\:"*?<>|;]+', "_", filename)
    # Remove leading dots/underscores
    sanitized = re.sub(r"^[._]+", "", sanitized)
    # Collapse repeated underscores
    sanitized = re.sub(r"__+", "_", sanitized)

    if len(sanitized.encode("utf-8")) > MAX_FILENAME_BYTES:
        p = Path(sanitized)
        ext = p.suffix
        stem = p.stem
        while len((stem + ext).encode("utf-8")) > MAX_FILENAME_BYTES and stem:
            stem = stem[:-1]
        sanitized = stem + ext
        log.debug(f"Truncated filename to {len(sanitized.encode('utf-8'))} bytes: '{sanitized}'")

    return sanitized


def cache_filename(name: str, tvdb_id: str | None, extension: str = ".mp3") -> str:
    """Deterministic scratch filename for a series: '<name>_<tvdb id>.mp3'.

    The TVDB id keeps two series with the same display name apart, so
    long names are shortened before the id is appended, never after.
    """
    suffix = sanitize_filename(f"{tvdb_id or 'none'}{extension}")
    stem = sanitize_filename(name)
    budget = MAX_FILENAME_BYTES - len(f"_{suffix}".encode("utf-8"))
    while len(stem.encode("utf-8")) > budget and stem:
        stem = stem[:-1]
    return f"{stem}_{suffix}"


def generate_series_id(series_path: Path) -> str:
    """Generate a 16-char hex id from a series folder path."""
    return hashlib.sha256(f"{series_path}\n".encode()).hexdigest()[:16]
