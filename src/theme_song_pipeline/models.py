"""Core enums, constants, and record types for the theme song pipeline.

Enums:
    Outcome        -- Per-series acquisition result (skipped, not-found,
                      placed, failed). Logged only; the theme file itself
                      is the durable record of success.
    ErrorCategory  -- Failure taxonomy used when converting errors into
                      skip/continue decisions.
    Verdict        -- Normalization decision (needs / already normalized).
"""

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path


class Outcome(StrEnum):
    SKIPPED = "skipped"
    NOT_FOUND = "not-found"
    PLACED = "placed"
    FAILED = "failed"


class ErrorCategory(StrEnum):
    NOT_FOUND = "not-found"
    TRANSIENT_NETWORK = "transient-network"
    PARSE = "parse"
    PROCESS = "process"
    FILESYSTEM = "filesystem"


class Verdict(StrEnum):
    NEEDS_NORMALIZATION = "needs-normalization"
    ALREADY_NORMALIZED = "already-normalized"


THEME_FILENAME = "theme.mp3"
THEME_MUSIC_DIR = "theme-music"
CACHE_SUBDIR = "ThemeSongs"
NORMALIZED_PREFIX = "normalized_"

# Max allowed distance between target and measured peak volume
VOLUME_TOLERANCE_DB = 0.5

AUDIO_EXTENSIONS: frozenset[str] = frozenset(
    {
        ".mp3",
        ".m4a",
        ".flac",
        ".ogg",
        ".wav",
        ".wma",
    }
)


@dataclass(frozen=True)
class SeriesRecord:
    """A series as reported by the library. Never mutated by the pipeline."""

    id: str
    name: str
    path: Path
    tvdb_id: str | None = None
    has_theme: bool = False


@dataclass(frozen=True)
class ProviderResult:
    """URL found by a provider, or the absence of one."""

    provider: str | None = None
    url: str | None = None

    @property
    def found(self) -> bool:
        return bool(self.url)


@dataclass(frozen=True)
class MatchCandidate:
    """A (title variant, pattern) pair that hit, plus the captured page path."""

    variant: str
    pattern: str
    path: str


@dataclass(frozen=True)
class VolumeMeasurement:
    db: float

    def __str__(self) -> str:
        return f"{self.db} dB"


@dataclass(frozen=True)
class NormalizationDecision:
    target_db: float
    measured_db: float
    tolerance: float = VOLUME_TOLERANCE_DB

    @property
    def verdict(self) -> Verdict:
        if abs(self.target_db - self.measured_db) < self.tolerance:
            return Verdict.ALREADY_NORMALIZED
        return Verdict.NEEDS_NORMALIZATION

    @property
    def needs_normalization(self) -> bool:
        return self.verdict == Verdict.NEEDS_NORMALIZATION


@dataclass
class AcquisitionResult:
    """What happened to one series during a run."""

    series: str
    outcome: Outcome
    provider: str | None = None
    url: str | None = None
    error: str | None = None
    category: ErrorCategory | None = None


@dataclass
class BatchResult:
    """Result summary from a full-library acquisition run."""

    placed: int = 0
    not_found: int = 0
    skipped: int = 0
    failed: int = 0
    total: int = 0
    cancelled: bool = False
    results: list[AcquisitionResult] = field(default_factory=list)

    def record(self, result: AcquisitionResult) -> None:
        self.results.append(result)
        if result.outcome == Outcome.PLACED:
            self.placed += 1
        elif result.outcome == Outcome.NOT_FOUND:
            self.not_found += 1
        elif result.outcome == Outcome.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1
