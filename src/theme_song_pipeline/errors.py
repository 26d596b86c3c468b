"""Exception hierarchy and error categorization for the theme song pipeline."""

import httpx

from .models import ErrorCategory


class ThemeSongError(Exception):
    """Base exception for all pipeline errors."""


class ConfigError(ThemeSongError):
    """Invalid or missing configuration."""


class NetworkError(ThemeSongError):
    """A remote fetch, probe, or download failed."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class VolumeParseError(ThemeSongError, ValueError):
    """Analyzer output did not contain a usable max_volume value."""


class PlacementError(ThemeSongError):
    """The theme file could not be moved into the series folder."""


class RunCancelled(ThemeSongError):
    """The acquisition run was cancelled."""


class ExternalToolError(ThemeSongError):
    """An external subprocess (ffmpeg) failed."""

    def __init__(self, tool: str, exit_code: int, stderr: str) -> None:
        super().__init__(f"{tool} exited with code {exit_code}: {stderr}")
        self.tool = tool
        self.exit_code = exit_code
        self.stderr = stderr


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Map an exception onto the failure taxonomy.

    Unknown exceptions count as process failures: they stop work on the
    current series but never the batch.
    """
    if isinstance(exc, (NetworkError, httpx.HTTPError)):
        return ErrorCategory.TRANSIENT_NETWORK
    if isinstance(exc, VolumeParseError):
        return ErrorCategory.PARSE
    if isinstance(exc, (PlacementError, OSError)):
        return ErrorCategory.FILESYSTEM
    return ErrorCategory.PROCESS
