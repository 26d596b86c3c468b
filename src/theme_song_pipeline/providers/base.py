"""Common interface for theme song providers."""

from abc import ABC, abstractmethod

from ..models import SeriesRecord


class ThemeSongProvider(ABC):
    """Something that can turn a series into a direct theme song URL.

    Lower priority values are tried first by the resolution chain.
    """

    name: str = ""

    def __init__(self, priority: int, enabled: bool = True) -> None:
        self.priority = priority
        self.enabled = enabled

    @abstractmethod
    def resolve(self, series: SeriesRecord) -> str | None:
        """Return a downloadable URL for series, or None if there isn't one.

        May raise on network or parse failures; the chain treats that as
        "this provider has nothing" and moves on.
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}(priority={self.priority}, enabled={self.enabled})"
