"""Priority-ordered fallback across theme song providers."""

from collections.abc import Iterable

from loguru import logger

from .errors import categorize_error
from .models import ProviderResult, SeriesRecord
from .providers.base import ThemeSongProvider

log = logger.bind(stage="chain")


class ResolutionChain:
    """Tries enabled providers in ascending priority; first URL wins.

    Priorities are read once, when the chain is built. A provider that
    raises is logged and skipped, so resolve() never raises for provider
    failures and returns an empty ProviderResult when nothing matched.
    """

    def __init__(self, providers: Iterable[ThemeSongProvider]) -> None:
        self.providers = sorted(
            (p for p in providers if p.enabled),
            key=lambda p: p.priority,
        )
        log.debug(
            "Provider order: "
            + (" -> ".join(f"{p.name}({p.priority})" for p in self.providers) or "none")
        )

    def resolve(self, series: SeriesRecord) -> ProviderResult:
        for provider in self.providers:
            try:
                url = provider.resolve(series)
            except Exception as e:
                log.debug(
                    f"{series.name}: {provider.name} failed "
                    f"({categorize_error(e)}): {e}"
                )
                continue
            if url:
                return ProviderResult(provider=provider.name, url=url)

        return ProviderResult()
