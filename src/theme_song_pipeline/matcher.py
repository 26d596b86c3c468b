"""Title matching against televisiontunes.com style index pages.

Index pages list every show in a section as ``<li><a href="/slug">Title</a></li>``
(sometimes ``Title - Theme Song``). Matching is plain regex over the raw
HTML, tried in a fixed order:

    for each title variant (verbatim first, loosest last):
        for each link pattern (strict first, trailing dash last):
            last matching anchor in the page wins

The first (variant, pattern) pair that hits is returned. Taking the last
anchor keeps a short title from latching onto an earlier entry whose
text merely starts the same way.
"""

import re

from loguru import logger

from .models import MatchCandidate

log = logger.bind(stage="matcher")

ARTICLES = ("The", "A")
SUBTITLE_SEPARATOR = " - "
NUMBERS_SECTION = "numbers"

# The url group stops at the closing quote so a match can never span
# from one anchor into the next.
LINK_PATTERNS: tuple[str, ...] = (
    r'<li><a href="/(?P<url>[^"]*?)"\s*>\s*{0}\s*</a></li>',  # flexible spaces
    r'<li><a href="/(?P<url>[^"]*?)"\s*>\s*{0}\s*-',  # flexible spaces, dash
    r'<li><a href="/(?P<url>[^"]*?)"\s*>\s*{0}</a></li>',  # no trailing space
    r'<li><a href="/(?P<url>[^"]*?)"\s*>\s*{0}\s*- ',  # dash then space
)

_PARENTHESIZED = re.compile(r".\(.*?\)")
_PUNCTUATION = re.compile(r"[./']")


def search_title(name: str) -> str:
    """Move a leading article to the end: 'The Office' -> 'Office, The'."""
    for article in ARTICLES:
        prefix = article + " "
        if name[: len(prefix)].lower() == prefix.lower():
            return f"{name[len(prefix):].strip()}, {article}"
    return name


def section_key(name: str) -> str:
    """Index section for a title: its first search-title character, or 'numbers'."""
    title = search_title(name).strip()
    if not title:
        raise ValueError("Cannot compute a section for an empty title")
    first = title[0]
    if first.isdigit():
        return NUMBERS_SECTION
    return first


def title_variants(name: str) -> list[str]:
    """Ordered, de-duplicated title variants, most specific first."""
    candidates = [
        name,
        name.replace("&", "and"),
        _PARENTHESIZED.sub("", name).strip(),
        _PUNCTUATION.sub("", name).strip(),
        _PUNCTUATION.sub(" ", name).strip(),
    ]
    if SUBTITLE_SEPARATOR in name:
        candidates.append(name.split(SUBTITLE_SEPARATOR, 1)[0].strip())

    variants: list[str] = []
    for candidate in candidates:
        if candidate and candidate not in variants:
            variants.append(candidate)
    return variants


def _last_match(pattern: re.Pattern, html: str) -> re.Match | None:
    match = None
    for match in pattern.finditer(html):
        pass
    return match


def find_series_match(html: str, name: str) -> MatchCandidate | None:
    """Find the content-page path for name in an index page, or None."""
    if not html:
        return None

    for variant in title_variants(name):
        escaped = re.escape(variant)
        for template in LINK_PATTERNS:
            pattern = re.compile(template.format(escaped), re.IGNORECASE)
            match = _last_match(pattern, html)
            if match:
                log.info(f"Match with pattern {template} with {variant!r}")
                return MatchCandidate(
                    variant=variant,
                    pattern=template,
                    path=match.group("url"),
                )

    log.debug(f"No index entry matched {name!r}")
    return None
