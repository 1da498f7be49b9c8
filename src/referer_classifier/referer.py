"""
Referer classification for traffic source analysis.

Given the Referer header of a request, this module works out where the
visitor came from:
- Search: Search engines (Google, Bing, DuckDuckGo, etc.), with the search term
- Social: Social networks (Facebook, Twitter, LinkedIn, etc.)
- Email: Webmail clients
- Paid: Ad networks
- Internal: Same-host navigation (when the current page URL is known)
- Unknown: Anything the referer database doesn't recognize

Media other than "internal" and "unknown" come straight from the database,
so a custom database can introduce its own.
"""

import re
from collections import Counter
from dataclasses import dataclass
from typing import Any, Iterable, Mapping
from urllib.parse import SplitResult, parse_qs, urlsplit

from .database import default_referers
from .index import RefererIndex, get_index
from .models import RefererDatabase, RefererRecord

MEDIUM_INTERNAL = "internal"
MEDIUM_UNKNOWN = "unknown"
MEDIUM_SEARCH = "search"

KNOWN_SCHEMES = ("http", "https")

# Scheme prefix of an http(s) URL plus any slashes or backslashes after it
_WEB_SCHEME_RE = re.compile(r"(https?):[/\\]*", re.IGNORECASE)


class InvalidURL(ValueError):
    """Raised when a referer or current page URL cannot be parsed."""
    pass


@dataclass(frozen=True)
class RefererResult:
    """
    Classified referer information.

    Attributes:
        known: Whether the referer uses http or https
        referer: Referer name from the database (e.g., "Google")
        medium: "internal", "unknown", or a database medium (e.g., "search")
        search_parameter: Query key holding the search term (e.g., "q")
        search_term: The search term itself
        uri: The parsed referer URL
    """
    known: bool = False
    referer: str | None = None
    medium: str = MEDIUM_UNKNOWN
    search_parameter: str | None = None
    search_term: str | None = None
    uri: SplitResult | None = None

    @property
    def is_search(self) -> bool:
        return self.medium == MEDIUM_SEARCH

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-safe dictionary."""
        return {
            "url": self.uri.geturl() if self.uri is not None else None,
            "known": self.known,
            "referer": self.referer,
            "medium": self.medium,
            "search_parameter": self.search_parameter,
            "search_term": self.search_term,
        }


def _normalize_web_url(url: str) -> str:
    """
    Rewrite an http(s) URL the way browsers read it.

    - Backslashes before the query are path separators
    - Any run of slashes (or none) after the scheme introduces the host,
      so "http:google.com" and "http:///google.com" both mean google.com
    """
    match = _WEB_SCHEME_RE.match(url)
    if match is None:
        return url

    rest = url[match.end():]
    cut = len(rest)
    for marker in ("?", "#"):
        pos = rest.find(marker)
        if pos != -1:
            cut = min(cut, pos)
    rest = rest[:cut].replace("\\", "/").lstrip("/") + rest[cut:]

    return f"{match.group(1)}://{rest}"


def _remove_dot_segments(path: str) -> str:
    """Resolve "." and ".." segments in an absolute path, keeping empty segments."""
    if not path.startswith("/") or "." not in path:
        return path

    segments = path.split("/")[1:]
    output: list[str] = []
    for i, segment in enumerate(segments):
        last = i == len(segments) - 1
        if segment == ".":
            if last:
                output.append("")
        elif segment == "..":
            if output:
                output.pop()
            if last:
                output.append("")
        else:
            output.append(segment)

    return "/" + "/".join(output)


def parse_url(url: str) -> SplitResult:
    """
    Parse an absolute URL.

    http(s) URLs are read the way browsers read them: backslashes count as
    slashes, missing or extra slashes after the scheme are tolerated, and
    dot segments in the path are resolved.

    Raises:
        InvalidURL: If the URL has no scheme, an http(s) URL has no host,
            or the port is not a valid number
    """
    if not isinstance(url, str):
        raise InvalidURL(f"Expected a URL string, got {type(url).__name__}")

    try:
        uri = urlsplit(_normalize_web_url(url.strip()))
        if uri.scheme in KNOWN_SCHEMES:
            uri.port  # raises ValueError on a bad port
    except ValueError as e:
        raise InvalidURL(f"Invalid URL {url!r}: {e}") from e

    if not uri.scheme:
        raise InvalidURL(f"Invalid URL {url!r}: missing scheme")
    if uri.scheme in KNOWN_SCHEMES:
        if not uri.hostname:
            raise InvalidURL(f"Invalid URL {url!r}: missing host")
        uri = uri._replace(path=_remove_dot_segments(uri.path))

    return uri


def _extract_search(record: RefererRecord, uri: SplitResult) -> tuple[str | None, str | None]:
    """Last query parameter named by the record that has a single value."""
    parameter = term = None
    if not record.params:
        return parameter, term

    for key, values in parse_qs(uri.query, keep_blank_values=True).items():
        # Repeated keys parse to several values and don't count as a term
        if key.lower() in record.params and len(values) == 1:
            parameter, term = key, values[0]

    return parameter, term


def classify(
    index: RefererIndex,
    referer_url: str,
    current_url: str | None = None,
) -> RefererResult:
    """
    Classify a referer URL against a prebuilt index.

    Args:
        index: Index from build_index() or get_index()
        referer_url: The Referer header value (absolute URL)
        current_url: Optional URL of the page being viewed, for internal detection

    Raises:
        InvalidURL: If either URL cannot be parsed
    """
    uri = parse_url(referer_url)

    if uri.scheme not in KNOWN_SCHEMES:
        return RefererResult(known=False, uri=uri)

    host = uri.hostname

    # Same host means internal navigation, whatever the database says
    if current_url:
        current = parse_url(current_url)
        if current.hostname == host:
            return RefererResult(known=True, medium=MEDIUM_INTERNAL, uri=uri)

    record = index.lookup(host, uri.path or "/")
    if record is None:
        return RefererResult(known=True, uri=uri)

    search_parameter = search_term = None
    if record.medium == MEDIUM_SEARCH:
        search_parameter, search_term = _extract_search(record, uri)

    return RefererResult(
        known=True,
        referer=record.name,
        medium=record.medium,
        search_parameter=search_parameter,
        search_term=search_term,
        uri=uri,
    )


def classify_referer(
    referer_url: str,
    current_url: str | None = None,
    referers: RefererDatabase | Mapping[str, Any] | None = None,
) -> RefererResult:
    """
    Classify a referer URL into a medium, referer name and search term.

    Args:
        referer_url: The Referer header value (absolute URL)
        current_url: Optional URL of the page being viewed
        referers: Optional database to use instead of the default one

    Returns:
        RefererResult with known, referer, medium, search_parameter, search_term

    Examples:
        >>> classify_referer("https://www.google.com/search?q=cats")
        RefererResult(known=True, referer='Google', medium='search', search_parameter='q', search_term='cats', ...)

        >>> classify_referer("https://example.com/a", "https://example.com/b").medium
        'internal'

        >>> classify_referer("ftp://example.com/").known
        False
    """
    source = referers if referers is not None else default_referers()
    return classify(get_index(source), referer_url, current_url)


# =============================================================================
# SUMMARIES
# =============================================================================

def get_medium_summary(results: Iterable[RefererResult]) -> dict[str, int]:
    """
    Get traffic breakdown by medium.

    Args:
        results: RefererResults from classify_referer()

    Returns:
        Dict mapping medium to count, always including internal and unknown
    """
    counts: dict[str, int] = {MEDIUM_INTERNAL: 0, MEDIUM_UNKNOWN: 0}

    for result in results:
        counts[result.medium] = counts.get(result.medium, 0) + 1

    return counts


def get_top_referers(
    results: Iterable[RefererResult],
    limit: int = 10,
    exclude_unknown: bool = True,
    exclude_internal: bool = True,
) -> list[tuple[str, int]]:
    """
    Get the most common referers.

    Unrecognized referers are counted by host.

    Args:
        results: RefererResults from classify_referer()
        limit: Maximum number of referers to return
        exclude_unknown: Whether to exclude unrecognized referers
        exclude_internal: Whether to exclude internal navigation

    Returns:
        List of (referer_name_or_host, count) tuples, sorted by count
    """
    counts: Counter[str] = Counter()

    for result in results:
        if exclude_unknown and result.medium == MEDIUM_UNKNOWN:
            continue
        if exclude_internal and result.medium == MEDIUM_INTERNAL:
            continue

        host = result.uri.hostname if result.uri is not None else None
        counts[result.referer or host or "Unknown"] += 1

    return counts.most_common(limit)


def get_top_search_terms(
    results: Iterable[RefererResult],
    limit: int = 10,
) -> list[tuple[str, int]]:
    """Get the most common search terms, case-folded and stripped."""
    counts: Counter[str] = Counter()

    for result in results:
        if result.search_term is None:
            continue
        term = result.search_term.strip().lower()
        if term:
            counts[term] += 1

    return counts.most_common(limit)
