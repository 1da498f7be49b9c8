"""
Flat lookup index over the referer database.

The database is hierarchical (medium -> referer -> domains). For matching we
flatten it into a single dict keyed by the declared domain strings, which may
carry a first path segment ("google.com/products"). Lookups then walk up the
host's labels until a key matches.
"""

import logging
from collections import OrderedDict
from threading import Lock
from typing import Any, Mapping

from .database import validate_database
from .models import RefererDatabase, RefererRecord

logger = logging.getLogger(__name__)

# Built indexes kept per source object
MAX_CACHED_INDEXES = 8


class RefererIndex:
    """Read-only mapping from lookup key to RefererRecord."""

    def __init__(self, entries: dict[str, RefererRecord]):
        self._entries = entries

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> RefererRecord | None:
        return self._entries.get(key)

    def resolve(self, host: str, path: str, include_path: bool = True) -> RefererRecord | None:
        """
        Find the record for host+path, narrowing the host one label at a time.

        At each host level the full path key and the first path segment key
        are tried (only when include_path is set), then the bare host.

        Args:
            host: Referer hostname (e.g., "www.google.co.uk")
            path: URL path including the leading slash
            include_path: Whether path-qualified keys are tried

        Returns:
            The matching record, or None once the last label is exhausted
        """
        segment = _first_segment(path) if include_path else None

        while True:
            record = None
            if include_path:
                record = self._entries.get(host + path)
                if record is None and segment is not None:
                    record = self._entries.get(f"{host}/{segment}")
            if record is None:
                record = self._entries.get(host)
            if record is not None:
                return record

            _, dot, parent = host.partition(".")
            if not dot:
                return None
            host = parent

    def lookup(self, host: str, path: str) -> RefererRecord | None:
        """Resolve with path-qualified keys first, then bare domains only."""
        record = self.resolve(host, path, include_path=True)
        if record is None:
            record = self.resolve(host, path, include_path=False)
        return record


def _first_segment(path: str) -> str | None:
    """First non-empty segment of a URL path, if the path has one."""
    parts = path.split("/")
    if len(parts) < 2:
        return None
    for part in parts[1:]:
        if part:
            return part
    return None


def build_index(source: RefererDatabase | Mapping[str, Any]) -> RefererIndex:
    """
    Flatten the referer database into a RefererIndex.

    Later entries overwrite earlier ones when two referers declare the same
    domain string.

    Raises:
        RefererDatabaseError: If the source does not match the database schema
    """
    db = validate_database(source)

    entries: dict[str, RefererRecord] = {}
    for entry in db.entries():
        params = None
        if entry.parameters is not None:
            params = frozenset(p.lower() for p in entry.parameters)

        record = RefererRecord(name=entry.name, medium=entry.medium, params=params)
        for domain in entry.domains:
            previous = entries.get(domain)
            if previous is not None:
                logger.debug(
                    f"Domain {domain!r}: {previous.medium}/{previous.name} "
                    f"overwritten by {entry.medium}/{entry.name}"
                )
            entries[domain] = record

    logger.debug(f"Built referer index with {len(entries)} keys from {len(db)} referers")
    return RefererIndex(entries)


class IndexCache:
    """Bounded cache of built indexes keyed by source identity. Thread-safe.

    Each cached source is held alongside its index so that its id() cannot
    be reused by another object while the entry is alive.
    """

    def __init__(self, max_size: int = MAX_CACHED_INDEXES):
        self.max_size = max_size
        self._indexes: OrderedDict[int, tuple[Any, RefererIndex]] = OrderedDict()
        self._lock = Lock()

    def get(self, source: RefererDatabase | Mapping[str, Any]) -> RefererIndex:
        key = id(source)

        with self._lock:
            cached = self._indexes.get(key)
            if cached is not None and cached[0] is source:
                self._indexes.move_to_end(key)
                logger.debug("Referer index cache hit")
                return cached[1]

        index = build_index(source)

        with self._lock:
            self._indexes[key] = (source, index)
            self._indexes.move_to_end(key)
            while len(self._indexes) > self.max_size:
                self._indexes.popitem(last=False)

        return index

    def clear(self) -> None:
        with self._lock:
            self._indexes.clear()

    def __len__(self) -> int:
        return len(self._indexes)


_cache = IndexCache()


def get_index(source: RefererDatabase | Mapping[str, Any]) -> RefererIndex:
    """Return the cached index for source, building it on first use."""
    return _cache.get(source)
