"""
Loading the referer database.

A copy of the Snowplow referer database ships with the package
(data/referers.json). Callers can point at their own file, or download the
latest published version.
"""

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import httpx
from pydantic import ValidationError

from .config import RefererSettings
from .models import RefererDatabase

logger = logging.getLogger(__name__)

BUNDLED_DATA_PATH = Path(__file__).parent / "data" / "referers.json"


class RefererDatabaseError(ValueError):
    """Raised when a referer database does not match the expected schema."""
    pass


def validate_database(source: RefererDatabase | Mapping[str, Any]) -> RefererDatabase:
    """Validate a raw nested mapping into a RefererDatabase.

    Raises:
        RefererDatabaseError: If an entry is malformed (e.g. missing domains)
    """
    if isinstance(source, RefererDatabase):
        return source
    try:
        return RefererDatabase.model_validate(source)
    except ValidationError as e:
        raise RefererDatabaseError(f"Invalid referer database: {e}") from e


def load_referers(path: Path | str | None = None) -> RefererDatabase:
    """
    Load a referer database from a JSON file.

    Args:
        path: JSON file in the referers.json layout. Defaults to the
            database bundled with the package.

    Raises:
        RefererDatabaseError: If the file is not valid JSON or not a valid database
    """
    path = Path(path) if path is not None else BUNDLED_DATA_PATH

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise RefererDatabaseError(f"{path} is not valid JSON: {e}") from e

    db = validate_database(data)
    logger.info(f"Loaded {len(db)} referers from {path}")
    return db


@lru_cache(maxsize=1)
def default_referers() -> RefererDatabase:
    """The default database (REFERER_DATA_PATH if set, else the bundled copy)."""
    settings = RefererSettings.from_env()
    return load_referers(settings.data_path)


def save_referers(db: RefererDatabase, path: Path | str) -> None:
    """Write a database to disk in the referers.json layout."""
    path = Path(path)
    path.write_text(db.model_dump_json(indent=2, exclude_none=True), encoding="utf-8")
    logger.info(f"Saved {len(db)} referers to {path}")


async def fetch_referers(
    url: str | None = None,
    *,
    timeout: float | None = None,
    client: httpx.AsyncClient | None = None,
) -> RefererDatabase:
    """
    Download the latest referer database.

    Args:
        url: Database URL. Defaults to RefererSettings.data_url.
        timeout: Request timeout in seconds. Defaults to RefererSettings.fetch_timeout.
        client: Optional client to reuse (its own timeout applies, and
            the timeout argument is ignored)

    Raises:
        httpx.HTTPStatusError: On a non-2xx response
        RefererDatabaseError: If the payload is not a valid database
    """
    need_timeout = client is None and timeout is None
    if url is None or need_timeout:
        settings = RefererSettings.from_env()
        if url is None:
            url = settings.data_url
        if need_timeout:
            timeout = settings.fetch_timeout

    if client is None:
        async with httpx.AsyncClient(timeout=timeout) as own_client:
            response = await own_client.get(url)
    else:
        response = await client.get(url)

    response.raise_for_status()

    try:
        data = response.json()
    except json.JSONDecodeError as e:
        raise RefererDatabaseError(f"{url} did not return valid JSON: {e}") from e

    db = validate_database(data)
    logger.info(f"Fetched {len(db)} referers from {url}")
    return db
