"""
Referer classification: search, social, email, paid, internal or unknown.

Usage:
    from referer_classifier import classify_referer

    result = classify_referer(
        "https://www.google.com/search?q=cats",
        current_url="https://example.com/pets",
    )
    result.medium        # "search"
    result.referer       # "Google"
    result.search_term   # "cats"

    # Custom database (same layout as the bundled referers.json)
    result = classify_referer(url, referers=load_referers("referers.json"))

    # HTTP API
    app.include_router(create_referer_router(), prefix="/referers")
"""

from .config import RefererSettings
from .database import (
    RefererDatabaseError,
    default_referers,
    fetch_referers,
    load_referers,
    save_referers,
)
from .index import RefererIndex, build_index, get_index
from .models import RefererDatabase, RefererEntry, RefererRecord
from .referer import (
    InvalidURL,
    RefererResult,
    classify,
    classify_referer,
    get_medium_summary,
    get_top_referers,
    get_top_search_terms,
)
from .routes import create_referer_router

__version__ = "0.1.0"
__all__ = [
    "classify_referer", "classify", "RefererResult", "InvalidURL",
    "build_index", "get_index", "RefererIndex",
    "RefererDatabase", "RefererEntry", "RefererRecord", "RefererDatabaseError",
    "load_referers", "default_referers", "fetch_referers", "save_referers",
    "get_medium_summary", "get_top_referers", "get_top_search_terms",
    "RefererSettings", "create_referer_router",
]
