"""
HTTP routes for referer classification.

Usage:
    from fastapi import FastAPI
    from referer_classifier import create_referer_router

    app = FastAPI()
    app.include_router(create_referer_router(), prefix="/referers")
"""

import logging
from typing import Any, Mapping

from fastapi import APIRouter, HTTPException, Query

from .database import default_referers
from .index import get_index
from .models import (
    RefererCount,
    RefererDatabase,
    RefererResponse,
    SearchTermCount,
    SummaryRequest,
    SummaryResponse,
)
from .referer import (
    InvalidURL,
    classify,
    get_medium_summary,
    get_top_referers,
    get_top_search_terms,
    parse_url,
)

logger = logging.getLogger(__name__)

# Upper bound on URLs accepted by /summary in one request
MAX_SUMMARY_BATCH = 10_000


def create_referer_router(
    referers: RefererDatabase | Mapping[str, Any] | None = None,
) -> APIRouter:
    """Create the referer classification router.

    The index is built once when the router is created.
    """
    router = APIRouter()
    index = get_index(referers if referers is not None else default_referers())

    @router.get("/classify", response_model=RefererResponse)
    async def classify_endpoint(
        referer: str = Query(..., description="Referer URL to classify"),
        current: str | None = Query(None, description="URL of the page being viewed"),
    ):
        try:
            result = classify(index, referer, current)
        except InvalidURL as e:
            raise HTTPException(status_code=400, detail=str(e))
        return RefererResponse(**result.to_dict())

    @router.post("/summary", response_model=SummaryResponse)
    async def summary_endpoint(body: SummaryRequest):
        if len(body.referers) > MAX_SUMMARY_BATCH:
            raise HTTPException(
                status_code=413,
                detail=f"At most {MAX_SUMMARY_BATCH} referers per request",
            )

        if body.current:
            try:
                parse_url(body.current)
            except InvalidURL as e:
                raise HTTPException(status_code=400, detail=f"current: {e}")

        results = []
        invalid = 0
        for url in body.referers:
            try:
                results.append(classify(index, url, body.current))
            except InvalidURL:
                invalid += 1

        if invalid:
            logger.debug(f"Skipped {invalid} invalid referer URLs in summary")

        return SummaryResponse(
            total=len(body.referers),
            invalid=invalid,
            media=get_medium_summary(results),
            top_referers=[
                RefererCount(referer=name, count=count)
                for name, count in get_top_referers(results)
            ],
            top_search_terms=[
                SearchTermCount(term=term, count=count)
                for term, count in get_top_search_terms(results)
            ],
        )

    return router
