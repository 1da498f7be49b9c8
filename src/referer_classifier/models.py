"""Models for the referer database and classification API payloads."""

from dataclasses import dataclass
from typing import Iterator, Optional

from pydantic import BaseModel, Field, RootModel


class RefererConfig(BaseModel):
    """Configuration for a single named referer."""

    domains: list[str] = Field(min_length=1)
    parameters: Optional[list[str]] = None  # search query keys, any case


class RefererDatabase(RootModel[dict[str, dict[str, RefererConfig]]]):
    """
    The referer database: medium -> referer name -> config.

    Mirrors the Snowplow referers.json layout:

        {
            "search": {
                "Google": {"domains": ["google.com"], "parameters": ["q"]}
            },
            "social": {
                "Facebook": {"domains": ["facebook.com"]}
            }
        }
    """

    def entries(self) -> Iterator["RefererEntry"]:
        """Yield every referer in declaration order."""
        for medium, referers in self.root.items():
            for name, config in referers.items():
                yield RefererEntry(
                    medium=medium,
                    name=name,
                    domains=tuple(config.domains),
                    parameters=tuple(config.parameters) if config.parameters is not None else None,
                )

    @property
    def media(self) -> list[str]:
        return list(self.root)

    def __len__(self) -> int:
        return sum(len(referers) for referers in self.root.values())


@dataclass(frozen=True)
class RefererEntry:
    """One referer from the database, tagged with its medium."""
    medium: str
    name: str
    domains: tuple[str, ...]
    parameters: tuple[str, ...] | None = None


@dataclass(frozen=True)
class RefererRecord:
    """
    Index value for a single lookup key.

    Attributes:
        name: Referer name (e.g., "Google")
        medium: Medium from the database (e.g., "search")
        params: Lowercased search parameter names, if the referer declares any
    """
    name: str
    medium: str
    params: frozenset[str] | None = None


# =============================================================================
# API PAYLOADS
# =============================================================================

class RefererResponse(BaseModel):
    """Classification of a single referer URL."""

    url: str
    known: bool
    referer: Optional[str] = None
    medium: str = "unknown"
    search_parameter: Optional[str] = None
    search_term: Optional[str] = None


class SummaryRequest(BaseModel):
    """Batch of referer URLs to summarize."""

    referers: list[str] = Field(default_factory=list)
    current: Optional[str] = None  # current page URL for internal detection


class RefererCount(BaseModel):
    """A referer and how often it was seen."""

    referer: str
    count: int


class SearchTermCount(BaseModel):
    """A search term and how often it was seen."""

    term: str
    count: int


class SummaryResponse(BaseModel):
    """Traffic breakdown for a batch of referers."""

    total: int = 0
    invalid: int = 0
    media: dict[str, int] = Field(default_factory=dict)
    top_referers: list[RefererCount] = Field(default_factory=list)
    top_search_terms: list[SearchTermCount] = Field(default_factory=list)
