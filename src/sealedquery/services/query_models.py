"""Query Service Models.

Pydantic models for the query and index endpoints. Wire payloads use
camelCase; the models accept both camelCase aliases and field names and
serialize back to camelCase with to_wire().
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from sealedquery.shared.constants import (
    CustomMode,
    FallbackValues,
    MatchMode,
    QueryDefaults,
)
from sealedquery.shared.error_messages import UserMessage
from sealedquery.shared.number_utils import contains_digit, to_count


class WireModel(BaseModel):
    """Base model for camelCase wire payloads.

    Configuration:
        - extra="ignore": Unknown server fields are dropped
        - populate_by_name=True: Accept both field names and aliases
    """

    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_wire(self) -> dict[str, Any]:
        """Serialize with camelCase keys for the request body."""
        return self.model_dump(by_alias=True, mode="json")


class QueryFilters(WireModel):
    """Filters applied by the query endpoint.

    A legacy single ``prefix`` value is migrated into ``prefixes`` when
    no prefixes are set.

    Example:
        >>> QueryFilters.model_validate({"prefix": "138"}).prefixes
        ['138']
    """

    prefixes: list[str] = Field(default_factory=list, description="Number prefixes")
    no4: bool = Field(False, description="Exclude numbers containing 4")
    nice: bool = Field(False, description="Only nice numbers")
    custom_numbers: list[str] = Field(default_factory=list, description="Custom digit groups")
    custom_mode: Literal["include", "exclude"] = Field(CustomMode.INCLUDE)
    match_mode: str = Field(MatchMode.NONE)
    match_value: str = Field("")

    @model_validator(mode="before")
    @classmethod
    def migrate_legacy_prefix(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "prefix" not in data:
            return data
        data = dict(data)
        prefix = data.pop("prefix")
        if prefix and not data.get("prefixes"):
            data["prefixes"] = [str(prefix)]
        return data

    @field_validator("prefixes", "custom_numbers", mode="before")
    @classmethod
    def coerce_strings(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [str(item) for item in value]
        return value


class QueryParams(BaseModel):
    """One logical query: filters, debounced search text and paging."""

    filters: QueryFilters = Field(default_factory=QueryFilters)
    search: str = ""
    page: int = Field(1, ge=1)
    page_size: int = Field(QueryDefaults.DEFAULT_PAGE_SIZE, ge=1)

    def to_body(self) -> dict[str, Any]:
        """Request body for the query endpoint."""
        return {
            "filters": self.filters.to_wire(),
            "search": self.search,
            "page": self.page,
            "pageSize": self.page_size,
        }


class Pagination(WireModel):
    """Server-side paging information. The server is authoritative."""

    current_page: int = 1
    total_items: int = 0
    total_pages: int = 0
    has_next_page: bool = False
    has_prev_page: bool = False
    page_size: int | None = None


class QueryResult(BaseModel):
    """Items returned by the query endpoint.

    Attributes:
        items: Numbers, each containing at least one digit
        pagination: Server pagination
        is_placeholder: True when this is fallback content, not real data
    """

    items: list[str] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)
    is_placeholder: bool = False

    @property
    def effective_page_size(self) -> int | None:
        """Page size reported by the server, if any."""
        return self.pagination.page_size

    @classmethod
    def from_payload(cls, data: list[Any], pagination: Any) -> QueryResult:
        """Build a result from decrypted data, dropping items without digits."""
        items = [str(item) for item in data]
        return cls(
            items=[item for item in items if contains_digit(item)],
            pagination=Pagination.model_validate(pagination or {}),
        )

    @classmethod
    def placeholder(cls) -> QueryResult:
        return cls(items=[FallbackValues.PLACEHOLDER_ITEM], is_placeholder=True)


class IndexResult(BaseModel):
    """Index structure: total, segments, segmentCounts, no4Count, niceCount, lastUpdated."""

    data: dict[str, Any] = Field(default_factory=dict)
    is_placeholder: bool = False

    @property
    def segments(self) -> list[str]:
        segments = self.data.get("segments")
        if not isinstance(segments, list):
            return []
        return [str(s) for s in segments]

    @property
    def total(self) -> int:
        return to_count(self.data.get("total"))

    @classmethod
    def placeholder(cls) -> IndexResult:
        return cls(
            data={
                "total": 0,
                "segments": list(FallbackValues.INDEX_SEGMENTS),
                "segmentCounts": {},
                "no4Count": 0,
                "niceCount": 0,
                "lastUpdated": datetime.now(timezone.utc).isoformat(),
            },
            is_placeholder=True,
        )


@dataclass(frozen=True)
class QueryOutcome:
    """What the event layer publishes for one completed query.

    A failed call carries ``error`` and ``user_message``; ``result`` is
    then either None or a placeholder.
    """

    params: QueryParams
    result: QueryResult | None = None
    error: BaseException | None = None
    user_message: UserMessage | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
