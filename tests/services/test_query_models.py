"""Tests for the query service models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from sealedquery.services.query_models import (
    IndexResult,
    Pagination,
    QueryFilters,
    QueryOutcome,
    QueryParams,
    QueryResult,
)


class TestQueryFilters:
    """Filter validation and wire format."""

    def test_defaults(self):
        filters = QueryFilters()
        assert filters.prefixes == []
        assert filters.custom_mode == "include"
        assert filters.match_mode == "none"
        assert filters.match_value == ""

    def test_wire_format_is_camel_case(self):
        wire = QueryFilters(prefixes=["138"], custom_numbers=["88"], custom_mode="exclude").to_wire()
        assert wire == {
            "prefixes": ["138"],
            "no4": False,
            "nice": False,
            "customNumbers": ["88"],
            "customMode": "exclude",
            "matchMode": "none",
            "matchValue": "",
        }

    def test_accepts_camel_case_input(self):
        filters = QueryFilters.model_validate({"customNumbers": ["66"], "customMode": "exclude"})
        assert filters.custom_numbers == ["66"]
        assert filters.custom_mode == "exclude"

    def test_legacy_prefix_is_migrated(self):
        assert QueryFilters.model_validate({"prefix": "138"}).prefixes == ["138"]

    def test_legacy_prefix_does_not_override_prefixes(self):
        filters = QueryFilters.model_validate({"prefix": "138", "prefixes": ["139"]})
        assert filters.prefixes == ["139"]

    def test_numeric_items_are_coerced_to_strings(self):
        assert QueryFilters(prefixes=[138]).prefixes == ["138"]

    def test_invalid_custom_mode_is_rejected(self):
        with pytest.raises(ValidationError):
            QueryFilters(custom_mode="maybe")


class TestQueryParams:
    """Request body construction."""

    def test_body(self):
        params = QueryParams(filters=QueryFilters(no4=True), search="88", page=3, page_size=50)
        body = params.to_body()
        assert body["filters"]["no4"] is True
        assert body["search"] == "88"
        assert body["page"] == 3
        assert body["pageSize"] == 50

    @pytest.mark.parametrize("field", ["page", "page_size"])
    def test_page_values_must_be_positive(self, field):
        with pytest.raises(ValidationError):
            QueryParams(**{field: 0})


class TestQueryResult:
    """Result construction and placeholders."""

    def test_items_without_digits_are_dropped(self):
        result = QueryResult.from_payload(["13812345678", "n/a", 13900001111, ""], None)
        assert result.items == ["13812345678", "13900001111"]
        assert result.pagination == Pagination()

    def test_pagination_from_camel_case(self):
        result = QueryResult.from_payload(
            [],
            {"currentPage": 2, "totalPages": 5, "totalItems": 90, "pageSize": 18, "extra": 1},
        )
        assert result.pagination.current_page == 2
        assert result.pagination.total_pages == 5
        assert result.effective_page_size == 18

    def test_placeholder(self):
        result = QueryResult.placeholder()
        assert result.items == ["No data"]
        assert result.is_placeholder


class TestIndexResult:
    """Index accessors and placeholder."""

    def test_accessors(self):
        result = IndexResult(data={"total": "12", "segments": [138, "139"]})
        assert result.total == 12
        assert result.segments == ["138", "139"]

    def test_malformed_values_do_not_raise(self):
        result = IndexResult(data={"total": "unknown", "segments": "138"})
        assert result.total == 0
        assert result.segments == []

    def test_placeholder_has_fallback_segments(self):
        result = IndexResult.placeholder()
        assert result.is_placeholder
        assert result.total == 0
        assert result.segments[:3] == ["130", "131", "132"]
        assert len(result.segments) == 9
        assert result.data["lastUpdated"]


class TestQueryOutcome:
    """Outcome status."""

    def test_ok_depends_on_error(self):
        assert QueryOutcome(params=QueryParams(), result=QueryResult()).ok
        assert not QueryOutcome(params=QueryParams(), error=RuntimeError("x")).ok
