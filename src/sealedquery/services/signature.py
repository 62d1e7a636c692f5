"""Deterministic request signatures.

A signature identifies one logical call: the endpoint kind plus every
parameter that influences the response. It keys the response cache and
decides whether two in-flight calls are the same call.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

from .query_models import QueryParams

QUERY_PREFIX = "query"
INDEX_PREFIX = "index"


def _finalize(prefix: str, payload: dict[str, Any]) -> str:
    canonical = json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return f"{prefix}:{digest}"


def query_signature(params: QueryParams, endpoint: str) -> str:
    """Signature of a query call.

    Filters are dumped by field name with sorted keys, so the order in
    which fields were set never changes the result. List order is kept.
    """
    return _finalize(
        QUERY_PREFIX,
        {
            "endpoint": endpoint,
            "filters": params.filters.model_dump(mode="json"),
            "search": params.search,
            "page": params.page,
            "page_size": params.page_size,
        },
    )


def index_signature(endpoint: str) -> str:
    """Signature of an index call."""
    return _finalize(INDEX_PREFIX, {"endpoint": endpoint})
