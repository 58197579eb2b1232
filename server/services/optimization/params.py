"""Query-string normalization for list endpoints.

Turns raw query parameters (page, limit, pageSize, sortBy, sortOrder, search,
fields, anything else as a filter) into a bounded PageRequest, and builds the
pagination response headers.
"""

from dataclasses import dataclass, field
from math import ceil
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import urlencode

from constants import RESERVED_QUERY_PARAMS
from models.query import OrderBy, QueryOptions, SortDirection


@dataclass
class PageRequest:
    limit: int
    offset: int = 0
    page: int = 1
    sort_by: Optional[str] = None
    sort_order: SortDirection = SortDirection.ASC
    search: Optional[str] = None
    fields: List[str] = field(default_factory=list)
    filters: Dict[str, Any] = field(default_factory=dict)

    def to_query_options(self) -> QueryOptions:
        return QueryOptions(
            limit=self.limit,
            offset=self.offset or None,
            order_by=OrderBy(self.sort_by, self.sort_order) if self.sort_by else None,
            select=list(self.fields),
        )


def _to_int(value: Any, default: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed or default


def parse_query_params(params: Iterable[Tuple[str, str]],
                       max_limit: int = 100,
                       default_limit: int = 20,
                       max_page_size: int = 50) -> PageRequest:
    """Normalize query parameters given as (name, value) pairs.

    Pairs (rather than a dict) keep repeated ``fields`` parameters. Filter
    values containing commas become membership lists.
    """
    values: Dict[str, str] = {}
    fields: List[str] = []
    filters: Dict[str, Any] = {}

    for name, value in params:
        if name == "fields":
            fields.extend(f.strip() for f in value.split(",") if f.strip())
        elif name in RESERVED_QUERY_PARAMS:
            values[name] = value
        elif "," in value:
            filters[name] = [v.strip() for v in value.split(",")]
        else:
            filters[name] = value

    request = PageRequest(limit=default_limit, fields=fields, filters=filters)

    if "page" in values:
        request.page = max(1, _to_int(values["page"], 1))

    if "limit" in values:
        request.limit = min(_to_int(values["limit"], default_limit), max_limit)

    if "pageSize" in values:
        request.limit = min(_to_int(values["pageSize"], default_limit), max_page_size)

    request.limit = max(1, request.limit)
    request.offset = (request.page - 1) * request.limit

    if values.get("sortBy"):
        request.sort_by = values["sortBy"]

    if values.get("sortOrder", "").lower() == "desc":
        request.sort_order = SortDirection.DESC

    if values.get("search"):
        request.search = values["search"]

    return request


def pagination_headers(request: PageRequest, total: int, base_url: str,
                       params: Iterable[Tuple[str, str]] = ()) -> Dict[str, str]:
    """X-Total-*/X-Has-*/X-Current-Page/X-Page-Size plus a Link header."""
    total_pages = ceil(total / request.limit) if request.limit else 0
    has_next = request.page < total_pages
    has_prev = request.page > 1

    headers = {
        "X-Total-Count": str(total),
        "X-Total-Pages": str(total_pages),
        "X-Has-Next": str(has_next).lower(),
        "X-Has-Prev": str(has_prev).lower(),
        "X-Current-Page": str(request.page),
        "X-Page-Size": str(request.limit),
    }

    base_params = [(k, v) for k, v in params if k != "page"]
    links = []
    if has_prev:
        links.append(f'<{base_url}?{urlencode(base_params + [("page", request.page - 1)])}>; rel="prev"')
    if has_next:
        links.append(f'<{base_url}?{urlencode(base_params + [("page", request.page + 1)])}>; rel="next"')
    if links:
        headers["Link"] = ", ".join(links)

    return headers
