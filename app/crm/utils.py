from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int
    offset: int


def _to_int(value: Any, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def parse_pagination(query: Mapping[str, Any] | None = None) -> Pagination:
    """
    Normalize `page`/`limit` from a query mapping.

    page defaults to 1 (min 1); limit defaults to 10 and is clamped to [1, 100].

        >>> parse_pagination({"page": "2", "limit": "20"})
        Pagination(page=2, limit=20, offset=20)
    """
    query = query or {}
    page = max(1, _to_int(query.get("page"), DEFAULT_PAGE))
    limit = min(MAX_LIMIT, max(1, _to_int(query.get("limit"), DEFAULT_LIMIT)))
    return Pagination(page=page, limit=limit, offset=(page - 1) * limit)


def page_count(total: int, limit: int) -> int:
    if total <= 0 or limit <= 0:
        return 0
    return math.ceil(total / limit)


def parse_id(value: Any, name: str = "id") -> int:
    """Coerce a path/body id to int; raises ValueError with a readable message."""
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a number.")
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number.") from None
