"""Translate untrusted list parameters into a parameterised ``users`` query.

Every parameter is validated on its own and falls back to a default instead of
failing the request. The sort column and direction are the only values that
end up in the SQL text, so both are checked against fixed allow-lists first.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional, Tuple, Union

SORTABLE_FIELDS: FrozenSet[str] = frozenset({"id", "name", "email"})
SORT_ORDERS: FrozenSet[str] = frozenset({"asc", "desc"})

DEFAULT_LIMIT = 10
MAX_LIMIT = 100
DEFAULT_OFFSET = 0
DEFAULT_SORT = "id"
DEFAULT_ORDER = "asc"

USER_COLUMNS = ("id", "name", "email", "created_at", "updated_at")

_INTEGER_PATTERN = re.compile(r"[+-]?[0-9]{1,19}")

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

RawParam = Union[str, int, None]


def _parse_int(raw: RawParam) -> Optional[int]:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        value = raw
    elif _INTEGER_PATTERN.fullmatch(raw):
        value = int(raw)
    else:
        return None
    # SQLite integers are signed 64-bit.
    if not INT64_MIN <= value <= INT64_MAX:
        return None
    return value


def parse_limit(raw: RawParam) -> int:
    """Return ``raw`` as a page size in ``[1, 100]`` or the default of 10."""

    value = _parse_int(raw)
    if value is None or not 1 <= value <= MAX_LIMIT:
        return DEFAULT_LIMIT
    return value


def parse_offset(raw: RawParam) -> int:
    """Return ``raw`` as a non-negative offset or 0."""

    value = _parse_int(raw)
    if value is None or value < 0:
        return DEFAULT_OFFSET
    return value


def parse_sort(raw: Optional[str]) -> str:
    if raw in SORTABLE_FIELDS:
        return raw  # type: ignore[return-value]
    return DEFAULT_SORT


def parse_order(raw: Optional[str]) -> str:
    # Case-sensitive: "DESC" is not a recognised direction.
    if raw in SORT_ORDERS:
        return raw  # type: ignore[return-value]
    return DEFAULT_ORDER


def parse_search(raw: Optional[str]) -> str:
    return raw or ""


@dataclass(frozen=True)
class ListQuery:
    """Validated parameters for listing users."""

    search: str = ""
    sort: str = DEFAULT_SORT
    order: str = DEFAULT_ORDER
    limit: int = DEFAULT_LIMIT
    offset: int = DEFAULT_OFFSET

    @classmethod
    def from_params(
        cls,
        *,
        q: Optional[str] = None,
        sort: Optional[str] = None,
        order: Optional[str] = None,
        limit: RawParam = None,
        offset: RawParam = None,
    ) -> "ListQuery":
        """Build a :class:`ListQuery` from raw request values, defaulting anything invalid."""

        return cls(
            search=parse_search(q),
            sort=parse_sort(sort),
            order=parse_order(order),
            limit=parse_limit(limit),
            offset=parse_offset(offset),
        )


def build_list_query(query: ListQuery) -> Tuple[str, Dict[str, object]]:
    """Assemble the SQL text and bound parameters for ``query``."""

    # ListQuery can be constructed directly, so the allow-lists are enforced
    # again here before anything is interpolated.
    if query.sort not in SORTABLE_FIELDS:
        raise ValueError(f"Unsupported sort field: {query.sort!r}")
    if query.order not in SORT_ORDERS:
        raise ValueError(f"Unsupported sort order: {query.order!r}")

    params: Dict[str, object] = {}
    clauses = [f"SELECT {', '.join(USER_COLUMNS)} FROM users"]

    if query.search:
        clauses.append("WHERE casefold(name) LIKE :pattern OR casefold(email) LIKE :pattern")
        params["pattern"] = f"%{query.search.casefold()}%"

    direction = query.order.upper()
    ordering = f"{query.sort} {direction}"
    if query.sort != "id":
        ordering += f", id {direction}"
    clauses.append(f"ORDER BY {ordering}")

    clauses.append("LIMIT :limit OFFSET :offset")
    params["limit"] = query.limit
    params["offset"] = query.offset

    return " ".join(clauses), params


__all__ = [
    "DEFAULT_LIMIT",
    "DEFAULT_OFFSET",
    "DEFAULT_ORDER",
    "DEFAULT_SORT",
    "INT64_MAX",
    "INT64_MIN",
    "ListQuery",
    "MAX_LIMIT",
    "SORTABLE_FIELDS",
    "SORT_ORDERS",
    "USER_COLUMNS",
    "build_list_query",
    "parse_limit",
    "parse_offset",
    "parse_order",
    "parse_search",
    "parse_sort",
]
