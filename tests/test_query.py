from __future__ import annotations

import pytest

from users_service.query import (
    ListQuery,
    build_list_query,
    parse_limit,
    parse_offset,
    parse_order,
    parse_search,
    parse_sort,
)


_OVERSIZED = [
    "99999999999999999999",
    "9223372036854775808",
    "-9223372036854775809",
    pytest.param("1" * 5000, id="5000-digits"),
]


@pytest.mark.parametrize("raw", [None, "", "0", "-1", "101", "200", "abc", "10.5", " 5", "1e2", "５", *_OVERSIZED])
def test_invalid_limit_falls_back_to_default(raw) -> None:
    assert parse_limit(raw) == 10


@pytest.mark.parametrize("raw, expected", [("1", 1), ("25", 25), ("100", 100), ("+7", 7), (50, 50)])
def test_valid_limit_is_accepted(raw, expected) -> None:
    assert parse_limit(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "-5", "-1", "x", "3.0", *_OVERSIZED, 2**64])
def test_invalid_offset_falls_back_to_zero(raw) -> None:
    assert parse_offset(raw) == 0


@pytest.mark.parametrize("raw, expected", [("0", 0), ("15", 15), ("100000", 100000), ("9223372036854775807", 2**63 - 1)])
def test_valid_offset_is_accepted(raw, expected) -> None:
    assert parse_offset(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "password", "created_at", "NAME", "id; DROP TABLE users", "name DESC"])
def test_sort_outside_allow_list_defaults_to_id(raw) -> None:
    assert parse_sort(raw) == "id"


@pytest.mark.parametrize("raw", ["id", "name", "email"])
def test_sort_allow_list(raw) -> None:
    assert parse_sort(raw) == raw


@pytest.mark.parametrize("raw", [None, "", "DESC", "Asc", "descending", "desc "])
def test_order_requires_exact_token(raw) -> None:
    assert parse_order(raw) == "asc"


def test_order_accepts_desc() -> None:
    assert parse_order("desc") == "desc"


def test_search_is_used_verbatim() -> None:
    assert parse_search(None) == ""
    assert parse_search("  Ali%") == "  Ali%"


def test_from_params_reports_effective_values() -> None:
    query = ListQuery.from_params(q="", sort="password", order="DESC", limit="200", offset="-5")
    assert query == ListQuery(search="", sort="id", order="asc", limit=10, offset=0)


def test_build_query_without_search_has_no_where_clause() -> None:
    sql, params = build_list_query(ListQuery())

    assert sql == (
        "SELECT id, name, email, created_at, updated_at FROM users "
        "ORDER BY id ASC LIMIT :limit OFFSET :offset"
    )
    assert params == {"limit": 10, "offset": 0}


def test_build_query_with_search_binds_single_pattern() -> None:
    sql, params = build_list_query(ListQuery(search="ali", sort="name", order="desc", limit=5, offset=10))

    assert "WHERE casefold(name) LIKE :pattern OR casefold(email) LIKE :pattern" in sql
    assert "ORDER BY name DESC, id DESC" in sql
    assert "ali" not in sql
    assert params == {"pattern": "%ali%", "limit": 5, "offset": 10}


def test_build_query_rejects_unlisted_sort_field() -> None:
    with pytest.raises(ValueError):
        build_list_query(ListQuery(sort="id; DROP TABLE users"))


def test_build_query_rejects_unlisted_order() -> None:
    with pytest.raises(ValueError):
        build_list_query(ListQuery(order="ASC"))


def test_search_pattern_is_casefolded() -> None:
    _, params = build_list_query(ListQuery(search="ÉMILE Straße"))

    assert params["pattern"] == "%émile strasse%"
