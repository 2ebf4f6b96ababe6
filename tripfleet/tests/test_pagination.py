"""
Pagination, sorting and query validation tests.
"""

from types import SimpleNamespace

import pytest
from starlette.requests import Request

from tripfleet.app.core.exceptions import AppException
from tripfleet.app.core.pagination import paginate, pagination_meta, sort_records
from tripfleet.app.core.query import parse_query
from tripfleet.app.schemas.query import PriceEstimateQuery, TripListQuery


def _request(query_string: str) -> Request:
    return Request({"type": "http", "method": "GET", "path": "/", "query_string": query_string.encode(), "headers": []})


def test_meta_for_a_middle_page():
    assert pagination_meta(2, 10, 25) == {
        "currentPage": 2,
        "totalPages": 3,
        "totalItems": 25,
        "itemsPerPage": 10,
        "hasNextPage": True,
        "hasPreviousPage": True,
    }


def test_meta_for_an_empty_collection():
    meta = pagination_meta(1, 10, 0)

    assert meta["totalPages"] == 0
    assert meta["hasNextPage"] is False
    assert meta["hasPreviousPage"] is False


def test_page_past_the_end_is_empty():
    items, meta = paginate(list(range(5)), 3, 2)
    assert items == [4]

    items, meta = paginate(list(range(5)), 4, 2)
    assert items == []
    assert meta["hasNextPage"] is False


def test_descending_sort_keeps_ascending_tie_break():
    rows = [
        SimpleNamespace(id=3, revenue=10.0),
        SimpleNamespace(id=1, revenue=10.0),
        SimpleNamespace(id=2, revenue=50.0),
    ]

    ordered = sort_records(rows, primary=lambda r: r.revenue, fallback=lambda r: r.id, descending=True)

    assert [r.id for r in ordered] == [2, 1, 3]


def test_missing_values_sort_last_and_text_ignores_case():
    rows = [
        SimpleNamespace(id=1, name=None),
        SimpleNamespace(id=2, name="volvo"),
        SimpleNamespace(id=3, name="DAF"),
    ]

    ordered = sort_records(rows, primary=lambda r: r.name, fallback=lambda r: r.id)

    assert [r.id for r in ordered] == [3, 2, 1]


def test_query_defaults():
    query = parse_query(_request(""), TripListQuery)

    assert query.page == 1
    assert query.limit == 10
    assert query.sort_order == "asc"


def test_query_accepts_camel_case_names():
    query = parse_query(_request("page=2&limit=5&sortBy=revenue&sortOrder=desc&departureCity=berl"), TripListQuery)

    assert (query.page, query.limit) == (2, 5)
    assert query.sort_by == "revenue"
    assert query.departure_city == "berl"


@pytest.mark.parametrize("query_string, field", [
    ("status=archived", "status"),
    ("page=0", "page"),
    ("limit=101", "limit"),
    ("sortBy=colour", "sortBy"),
    ("sortOrder=sideways", "sortOrder"),
])
def test_invalid_query_values(query_string, field):
    with pytest.raises(AppException) as exc:
        parse_query(_request(query_string), TripListQuery)

    assert exc.value.error_code == "INVALID_QUERY"
    assert exc.value.status_code == 400
    assert [detail["field"] for detail in exc.value.details] == [field]


@pytest.mark.parametrize("weight", ["0", "-3", "nan", "heavy"])
def test_price_estimate_weight_must_be_a_positive_number(weight):
    with pytest.raises(AppException) as exc:
        parse_query(_request(f"weight={weight}"), PriceEstimateQuery)

    assert exc.value.error_code == "INVALID_QUERY"
