"""
Tests for filter compilation, paging and sorting of search requests.
"""

import pytest
from pydantic import ValidationError

from conftest import Order, OrderFilters
from elastic_wrapper import ElasticOptions, Paging, RangeFilter
from elastic_wrapper.query import ElasticRequestBuilder, QueryCompiler
from elastic_wrapper.query.nodes import BoolQuery, NestedQuery
from elastic_wrapper.schema import SchemaIntrospector


@pytest.fixture
def builder(options):
    return ElasticRequestBuilder(Order, options)


@pytest.fixture
def compiler():
    return QueryCompiler(SchemaIntrospector(Order).build(), max_inner_result_window=1000)


def test_every_non_null_property_yields_one_must_leaf(builder):
    filters = OrderFilters(
        customer="ann",
        status=["paid", "open"],
        total=RangeFilter(min=5, max=10),
        paid=True,
    )

    query = builder.get_query(filters)

    assert query == {
        "bool": {
            "must": [
                {"query_string": {"default_field": "customer", "query": "*ann*"}},
                {"terms": {"status.keyword": ["paid", "open"]}},
                {"range": {"total": {"gt": 5, "lt": 10}}},
                {"term": {"paid": {"value": True}}},
            ],
            "should": [],
        }
    }


def test_no_filters_compiles_to_empty_bool(builder):
    assert builder.get_query(None) == {"bool": {"must": [], "should": []}}
    assert builder.get_query(OrderFilters()) == {"bool": {"must": [], "should": []}}


def test_ignored_properties_are_skipped(builder):
    query = builder.get_query(OrderFilters(page_token="abc"))

    assert query["bool"]["must"] == []


def test_range_without_min_starts_at_zero(builder):
    query = builder.get_query(OrderFilters(total=RangeFilter(max=10)))

    assert query["bool"]["must"] == [{"range": {"total": {"gt": 0, "lt": 10}}}]


def test_nested_properties_share_one_nested_query(compiler):
    query = compiler.compile(OrderFilters(sku="A1", warehouse="north"))

    assert len(query.must) == 2
    assert len(query.should) == 1

    nested = query.should[0]
    assert isinstance(nested, NestedQuery)
    assert nested.path == "lines"
    assert nested.inner_hits_size == 1000
    assert isinstance(nested.query, BoolQuery)
    assert nested.query.must == query.must


def test_single_nested_leaf_is_not_wrapped(builder):
    query = builder.get_query(OrderFilters(sku="A1", customer="ann"))

    sku_leaf = {"query_string": {"default_field": "lines.sku", "query": "*A1*"}}
    assert query["bool"]["must"][1] == sku_leaf
    assert query["bool"]["should"] == [
        {"nested": {"path": "lines", "query": sku_leaf, "inner_hits": {"size": 1000}}}
    ]


def test_compile_parts_keeps_nested_queries_apart(compiler):
    root, nested = compiler.compile_parts(OrderFilters(sku="A1"))

    assert root.should == []
    assert [n.path for n in nested] == ["lines"]


def test_resolve_prefers_full_path(compiler):
    assert compiler.resolve("lines.sku").full_path == "lines.sku"
    assert compiler.resolve("warehouse").full_path == "lines.warehouse"
    assert compiler.resolve("unknown") is None


# ---------------------------------------------------------------------------
# Paging and sorting
# ---------------------------------------------------------------------------


def test_default_paging(builder):
    request = builder.build_search_request(None)

    assert request["from_"] == 0
    assert request["size"] == 10
    assert request["version"] is True
    assert request["source"] is True
    assert "sort" not in request
    assert "query" not in request


def test_paging_accepts_wire_alias():
    assert Paging(**{"from": 20}).from_ == 20

    with pytest.raises(ValidationError):
        Paging(from_=-1)


def test_sort_matches_path_case_insensitively(builder):
    request = builder.build_search_request(None, Paging(sort_by="Customer", descending=True))

    assert request["sort"] == [{"customer.keyword": {"order": "desc"}}]


def test_sort_on_nested_property(builder):
    request = builder.build_search_request(None, Paging(sort_by="lines.quantity"))

    assert request["sort"] == [{"lines.quantity": {"order": "asc", "nested": {"path": "lines"}}}]


def test_sort_on_unmapped_path_leaves_request_unsorted(builder):
    request = builder.build_search_request(None, Paging(sort_by="nope"))

    assert "sort" not in request


def test_count_request(builder):
    request = builder.build_count_request(OrderFilters(paid=False))

    assert request["size"] == 0
    assert request["query"]["bool"]["must"] == [{"term": {"paid": {"value": False}}}]


def test_inner_hits_window_follows_options():
    builder = ElasticRequestBuilder(
        Order, ElasticOptions(uri="http://localhost:9200", index="orders", max_inner_result_window=50)
    )

    query = builder.get_query(OrderFilters(sku="A1"))

    assert query["bool"]["should"][0]["nested"]["inner_hits"] == {"size": 50}
