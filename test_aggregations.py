"""
Tests for aggregation compilation and typed-keys response decoding.
"""

from typing import Annotated, List

import pytest

from conftest import Order, OrderFilters, OrderLine
from elastic_wrapper import ElasticAggregate, ElasticEntity
from elastic_wrapper.core.errors import ElasticConfigurationError
from elastic_wrapper.query import AggregationCompiler, ElasticRequestBuilder, decode_aggregations
from elastic_wrapper.query.aggregations import (
    UNBOUNDED_BUCKETS,
    AggregationNode,
    MaxAggregation,
    MinAggregation,
    NestedTermsAggregation,
)


class Shipment(ElasticEntity):
    sku: Annotated[str, ElasticAggregate()]
    lines: List[OrderLine] = []


@pytest.fixture
def builder(options):
    return ElasticRequestBuilder(Order, options)


def test_aggregation_names_follow_property_kinds(builder):
    nodes = builder.aggregation_compiler.compile(None)

    assert [node.name for node in nodes] == ["status", "totalMin", "totalMax", "paidAvg", "sku"]


def test_decimal_yields_exactly_min_and_max(builder):
    nodes = [n for n in builder.aggregation_compiler.compile(None) if n.name.startswith("total")]

    assert [type(n) for n in nodes] == [MinAggregation, MaxAggregation]
    assert nodes[0].to_dsl() == {"min": {"field": "total"}}


def test_terms_aggregation_dsl(builder):
    aggs = AggregationCompiler.to_dsl(builder.aggregation_compiler.compile(None))

    assert aggs["status"] == {
        "terms": {
            "field": "status.keyword",
            "size": UNBOUNDED_BUCKETS,
            "order": {"_count": "asc"},
        }
    }
    assert aggs["paidAvg"] == {"avg": {"field": "paid"}}


def test_nested_aggregation_without_filter(builder):
    aggs = AggregationCompiler.to_dsl(builder.aggregation_compiler.compile(None))

    assert aggs["sku"] == {
        "nested": {"path": "lines"},
        "aggs": {
            "lines.sku": {
                "terms": {
                    "field": "lines.sku.keyword",
                    "size": UNBOUNDED_BUCKETS,
                    "order": {"_key": "asc"},
                }
            }
        },
    }


def test_nested_aggregation_is_scoped_by_nested_filter(builder):
    nodes = builder.aggregation_compiler.compile(OrderFilters(sku="A1", customer="ann"))
    nested = next(n for n in nodes if isinstance(n, NestedTermsAggregation))

    dsl = nested.to_dsl()
    scope = dsl["aggs"][NestedTermsAggregation.SCOPE_NAME]

    assert scope["filter"] == {"query_string": {"default_field": "lines.sku", "query": "*A1*"}}
    assert "lines.sku" in scope["aggs"]


def test_group_by_adds_sub_terms(options):
    builder = ElasticRequestBuilder(
        Order, options, aggregates={"customer": ElasticAggregate(group_by="status")}
    )

    aggs = AggregationCompiler.to_dsl(builder.aggregation_compiler.compile(None))

    assert aggs["customer"]["aggs"] == {
        "group_by": {"terms": {"field": "status.keyword", "size": UNBOUNDED_BUCKETS}}
    }


def test_aggregate_request_is_count_only(builder):
    request = builder.build_aggregate_request(OrderFilters(paid=True))

    assert request["size"] == 0
    assert request["typed_keys"] is True
    assert set(request["aggs"]) == {"status", "totalMin", "totalMax", "paidAvg", "sku"}
    assert request["query"]["bool"]["must"] == [{"term": {"paid": {"value": True}}}]


def test_clashing_aggregation_names_are_rejected(options):
    builder = ElasticRequestBuilder(Shipment, options)

    with pytest.raises(ElasticConfigurationError, match="sku"):
        builder.aggregation_compiler.compile(None)


def test_aggregation_nodes_must_render_themselves():
    class Incomplete(AggregationNode):
        pass

    with pytest.raises(TypeError):
        Incomplete(name="x")


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def test_decode_flattens_containers_and_keeps_bucket_order():
    response = {
        "sterms#status": {
            "buckets": [
                {"key": "paid", "doc_count": 3},
                {"key": "open", "doc_count": 1},
            ]
        },
        "min#totalMin": {"value": 5.0},
        "max#totalMax": {"value": 42.5},
        "nested#sku": {
            "doc_count": 10,
            "filter#scope": {
                "doc_count": 4,
                "sterms#lines.sku": {
                    "buckets": [
                        {"key": "B2", "doc_count": 3},
                        {"key": "A1", "doc_count": 1},
                    ]
                },
            },
        },
    }

    results = decode_aggregations(response)

    assert [r.key for r in results] == ["status", "totalMin", "totalMax", "lines.sku"]
    assert [(o.key, o.count) for o in results[0].options] == [("paid", 3), ("open", 1)]
    assert results[1].value == 5.0
    assert results[1].options == []
    assert [o.key for o in results[3].options] == ["B2", "A1"]


def test_decode_group_by_buckets():
    response = {
        "sterms#customer": {
            "buckets": [
                {
                    "key": "ann",
                    "doc_count": 2,
                    "sterms#group_by": {"buckets": [{"key": "paid", "doc_count": 2}]},
                }
            ]
        }
    }

    result = decode_aggregations(response)[0]

    assert result.options[0].groups[0].key == "paid"
    assert result.options[0].groups[0].count == 2


def test_decode_numeric_terms_and_untyped_keys():
    response = {
        "lterms#quantity": {"buckets": [{"key": 1, "doc_count": 5}]},
        "avg": {"value": 0.5},
    }

    results = decode_aggregations(response)

    assert results[0].options[0].key == 1
    assert results[1].key == "avg"
    assert results[1].value == 0.5


def test_decode_empty_response():
    assert decode_aggregations(None) == []
    assert decode_aggregations({}) == []
