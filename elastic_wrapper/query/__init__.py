"""Query, aggregation and request compilation."""

from elastic_wrapper.query.compiler import QueryCompiler
from elastic_wrapper.query.aggregations import AggregationCompiler, decode_aggregations
from elastic_wrapper.query.request_builder import ElasticRequestBuilder

__all__ = ["QueryCompiler", "AggregationCompiler", "decode_aggregations", "ElasticRequestBuilder"]
