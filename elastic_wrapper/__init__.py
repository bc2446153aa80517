"""
Elastic Wrapper - schema-driven data access over Elasticsearch.

Main entry point for creating repositories bound to an entity model
and a filter model.
"""

from elastic_wrapper.core.models import (
    AggregateResult,
    ElasticDocument,
    ElasticEntity,
    Paging,
    RangeFilter,
    SearchResult,
)
from elastic_wrapper.core.markers import ElasticAggregate, IgnoreOnQuery, NestedField
from elastic_wrapper.core.options import ElasticOptions
from elastic_wrapper.execution.repository import ElasticBaseRepository

__all__ = [
    "AggregateResult",
    "ElasticAggregate",
    "ElasticBaseRepository",
    "ElasticDocument",
    "ElasticEntity",
    "ElasticOptions",
    "IgnoreOnQuery",
    "NestedField",
    "Paging",
    "RangeFilter",
    "SearchResult",
]
