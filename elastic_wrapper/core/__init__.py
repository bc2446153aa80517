"""Core interfaces and models for the elastic wrapper."""

from elastic_wrapper.core.errors import (
    ElasticAggregateError,
    ElasticBulkError,
    ElasticConfigurationError,
    ElasticOperationError,
    ElasticWrapperError,
)
from elastic_wrapper.core.interfaces import IElasticEntity
from elastic_wrapper.core.markers import ElasticAggregate, IgnoreOnQuery, NestedField
from elastic_wrapper.core.models import (
    AggregateOption,
    AggregateResult,
    ElasticDocument,
    ElasticEntity,
    Paging,
    PropertyDescriptor,
    RangeFilter,
    SearchResult,
)
from elastic_wrapper.core.options import ElasticOptions

__all__ = [
    "AggregateOption",
    "AggregateResult",
    "ElasticAggregate",
    "ElasticAggregateError",
    "ElasticBulkError",
    "ElasticConfigurationError",
    "ElasticDocument",
    "ElasticEntity",
    "ElasticOperationError",
    "ElasticOptions",
    "ElasticWrapperError",
    "IElasticEntity",
    "IgnoreOnQuery",
    "NestedField",
    "Paging",
    "PropertyDescriptor",
    "RangeFilter",
    "SearchResult",
]
