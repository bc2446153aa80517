"""
Aggregation compilation and response decoding.

Every aggregation-annotated entity property yields aggregation nodes:
nested properties a path-scoped terms aggregation, numeric properties a
min/max pair, booleans an average, everything else a terms aggregation.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from elastic_wrapper.core.errors import ElasticConfigurationError
from elastic_wrapper.core.models import AggregateOption, AggregateResult, PropertyDescriptor
from elastic_wrapper.query.compiler import QueryCompiler
from elastic_wrapper.query.nodes import QueryNode
from elastic_wrapper.schema.naming import camel_path
from elastic_wrapper.schema.type_mappings import TypeMapper

logger = logging.getLogger(__name__)

# Bucket ceiling of terms aggregations: every distinct value is returned.
# High-cardinality fields make responses grow without bound.
UNBOUNDED_BUCKETS = 2147483647


def _terms_body(field: str, order_key: str, group_by_field: Optional[str]) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "terms": {
            "field": field,
            "size": UNBOUNDED_BUCKETS,
            "order": {order_key: "asc"},
        }
    }
    if group_by_field:
        body["aggs"] = {
            AggregateResult.GROUP_BY_KEY: {
                "terms": {"field": group_by_field, "size": UNBOUNDED_BUCKETS}
            }
        }
    return body


class AggregationNode(BaseModel, ABC):
    """Base of every compiled aggregation."""

    model_config = ConfigDict(frozen=True)

    name: str

    @abstractmethod
    def to_dsl(self) -> Dict[str, Any]:
        ...


class TermsAggregation(AggregationNode):
    field: str
    order_key: str
    group_by_field: Optional[str] = None

    def to_dsl(self) -> Dict[str, Any]:
        return _terms_body(self.field, self.order_key, self.group_by_field)


class NestedTermsAggregation(AggregationNode):
    """Terms aggregation over the sub-objects under ``path``."""

    SCOPE_NAME: ClassVar[str] = "scope"

    path: str
    field: str
    inner_name: str
    order_key: str
    group_by_field: Optional[str] = None
    scope_query: Optional[QueryNode] = None

    def to_dsl(self) -> Dict[str, Any]:
        inner = {self.inner_name: _terms_body(self.field, self.order_key, self.group_by_field)}
        if self.scope_query is not None:
            inner = {self.SCOPE_NAME: {"filter": self.scope_query.to_dsl(), "aggs": inner}}
        return {"nested": {"path": self.path}, "aggs": inner}


class MinAggregation(AggregationNode):
    field: str

    def to_dsl(self) -> Dict[str, Any]:
        return {"min": {"field": self.field}}


class MaxAggregation(AggregationNode):
    field: str

    def to_dsl(self) -> Dict[str, Any]:
        return {"max": {"field": self.field}}


class AvgAggregation(AggregationNode):
    field: str

    def to_dsl(self) -> Dict[str, Any]:
        return {"avg": {"field": self.field}}


class AggregationCompiler:
    """
    Compiles the aggregation tree of an entity.

    Aggregations are meant for ``size=0`` requests whose query is the
    compiled filter, so buckets only count matching documents.
    """

    def __init__(
        self,
        descriptors: Sequence[PropertyDescriptor],
        query_compiler: QueryCompiler,
    ):
        """
        Initialize aggregation compiler.

        Args:
            descriptors: Property descriptors of the entity
            query_compiler: Compiler used to scope nested aggregations
        """
        self.descriptors = descriptors
        self.query_compiler = query_compiler

    def compile(self, filters: Optional[BaseModel] = None) -> List[AggregationNode]:
        """
        Compile the aggregations of every aggregation-annotated property.

        Args:
            filters: Filter instance; its nested predicates scope the
                matching nested aggregations

        Returns:
            Aggregation nodes in descriptor order
        """
        _, nested_queries = self.query_compiler.compile_parts(filters)
        scopes = {nested.path: nested.query for nested in nested_queries}

        nodes: List[AggregationNode] = []
        for descriptor in self.descriptors:
            if not descriptor.is_aggregate_target:
                continue

            full_name = camel_path(descriptor.full_path)
            field_name = QueryCompiler.field_name(descriptor)
            name = to_camel(descriptor.name)
            group_by_field = self._group_by_field(descriptor)

            if descriptor.nested_path:
                path = camel_path(descriptor.nested_path)
                nodes.append(
                    NestedTermsAggregation(
                        name=name,
                        path=path,
                        field=field_name,
                        inner_name=full_name,
                        order_key=descriptor.aggregate_order_key,
                        group_by_field=group_by_field,
                        scope_query=scopes.get(path),
                    )
                )
                continue

            kind = TypeMapper.get_kind(descriptor.value_type)

            if kind in TypeMapper.NUMERIC_KINDS:
                nodes.append(MinAggregation(name=f"{name}Min", field=field_name))
                nodes.append(MaxAggregation(name=f"{name}Max", field=field_name))
                continue

            if kind == TypeMapper.BOOLEAN:
                nodes.append(AvgAggregation(name=f"{name}Avg", field=field_name))
                continue

            nodes.append(
                TermsAggregation(
                    name=name,
                    field=field_name,
                    order_key=descriptor.aggregate_order_key,
                    group_by_field=group_by_field,
                )
            )

        self._check_unique_names(nodes)
        return nodes

    @staticmethod
    def _check_unique_names(nodes: Sequence[AggregationNode]) -> None:
        seen = set()
        for node in nodes:
            if node.name in seen:
                raise ElasticConfigurationError(
                    f"Aggregation name '{node.name}' is produced by more than one property"
                )
            seen.add(node.name)

    @staticmethod
    def to_dsl(nodes: Sequence[AggregationNode]) -> Dict[str, Any]:
        return {node.name: node.to_dsl() for node in nodes}

    def _group_by_field(self, descriptor: PropertyDescriptor) -> Optional[str]:
        if not descriptor.aggregate_group_by_path:
            return None
        target = self.query_compiler.resolve(descriptor.aggregate_group_by_path)
        if target is None:
            return camel_path(descriptor.aggregate_group_by_path)
        return QueryCompiler.field_name(target)


# Type prefixes added to aggregation names by ``typed_keys``
TERMS_TYPES = {"sterms", "lterms", "dterms", "umterms", "ulterms"}
CONTAINER_TYPES = {"nested", "filter", "reverse_nested"}
METRIC_TYPES = {"min", "max", "avg", "sum", "value_count"}


def _split_typed_key(key: str) -> Tuple[Optional[str], str]:
    if "#" in key:
        agg_type, name = key.split("#", 1)
        return agg_type, name
    return None, key


def _infer_type(body: Mapping[str, Any]) -> Optional[str]:
    """Guess the aggregation type of an untyped response entry."""
    if "buckets" in body:
        return "sterms"
    if "value" in body:
        return "min"
    if "doc_count" in body:
        return "filter"
    return None


def _decode_options(buckets: List[Mapping[str, Any]]) -> List[AggregateOption]:
    options = []
    for bucket in buckets:
        groups: List[AggregateOption] = []
        for sub_key, sub_body in bucket.items():
            _, sub_name = _split_typed_key(sub_key)
            if sub_name == AggregateResult.GROUP_BY_KEY and isinstance(sub_body, Mapping):
                groups = _decode_options(sub_body.get("buckets", []))
        options.append(AggregateOption(key=bucket["key"], count=bucket.get("doc_count", 0), groups=groups))
    return options


def decode_aggregations(aggregations: Optional[Mapping[str, Any]]) -> List[AggregateResult]:
    """
    Decode the ``aggregations`` section of a search response.

    Nested and filter containers are unwrapped recursively and their leaf
    aggregations are flattened into the same list, without name prefixes.
    Bucket order is kept as returned by the engine.

    Args:
        aggregations: Response aggregations, preferably requested with ``typed_keys``

    Returns:
        One result per terms or metric aggregation
    """
    results: List[AggregateResult] = []

    for key, body in (aggregations or {}).items():
        if not isinstance(body, Mapping):
            continue

        agg_type, name = _split_typed_key(key)
        if agg_type is None:
            agg_type = _infer_type(body)

        if agg_type in TERMS_TYPES:
            results.append(AggregateResult(key=name, options=_decode_options(body.get("buckets", []))))
        elif agg_type in CONTAINER_TYPES:
            children = {k: v for k, v in body.items() if k not in ("doc_count", "meta")}
            results.extend(decode_aggregations(children))
        elif agg_type in METRIC_TYPES:
            results.append(AggregateResult(key=name, value=body.get("value")))
        else:
            logger.debug("Skipping aggregation '%s' of unsupported type %s", name, agg_type)

    return results
