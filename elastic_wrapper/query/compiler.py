"""
Filter model to boolean query compilation.

Converts a filter model instance into a compiled query tree using the
entity's property descriptors.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel

from elastic_wrapper.core.markers import IgnoreOnQuery, NestedField, find_marker
from elastic_wrapper.core.models import PropertyDescriptor, RangeFilter
from elastic_wrapper.query.nodes import (
    BoolQuery,
    NestedQuery,
    QueryNode,
    RangeQuery,
    TermQuery,
    TermsQuery,
    TextMatchQuery,
)
from elastic_wrapper.schema.naming import camel_path, keyword_name
from elastic_wrapper.schema.type_mappings import TypeMapper

logger = logging.getLogger(__name__)


class QueryCompiler:
    """
    Compiles filter models to boolean queries.

    Each non-null filter property that maps to an entity property yields
    exactly one leaf in ``must``. Leaves on sub-object properties are also
    grouped by nested path; each group becomes one nested query, and the
    nested queries are attached to the root ``should`` clause.
    """

    def __init__(
        self,
        descriptors: Sequence[PropertyDescriptor],
        max_inner_result_window: Optional[int] = None,
    ):
        """
        Initialize query compiler.

        Args:
            descriptors: Property descriptors of the entity
            max_inner_result_window: Inner hits size of nested queries
        """
        self.descriptors = descriptors
        self.max_inner_result_window = max_inner_result_window

    def compile(self, filters: Optional[BaseModel]) -> BoolQuery:
        """
        Compile a filter instance.

        Args:
            filters: Filter model instance, or None for an unfiltered query

        Returns:
            Root boolean query
        """
        root, nested_queries = self.compile_parts(filters)
        if not nested_queries:
            return root
        return BoolQuery(must=root.must, should=[*root.should, *nested_queries])

    def compile_parts(
        self, filters: Optional[BaseModel]
    ) -> Tuple[BoolQuery, List[NestedQuery]]:
        """
        Compile a filter instance without attaching nested queries.

        Returns:
            The root query holding every leaf in ``must``, and one nested
            query per nested path in first-seen order
        """
        must: List[QueryNode] = []
        nested_leaves: Dict[str, List[QueryNode]] = {}

        if filters is None:
            return BoolQuery(), []

        for prop_name, field_info in type(filters).model_fields.items():
            if find_marker(field_info.metadata, IgnoreOnQuery) is not None:
                continue

            value = getattr(filters, prop_name)
            if value is None:
                continue

            nested = find_marker(field_info.metadata, NestedField)
            descriptor = self.resolve(nested.name if nested else prop_name)
            if descriptor is None:
                logger.debug("Filter property '%s' has no mapped entity property", prop_name)
                continue

            prop_type = TypeMapper.unwrap_optional(field_info.annotation)
            query = self._build_leaf(descriptor, prop_type, value)

            must.append(query)
            if descriptor.nested_path:
                path = camel_path(descriptor.nested_path)
                nested_leaves.setdefault(path, []).append(query)

        nested_queries = [
            NestedQuery(
                path=path,
                query=leaves[0] if len(leaves) == 1 else BoolQuery(must=leaves),
                inner_hits_size=self.max_inner_result_window,
            )
            for path, leaves in nested_leaves.items()
        ]
        return BoolQuery(must=must), nested_queries

    def resolve(self, prop_name: str) -> Optional[PropertyDescriptor]:
        """Find a descriptor by full path, falling back to the bare property name."""
        for descriptor in self.descriptors:
            if descriptor.full_path == prop_name:
                return descriptor
        for descriptor in self.descriptors:
            if descriptor.name == prop_name:
                return descriptor
        return None

    @staticmethod
    def field_name(descriptor: PropertyDescriptor) -> str:
        """Wire field name, on the keyword sub-field for string properties."""
        full_name = camel_path(descriptor.full_path)
        return keyword_name(full_name) if descriptor.keyword else full_name

    def _build_leaf(
        self, descriptor: PropertyDescriptor, prop_type: Any, value: Any
    ) -> QueryNode:
        """Build the leaf query of one filter property, by the filter's declared type."""
        full_name = camel_path(descriptor.full_path)
        field_name = self.field_name(descriptor)

        if TypeMapper.is_structured(prop_type) and issubclass(prop_type, RangeFilter):
            return RangeQuery(
                field=field_name,
                gt=value.min if value.min is not None else 0,
                lt=value.max,
            )

        if prop_type is str:
            return TextMatchQuery(field=full_name, pattern=f"*{value}*")

        if TypeMapper.is_sequence(prop_type):
            return TermsQuery(field=field_name, values=TypeMapper.to_field_values(value))

        return TermQuery(field=field_name, value=TypeMapper.to_field_value(value))
