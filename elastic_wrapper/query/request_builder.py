"""
Search request building.

Combines schema introspection, query compilation, sorting and aggregation
compilation into keyword arguments for ``AsyncElasticsearch.search``.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Tuple, Type

from pydantic import BaseModel

from elastic_wrapper.core.markers import ElasticAggregate
from elastic_wrapper.core.models import Paging, PropertyDescriptor
from elastic_wrapper.core.options import ElasticOptions
from elastic_wrapper.query.aggregations import AggregationCompiler
from elastic_wrapper.query.compiler import QueryCompiler
from elastic_wrapper.schema.introspector import SchemaIntrospector
from elastic_wrapper.schema.mapping_builder import MappingBuilder
from elastic_wrapper.schema.naming import camel_path, keyword_name

logger = logging.getLogger(__name__)


class ElasticRequestBuilder:
    """
    Builds search, count and aggregation requests for one entity type.

    The entity is introspected once, at construction; every request is
    compiled fresh from the filter instance it is given.
    """

    def __init__(
        self,
        entity_type: Type[BaseModel],
        options: ElasticOptions,
        aggregates: Optional[Mapping[str, ElasticAggregate]] = None,
    ):
        """
        Initialize request builder.

        Args:
            entity_type: Pydantic model of the stored documents
            options: Index options (inner hits window of nested queries)
            aggregates: Aggregation configuration keyed by property path
        """
        self.entity_type = entity_type
        self.options = options

        self.introspector = SchemaIntrospector(entity_type, aggregates=aggregates)
        self.descriptors: Tuple[PropertyDescriptor, ...] = self.introspector.build()

        self.query_compiler = QueryCompiler(
            self.descriptors, max_inner_result_window=options.max_inner_result_window
        )
        self.aggregation_compiler = AggregationCompiler(self.descriptors, self.query_compiler)

    def get_query(self, filters: Optional[BaseModel]) -> Dict[str, Any]:
        """Compile the filter instance to query DSL."""
        return self.query_compiler.compile(filters).to_dsl()

    def build_search_request(
        self,
        filters: Optional[BaseModel],
        paging: Optional[Paging] = None,
        has_source: bool = True,
    ) -> Dict[str, Any]:
        """
        Build a paged search request.

        Args:
            filters: Filter instance, None for all documents
            paging: Offset, size and sort (defaults: from 0, size 10, unsorted)
            has_source: Whether documents' ``_source`` is returned

        Returns:
            Keyword arguments for ``search``
        """
        paging = paging or Paging()
        request: Dict[str, Any] = {}

        if filters is not None:
            request["query"] = self.get_query(filters)

        request["size"] = paging.size
        request["from_"] = paging.from_

        self.apply_sort(request, paging)

        request["source"] = has_source
        request["version"] = True

        logger.debug("Search request for %s: %s", self.entity_type.__name__, request)
        return request

    def apply_sort(self, request: Dict[str, Any], paging: Paging) -> Dict[str, Any]:
        """
        Add the sort of ``paging`` to a request.

        The sort path is matched case-insensitively against property paths;
        an unknown path leaves the request unsorted.
        """
        if not paging.sort_by:
            return request

        descriptor = next(
            (d for d in self.descriptors if d.full_path.lower() == paging.sort_by.lower()),
            None,
        )
        if descriptor is None:
            logger.debug("Ignoring sort on unmapped path '%s'", paging.sort_by)
            return request

        key = camel_path(descriptor.full_path)
        if descriptor.keyword:
            key = keyword_name(key)

        sort_options: Dict[str, Any] = {"order": "desc" if paging.descending else "asc"}
        if descriptor.nested_path:
            sort_options["nested"] = {"path": camel_path(descriptor.nested_path)}

        request["sort"] = [{key: sort_options}]
        return request

    def build_count_request(self, filters: Optional[BaseModel]) -> Dict[str, Any]:
        """Build a request returning only the hit count."""
        request: Dict[str, Any] = {"size": 0, "from_": 0}
        if filters is not None:
            request["query"] = self.get_query(filters)
        return request

    def build_aggregate_request(self, filters: Optional[BaseModel]) -> Dict[str, Any]:
        """
        Build a count request carrying the entity's aggregations.

        Aggregation names are requested with ``typed_keys`` so responses can
        be decoded by aggregation type.
        """
        request = self.build_count_request(filters)
        nodes = self.aggregation_compiler.compile(filters)
        request["aggs"] = AggregationCompiler.to_dsl(nodes)
        request["typed_keys"] = True

        logger.debug("Aggregate request for %s: %s", self.entity_type.__name__, request)
        return request

    def build_mappings(self) -> Dict[str, Any]:
        """Index mapping derived from the entity's properties."""
        return MappingBuilder(self.descriptors).build()
