"""
Index mapping builder.

Builds an explicit Elasticsearch mapping from property descriptors so that
every sub-object path the query compiler treats as nested is mapped as
``nested``. Nested fields are also copied into the root document, since
filters on them are matched both at the root and inside ``nested`` queries.
"""

from typing import Any, Dict, Optional, Sequence

from pydantic.alias_generators import to_camel

from elastic_wrapper.core.models import PropertyDescriptor
from elastic_wrapper.schema.naming import KEYWORD_SUFFIX
from elastic_wrapper.schema.type_mappings import TypeMapper


class MappingBuilder:
    """Builds the ``mappings`` body of an index from descriptors."""

    KEYWORD_IGNORE_ABOVE = 256

    def __init__(self, descriptors: Sequence[PropertyDescriptor]):
        self.descriptors = descriptors

    def build(self) -> Dict[str, Any]:
        """
        Build the index mapping.

        Returns:
            Mapping body, e.g. ``{"properties": {"lines": {"type": "nested", "include_in_root": True, ...}}}``
        """
        root: Dict[str, Any] = {}
        containers: Dict[str, Dict[str, Any]] = {}

        for descriptor in self.descriptors:
            parent = root if descriptor.nested_path is None else containers.get(descriptor.nested_path)
            if parent is None:
                continue

            field_mapping = self._field_mapping(descriptor)
            if field_mapping is None:
                continue

            parent[to_camel(descriptor.name)] = field_mapping
            if "properties" in field_mapping:
                containers[descriptor.full_path] = field_mapping["properties"]

        return {"properties": root}

    def _field_mapping(self, descriptor: PropertyDescriptor) -> Optional[Dict[str, Any]]:
        """Get the mapping of a single property, None to leave it dynamic."""
        value_type = descriptor.value_type
        if TypeMapper.is_sequence(value_type):
            value_type = TypeMapper.element_type(value_type)

        if TypeMapper.is_structured(value_type):
            return {"type": "nested", "include_in_root": True, "properties": {}}

        es_type = TypeMapper.get_elasticsearch_type(value_type)
        if es_type is None:
            return None

        if es_type == "text":
            return {
                "type": "text",
                "fields": {
                    KEYWORD_SUFFIX: {
                        "type": "keyword",
                        "ignore_above": self.KEYWORD_IGNORE_ABOVE,
                    }
                },
            }
        return {"type": es_type}
