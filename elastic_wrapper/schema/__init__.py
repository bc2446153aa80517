"""Schema introspection and mapping building."""

from elastic_wrapper.schema.type_mappings import TypeMapper
from elastic_wrapper.schema.introspector import SchemaIntrospector
from elastic_wrapper.schema.mapping_builder import MappingBuilder

__all__ = ["TypeMapper", "SchemaIntrospector", "MappingBuilder"]
