"""
Field naming on the wire.

Python property paths (``lines.unit_price``) are sent to the engine
camel-cased segment by segment (``lines.unitPrice``); exact-match queries
and sorts on text fields target the ``keyword`` sub-field.
"""

from typing import Optional

from pydantic.alias_generators import to_camel

from elastic_wrapper.schema.type_mappings import split_path

KEYWORD_SUFFIX = "keyword"


def camel_path(path: Optional[str]) -> Optional[str]:
    if not path:
        return None
    return ".".join(to_camel(segment) for segment in split_path(path))


def keyword_name(field_name: Optional[str]) -> Optional[str]:
    if not field_name:
        return None
    return f"{field_name}.{KEYWORD_SUFFIX}"
