"""
Type mapping utilities for classifying declared Python types.

Used by the schema introspector, both compilers and the mapping builder,
which all need to know whether a declared type is a string, a number, a
sequence or a nested model.
"""

import collections.abc
import inspect
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from types import UnionType
from typing import Any, List, Optional, Tuple, Union, get_args, get_origin

from pydantic import BaseModel


class TypeMapper:
    """Maps declared Python types to normalized kinds and Elasticsearch types."""

    STRING = "string"
    INTEGER = "integer"
    DECIMAL = "decimal"
    FLOATING = "floating"
    BOOLEAN = "boolean"
    DATE = "date"
    SEQUENCE = "sequence"
    OBJECT = "object"
    UNKNOWN = "unknown"

    NUMERIC_KINDS = (INTEGER, DECIMAL, FLOATING)

    SEQUENCE_ORIGINS = (
        list,
        set,
        frozenset,
        tuple,
        collections.abc.Sequence,
        collections.abc.MutableSequence,
        collections.abc.Iterable,
        collections.abc.Collection,
        collections.abc.Set,
    )

    # Python kinds to Elasticsearch field types
    ELASTICSEARCH_TYPE_MAP = {
        STRING: "text",
        INTEGER: "long",
        DECIMAL: "double",
        FLOATING: "double",
        BOOLEAN: "boolean",
        DATE: "date",
        OBJECT: "nested",
    }

    @classmethod
    def unwrap_optional(cls, tp: Any) -> Any:
        """Strip ``Optional[...]`` (and ``X | None``) wrapping."""
        origin = get_origin(tp)
        if origin is Union or origin is UnionType:
            args = [arg for arg in get_args(tp) if arg is not type(None)]
            if len(args) == 1:
                return cls.unwrap_optional(args[0])
        return tp

    @classmethod
    def is_sequence(cls, tp: Any) -> bool:
        """Check if a type is a list-like collection (strings excluded)."""
        origin = get_origin(tp)
        if origin is not None:
            return origin in cls.SEQUENCE_ORIGINS
        return tp in (list, set, frozenset, tuple)

    @classmethod
    def element_type(cls, tp: Any) -> Any:
        """Element type of a sequence type, ``Any`` when undeclared."""
        args = [arg for arg in get_args(tp) if arg is not Ellipsis]
        if not args:
            return Any
        return cls.unwrap_optional(args[0])

    @classmethod
    def is_structured(cls, tp: Any) -> bool:
        """Check if a type is a model whose properties are walked."""
        return inspect.isclass(tp) and issubclass(tp, BaseModel)

    @classmethod
    def is_keyword(cls, tp: Any) -> bool:
        """Strings and sequences of strings are queried on their keyword sub-field."""
        tp = cls.unwrap_optional(tp)
        if cls.is_sequence(tp):
            tp = cls.element_type(tp)
        return cls.get_kind(tp) == cls.STRING

    @classmethod
    def get_kind(cls, tp: Any) -> str:
        """
        Get the normalized kind of a declared type.

        Args:
            tp: Declared type (``Optional`` wrapping is removed first)

        Returns:
            One of the kind constants of this class
        """
        tp = cls.unwrap_optional(tp)

        if cls.is_sequence(tp):
            return cls.SEQUENCE
        if not inspect.isclass(tp):
            return cls.UNKNOWN
        # bool is a subclass of int, check it first
        if issubclass(tp, bool):
            return cls.BOOLEAN
        if issubclass(tp, Enum):
            if issubclass(tp, str):
                return cls.STRING
            return cls.INTEGER if issubclass(tp, int) else cls.UNKNOWN
        if issubclass(tp, str):
            return cls.STRING
        if issubclass(tp, int):
            return cls.INTEGER
        if issubclass(tp, Decimal):
            return cls.DECIMAL
        if issubclass(tp, float):
            return cls.FLOATING
        if issubclass(tp, (date, datetime)):
            return cls.DATE
        if issubclass(tp, BaseModel):
            return cls.OBJECT
        return cls.UNKNOWN

    @classmethod
    def get_elasticsearch_type(cls, tp: Any) -> Optional[str]:
        """
        Get the Elasticsearch field type for a declared type.

        Sequences map to the type of their elements.
        """
        tp = cls.unwrap_optional(tp)
        if cls.is_sequence(tp):
            tp = cls.element_type(tp)
        return cls.ELASTICSEARCH_TYPE_MAP.get(cls.get_kind(tp))

    @staticmethod
    def to_field_value(value: Any) -> Any:
        """
        Convert a filter value to the engine's native representation.

        Strings, integers, floats and booleans pass through; decimals become
        floats, enums their value, dates ISO strings, anything else its
        string form.
        """
        if isinstance(value, Enum):
            value = value.value
        if value is None or isinstance(value, (str, bool, int, float)):
            return value
        if isinstance(value, Decimal):
            return float(value)
        if isinstance(value, (date, datetime)):
            return value.isoformat()
        return str(value)

    @classmethod
    def to_field_values(cls, values: Any) -> List[Any]:
        return [cls.to_field_value(value) for value in values]


def split_path(path: str) -> Tuple[str, ...]:
    """Split a dotted path, ignoring empty segments."""
    return tuple(segment for segment in path.split(".") if segment.strip())
