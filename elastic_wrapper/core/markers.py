"""
Declarative per-property configuration.

Markers are attached to model fields through ``typing.Annotated``::

    class Order(ElasticEntity):
        status: Annotated[str, ElasticAggregate()]
        lines: List[OrderLine] = []

    class OrderFilters(BaseModel):
        sku: Annotated[Optional[str], NestedField("lines.sku")] = None
        page_token: Annotated[Optional[str], IgnoreOnQuery()] = None

Entity markers can also be supplied at registration time as a mapping
keyed by property path (see ``SchemaIntrospector``).
"""

from dataclasses import dataclass
from typing import Any, Iterable, Optional, Type, TypeVar

DEFAULT_ORDER_KEY = "_key"

M = TypeVar("M")


@dataclass(frozen=True)
class ElasticAggregate:
    """
    Mark an entity property as an aggregation target.

    Attributes:
        group_by: Optional property path whose terms sub-divide each bucket
        order: Key the buckets are ordered by, ascending (default: the term itself)
    """

    group_by: Optional[str] = None
    order: str = DEFAULT_ORDER_KEY


@dataclass(frozen=True)
class NestedField:
    """Map a filter property onto an entity property path (e.g. ``lines.sku``)."""

    name: str


@dataclass(frozen=True)
class IgnoreOnQuery:
    """Exclude a filter property from query compilation."""


def find_marker(metadata: Iterable[Any], marker_type: Type[M]) -> Optional[M]:
    """Return the first marker of ``marker_type`` in a field's metadata."""
    for item in metadata:
        if isinstance(item, marker_type):
            return item
    return None
