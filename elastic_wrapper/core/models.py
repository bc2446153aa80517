"""
Shared data models for the elastic wrapper.
"""

from typing import Any, ClassVar, Dict, List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from elastic_wrapper.core.markers import DEFAULT_ORDER_KEY


class ElasticDocument(BaseModel):
    """
    Base for every model stored in the index, including sub-models.

    Fields are serialized with camelCase names, which is the naming the
    query compiler uses for document fields.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ElasticEntity(ElasticDocument):
    """Root document with a stable identifier (``_id`` and routing key)."""

    id: UUID = Field(default_factory=uuid4)


class PropertyDescriptor(BaseModel):
    """Represents a single property of an entity, flattened by dotted path."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    declaring_type: str
    name: str
    full_path: str  # dotted python names from the root, e.g. "lines.sku"
    value_type: Any  # unwrapped declared type (Optional removed)
    nested_path: Optional[str] = None  # parent path, None at root level
    keyword: bool = False  # str or sequence of str
    is_aggregate_target: bool = False
    aggregate_group_by_path: Optional[str] = None
    aggregate_order_key: str = DEFAULT_ORDER_KEY


class RangeFilter(BaseModel):
    """Two-sided numeric range used as a filter property type."""

    min: Optional[float] = None
    max: Optional[float] = None


class Paging(BaseModel):
    """Paging and sorting of a search request."""

    model_config = ConfigDict(populate_by_name=True)

    from_: int = Field(default=0, ge=0, alias="from")
    size: int = Field(default=10, ge=0)
    sort_by: Optional[str] = None
    descending: bool = False


class AggregateOption(BaseModel):
    """One bucket of a bucket aggregation."""

    key: Any
    count: int
    groups: List["AggregateOption"] = Field(default_factory=list)


class AggregateResult(BaseModel):
    """Decoded aggregation: a metric value or an ordered list of buckets."""

    GROUP_BY_KEY: ClassVar[str] = "group_by"

    key: str
    value: Optional[float] = None
    options: List[AggregateOption] = Field(default_factory=list)


class SearchResult(BaseModel):
    """Standardized search result."""

    total_hits: int = 0
    documents: List[Any] = Field(default_factory=list)
    versions: Dict[str, int] = Field(default_factory=dict)
