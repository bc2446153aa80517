"""
Compiled query tree.

Each node renders itself to Elasticsearch query DSL with ``to_dsl()``.
Trees are built per call and never cached.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class QueryNode(BaseModel, ABC):
    """Base of every compiled query node."""

    model_config = ConfigDict(frozen=True)

    @abstractmethod
    def to_dsl(self) -> Dict[str, Any]:
        ...


class TermQuery(QueryNode):
    """Exact value match."""

    field: str
    value: Any

    def to_dsl(self) -> Dict[str, Any]:
        return {"term": {self.field: {"value": self.value}}}


class TermsQuery(QueryNode):
    """Match any of several exact values."""

    field: str
    values: List[Any]

    def to_dsl(self) -> Dict[str, Any]:
        return {"terms": {self.field: list(self.values)}}


class RangeQuery(QueryNode):
    """Numeric range, exclusive on both bounds."""

    field: str
    gt: Optional[float] = None
    lt: Optional[float] = None

    def to_dsl(self) -> Dict[str, Any]:
        bounds: Dict[str, Any] = {}
        if self.gt is not None:
            bounds["gt"] = self.gt
        if self.lt is not None:
            bounds["lt"] = self.lt
        return {"range": {self.field: bounds}}


class TextMatchQuery(QueryNode):
    """Wildcard text match against an analyzed field."""

    field: str
    pattern: str

    def to_dsl(self) -> Dict[str, Any]:
        return {"query_string": {"default_field": self.field, "query": self.pattern}}


class BoolQuery(QueryNode):
    """Boolean combination of mandatory and optional clauses."""

    must: List[QueryNode] = Field(default_factory=list)
    should: List[QueryNode] = Field(default_factory=list)

    def to_dsl(self) -> Dict[str, Any]:
        return {
            "bool": {
                "must": [query.to_dsl() for query in self.must],
                "should": [query.to_dsl() for query in self.should],
            }
        }


class NestedQuery(QueryNode):
    """Query scoped to the sub-objects under ``path``."""

    path: str
    query: QueryNode
    inner_hits_size: Optional[int] = None

    def to_dsl(self) -> Dict[str, Any]:
        nested: Dict[str, Any] = {"path": self.path, "query": self.query.to_dsl()}
        if self.inner_hits_size is not None:
            nested["inner_hits"] = {"size": self.inner_hits_size}
        return {"nested": nested}
