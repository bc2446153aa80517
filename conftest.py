"""
Shared fixtures: sample entity models and an in-memory stand-in for
``AsyncElasticsearch`` that records every call it receives.
"""

import inspect
from decimal import Decimal
from typing import Annotated, Any, Callable, Dict, List, Optional, Tuple

import pytest
from pydantic import BaseModel

from elastic_wrapper import (
    ElasticAggregate,
    ElasticDocument,
    ElasticEntity,
    ElasticOptions,
    IgnoreOnQuery,
    NestedField,
    RangeFilter,
)
from elastic_wrapper.execution.retry import RetryExecutor


# ---------------------------------------------------------------------------
# Sample models
# ---------------------------------------------------------------------------


class OrderLine(ElasticDocument):
    sku: Annotated[str, ElasticAggregate()]
    quantity: int = 1
    warehouse: Optional[str] = None


class Order(ElasticEntity):
    customer: str
    status: Annotated[str, ElasticAggregate(order="_count")]
    total: Annotated[Decimal, ElasticAggregate()] = Decimal("0")
    paid: Annotated[bool, ElasticAggregate()] = False
    tags: List[str] = []
    lines: List[OrderLine] = []


class OrderFilters(BaseModel):
    customer: Optional[str] = None
    status: Optional[List[str]] = None
    total: Optional[RangeFilter] = None
    paid: Optional[bool] = None
    sku: Annotated[Optional[str], NestedField("lines.sku")] = None
    warehouse: Annotated[Optional[str], NestedField("lines.warehouse")] = None
    page_token: Annotated[Optional[str], IgnoreOnQuery()] = None


# ---------------------------------------------------------------------------
# Fake client
# ---------------------------------------------------------------------------


class FakeMeta:
    def __init__(self, status: int):
        self.status = status


class FakeResponse:
    """Mimics ``ObjectApiResponse`` / ``HeadApiResponse``."""

    def __init__(self, body: Any = None, status: int = 200):
        self.body = body if body is not None else {}
        self.meta = FakeMeta(status)

    def __bool__(self) -> bool:
        return 200 <= self.meta.status < 300

    def __getitem__(self, key: str) -> Any:
        return self.body[key]


class FakeNamespace:
    """Namespaced API (``indices``, ``cluster``, ``ilm``) recording into its client."""

    def __init__(self, client: "FakeElasticClient", prefix: str):
        self._client = client
        self._prefix = prefix

    def __getattr__(self, name: str) -> Callable[..., Any]:
        return self._client._endpoint(f"{self._prefix}.{name}")


class FakeElasticClient:
    """
    Records ``(endpoint, kwargs)`` for every call.

    Responses are scripted per endpoint with ``respond``: a response, an
    exception instance, or a callable receiving the call kwargs (it may
    return an awaitable). Unscripted endpoints answer an empty 200 response.
    """

    def __init__(self):
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.responders: Dict[str, Any] = {}
        self.closed = False
        self.indices = FakeNamespace(self, "indices")
        self.cluster = FakeNamespace(self, "cluster")
        self.ilm = FakeNamespace(self, "ilm")

    def options(self, **_kwargs: Any) -> "FakeElasticClient":
        return self

    def respond(self, endpoint: str, responder: Any) -> None:
        self.responders[endpoint] = responder

    def calls_to(self, endpoint: str) -> List[Dict[str, Any]]:
        return [kwargs for name, kwargs in self.calls if name == endpoint]

    def endpoints(self) -> List[str]:
        return [name for name, _ in self.calls]

    def _endpoint(self, endpoint: str) -> Callable[..., Any]:
        async def call(**kwargs: Any) -> Any:
            self.calls.append((endpoint, kwargs))
            responder = self.responders.get(endpoint)
            if responder is None:
                return FakeResponse()
            if isinstance(responder, BaseException):
                raise responder
            if callable(responder):
                result = responder(**kwargs)
                if inspect.isawaitable(result):
                    result = await result
                if isinstance(result, BaseException):
                    raise result
                return result
            return responder

        return call

    def __getattr__(self, name: str) -> Callable[..., Any]:
        if name.startswith("_"):
            raise AttributeError(name)
        return self._endpoint(name)

    async def close(self) -> None:
        self.closed = True


def bulk_success(**kwargs: Any) -> FakeResponse:
    """Bulk responder acknowledging every action."""
    items = []
    for action in kwargs["operations"]:
        if len(action) != 1:
            continue
        op_type, meta = next(iter(action.items()))
        if op_type in ("index", "update", "delete") and isinstance(meta, dict) and "_id" in meta:
            items.append({op_type: {"_id": meta["_id"], "status": 201 if op_type == "index" else 200}})
    return FakeResponse({"errors": False, "items": items})


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_client() -> FakeElasticClient:
    return FakeElasticClient()


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def retry_executor(sleeps: List[float]) -> RetryExecutor:
    async def record_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return RetryExecutor(max_attempts=5, sleep=record_sleep)


@pytest.fixture
def options() -> ElasticOptions:
    return ElasticOptions(uri="http://localhost:9200", index="orders")


@pytest.fixture
def rollover_options() -> ElasticOptions:
    return ElasticOptions(
        uri="http://localhost:9200",
        index="orders",
        use_roll_over_alias=True,
        pattern="orders-data",
    )
