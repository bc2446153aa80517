"""
Example: an order repository against a local Elasticsearch.

Connection settings are read from the environment (or a .env file):

    ELASTIC_URI=http://localhost:9200
    ELASTIC_INDEX=orders
"""

import asyncio
import json
import logging
from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import BaseModel

from elastic_wrapper import (
    ElasticAggregate,
    ElasticBaseRepository,
    ElasticDocument,
    ElasticEntity,
    ElasticOptions,
    NestedField,
    Paging,
    RangeFilter,
)
from elastic_wrapper.core.errors import ElasticWrapperError

logging.basicConfig(level=logging.INFO)


class OrderLine(ElasticDocument):
    sku: Annotated[str, ElasticAggregate()]
    quantity: int = 1
    unit_price: Decimal = Decimal("0")


class Order(ElasticEntity):
    customer: str
    status: Annotated[str, ElasticAggregate(order="_count")]
    total: Annotated[Decimal, ElasticAggregate()] = Decimal("0")
    paid: bool = False
    lines: List[OrderLine] = []


class OrderFilters(BaseModel):
    customer: Optional[str] = None
    status: Optional[List[str]] = None
    total: Optional[RangeFilter] = None
    sku: Annotated[Optional[str], NestedField("lines.sku")] = None


class OrderRepository(ElasticBaseRepository[Order, OrderFilters]):
    def __init__(self, options: ElasticOptions):
        super().__init__(options, Order)


def sample_orders() -> List[Order]:
    return [
        Order(
            customer="ann",
            status="paid",
            total=Decimal("42.50"),
            paid=True,
            lines=[OrderLine(sku="A1", quantity=2, unit_price=Decimal("21.25"))],
        ),
        Order(
            customer="bob",
            status="open",
            total=Decimal("7.00"),
            lines=[
                OrderLine(sku="B2", unit_price=Decimal("3.00")),
                OrderLine(sku="A1", unit_price=Decimal("4.00")),
            ],
        ),
    ]


async def main():
    options = ElasticOptions.from_env(index="orders")
    repository = OrderRepository(options)

    try:
        print("\n=== Index ===")
        if not await repository.index_exists():
            await repository.create_index()
        print(json.dumps(await repository.health(), indent=2))

        print("\n=== Bulk insert ===")
        await repository.bulk_insert(sample_orders())

        filters = OrderFilters(sku="A1", total=RangeFilter(min=5))
        print("\n=== Query ===")
        print(json.dumps(repository.request_builder.get_query(filters), indent=2))

        result = await repository.search(filters, Paging(sort_by="total", descending=True))
        print(f"Found {result.total_hits} orders")
        for order in result.documents:
            print(f"  {order.customer}: {order.total} ({order.status})")

        print("\n=== Aggregations ===")
        for aggregate in await repository.get_aggregations(filters):
            if aggregate.options:
                buckets = ", ".join(f"{o.key}={o.count}" for o in aggregate.options)
                print(f"  {aggregate.key}: {buckets}")
            else:
                print(f"  {aggregate.key}: {aggregate.value}")
    except ElasticWrapperError as e:
        print(f"❌ Error: {e}")
    finally:
        await repository.close()


if __name__ == "__main__":
    asyncio.run(main())
