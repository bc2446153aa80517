"""
Resilient repository over an Elasticsearch index.

Executes CRUD, search, aggregation and chunked bulk operations for one
entity model. Every engine call that reads or writes documents goes through
the retry executor.
"""

import asyncio
import logging
from datetime import timedelta
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    Iterable,
    List,
    Mapping,
    Optional,
    Type,
    TypeVar,
    Union,
)

from elasticsearch import ApiError, AsyncElasticsearch, TransportError
from pydantic import BaseModel

from elastic_wrapper.core.errors import (
    ElasticAggregateError,
    ElasticBulkError,
    ElasticConfigurationError,
    ElasticOperationError,
    ElasticWrapperError,
    error_reason,
)
from elastic_wrapper.core.interfaces import IElasticEntity, IRetryExecutor
from elastic_wrapper.core.markers import ElasticAggregate
from elastic_wrapper.core.models import AggregateResult, Paging, SearchResult
from elastic_wrapper.core.options import ElasticOptions
from elastic_wrapper.execution.client_provider import ElasticClientProvider
from elastic_wrapper.execution.retry import DEFAULT_MAX_ATTEMPTS, RetryExecutor
from elastic_wrapper.query.aggregations import decode_aggregations
from elastic_wrapper.query.request_builder import ElasticRequestBuilder

logger = logging.getLogger(__name__)

TEntity = TypeVar("TEntity", bound=BaseModel)
TFilters = TypeVar("TFilters", bound=BaseModel)
T = TypeVar("T")

SUCCESS_STATUS = (200, 201)
ACCEPTED_ERROR_STATUS = (400, 413)

DEFAULT_REFRESH_INTERVAL = "1s"
DISABLED_REFRESH_INTERVAL = "-1"

MATCH_EVERYTHING = {"query_string": {"query": "*"}}


class ElasticBaseRepository(Generic[TEntity, TFilters]):
    """
    Data access for one entity model and its filter model.

    Single-document calls route by the stringified identifier, so a
    document and the calls addressing it always land on the same shard.
    """

    BULK_CHUNK_SIZE = 50_000
    LIST_ELEMENTS_SIZE = 10_000
    MAX_DOCUMENTS_DEFAULT = 2147483647

    def __init__(
        self,
        options: ElasticOptions,
        entity_type: Type[TEntity],
        client: Optional[AsyncElasticsearch] = None,
        request_builder: Optional[ElasticRequestBuilder] = None,
        nb_retries_call: int = DEFAULT_MAX_ATTEMPTS,
        retry_executor: Optional[IRetryExecutor] = None,
        aggregates: Optional[Mapping[str, ElasticAggregate]] = None,
    ):
        """
        Initialize repository.

        Args:
            options: Index and connection options
            entity_type: Pydantic model of the stored documents
            client: Async client; built from ``options`` when omitted
            request_builder: Request builder; built from ``entity_type`` when omitted
            nb_retries_call: Attempts per engine call
            retry_executor: Executor overriding the default linear backoff
            aggregates: Aggregation configuration keyed by property path

        Raises:
            ElasticConfigurationError: If options are missing or the entity
                schema is misconfigured
        """
        if options is None:
            raise ElasticConfigurationError("Repository options are required")

        self.options = options
        self.entity_type = entity_type
        self.nb_retries_call = nb_retries_call

        self.request_builder = request_builder or ElasticRequestBuilder(
            entity_type, options, aggregates=aggregates
        )
        self.retry_executor: IRetryExecutor = retry_executor or RetryExecutor(
            max_attempts=nb_retries_call
        )
        self.client = client if client is not None else ElasticClientProvider(options).get_client()

    # ------------------------------------------------------------------
    # Cluster and index
    # ------------------------------------------------------------------

    async def health(self, index_name: Optional[str] = None) -> Dict[str, Any]:
        response = await self._once(
            lambda: self.client.cluster.health(index=index_name or self.options.index)
        )
        return response.body

    async def index_exists(self, index_name: Optional[str] = None) -> bool:
        response = await self._once(
            lambda: self.client.indices.exists(index=index_name or self.options.index)
        )
        return bool(response)

    async def create_index(self) -> bool:
        """
        Create the index, or the first index behind a rollover alias.

        With a rollover alias, the lifecycle policy (named after the entity)
        and the index template ``<pattern>-*`` are created when the alias
        does not exist yet, then ``<pattern>-000001`` is created as the
        alias's write index.

        Returns:
            True if an index was created, False if it already existed
        """
        mappings = self.request_builder.build_mappings()
        settings = {"max_inner_result_window": self.options.max_inner_result_window}

        if not self.options.use_roll_over_alias:
            response = await self._once(
                lambda: self.client.indices.create(
                    index=self.options.index, settings=settings, mappings=mappings
                )
            )
            logger.info("Created index '%s'", self.options.index)
            return bool(response.body.get("acknowledged", False))

        alias_name = self.options.index
        pattern = self.options.pattern or self.options.index

        if not await self.index_exists(alias_name):
            await self._ensure_lifecycle_policy()
            await self._once(
                lambda: self.client.indices.put_index_template(
                    name=pattern,
                    index_patterns=[f"{pattern}-*"],
                    template={
                        "settings": {
                            "index.lifecycle.name": self._lifecycle_policy_name,
                            "index.lifecycle.rollover_alias": alias_name,
                        },
                        "mappings": mappings,
                    },
                )
            )
            logger.info("Put index template '%s' for '%s-*'", pattern, pattern)

        first_index = f"{pattern}-000001"
        if await self.index_exists(first_index):
            logger.info("Rollover index '%s' already exists", first_index)
            return False

        response = await self._once(
            lambda: self.client.indices.create(
                index=first_index,
                settings=settings,
                aliases={alias_name: {"is_write_index": True}},
            )
        )
        logger.info("Created rollover index '%s' behind alias '%s'", first_index, alias_name)
        return bool(response.body.get("acknowledged", False))

    async def index_size(self) -> Optional[float]:
        """Primary store size of the index in bytes."""
        stats = await self.index_stats()
        if not stats:
            return None
        return stats.get("store", {}).get("size_in_bytes")

    async def index_stats(self) -> Optional[Dict[str, Any]]:
        """Statistics of the primary shards of the index."""
        response = await self._once(lambda: self.client.indices.stats(index=self.options.index))
        return response.body.get("_all", {}).get("primaries")

    async def delete_index(self) -> None:
        """
        Delete every document and the index itself.

        For a rollover alias, all member indices are emptied in parallel,
        then deleted in parallel, then the alias is removed.
        """
        lenient = self.client.options(ignore_status=404)

        if self.options.use_roll_over_alias:
            alias_name = self.options.index

            if await self.index_exists(alias_name):
                response = await self._once(lambda: lenient.indices.get_alias(name=alias_name))
                indices = list(response.body.keys())

                await asyncio.gather(
                    *(
                        self._once(lambda index=index: lenient.delete_by_query(index=index, query=MATCH_EVERYTHING))
                        for index in indices
                    )
                )
                await asyncio.gather(
                    *(
                        self._once(lambda index=index: lenient.indices.delete(index=index))
                        for index in indices
                    )
                )
                await self._once(lambda: lenient.indices.delete_alias(index="_all", name=alias_name))

                logger.info("Deleted alias '%s' and indices %s", alias_name, indices)
                return

        index_name = self.options.index
        await self._once(lambda: lenient.delete_by_query(index=index_name, query=MATCH_EVERYTHING))
        await self._once(lambda: lenient.indices.delete(index=index_name))
        logger.info("Deleted index '%s'", index_name)

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    async def exists(self, id: Any) -> bool:
        key = str(id)
        response = await self._call(
            lambda: self.client.exists(index=self.options.index, id=key, routing=key)
        )
        return bool(response)

    async def count(self, filters: Optional[TFilters]) -> int:
        query = self.request_builder.get_query(filters)
        response = await self._call(
            lambda: self.client.count(index=self.options.index, query=query)
        )
        return int(response.body["count"])

    async def any(self, filters: Optional[TFilters]) -> bool:
        return await self.count(filters) > 0

    async def search(
        self, filters: Optional[TFilters], paging: Optional[Paging] = None
    ) -> SearchResult:
        """
        Search documents matching a filter.

        Args:
            filters: Filter instance, None for all documents
            paging: Offset, size and sort

        Returns:
            Total hit count and the page of typed documents
        """
        request = self.request_builder.build_search_request(filters, paging)
        response = await self._call(
            lambda: self.client.search(index=self.options.index, **request)
        )
        return self._to_search_result(response.body)

    async def list_elements(self, filters: Optional[TFilters]) -> SearchResult:
        """Search with the largest page the default result window allows."""
        return await self.search(filters, Paging(size=self.LIST_ELEMENTS_SIZE))

    async def get_aggregations(self, filters: Optional[TFilters]) -> List[AggregateResult]:
        """
        Aggregate the documents matching a filter.

        Returns:
            Flattened aggregation results, buckets in engine order
        """
        request = self.request_builder.build_aggregate_request(filters)
        response = await self._call(
            lambda: self.client.search(index=self.options.index, **request)
        )
        return decode_aggregations(response.body.get("aggregations"))

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def get(self, id: Any) -> Optional[TEntity]:
        """Get a document by identifier, None when it does not exist."""
        key = str(id)
        response = await self._call(
            lambda: self.client.options(ignore_status=404).get(
                index=self.options.index, id=key, routing=key
            )
        )
        body = response.body
        if response.meta.status == 404 or not body.get("found"):
            return None
        return self.entity_type.model_validate(body["_source"])

    async def insert(self, entity: TEntity) -> None:
        key = self._entity_id(entity)
        document = self._to_document(entity)
        await self._call(
            lambda: self.client.index(
                index=self.options.index, id=key, document=document, routing=key
            )
        )

    async def update(
        self, id: Any, entity: TEntity, index_name: Optional[str] = None
    ) -> None:
        """
        Replace the fields of a document with those of ``entity``.

        Args:
            id: Document identifier
            entity: New document content
            index_name: Physical index holding the document (needed behind
                a rollover alias, where the write index may have moved on)
        """
        key = str(id)
        document = self._to_document(entity)
        await self._call(
            lambda: self.client.update(
                index=index_name or self.options.index, id=key, doc=document, routing=key
            )
        )

    async def update_partial(self, id: Any, partial: Union[BaseModel, Mapping[str, Any]]) -> None:
        """Update only the fields present in ``partial``."""
        key = str(id)
        if isinstance(partial, BaseModel):
            document = partial.model_dump(mode="json", by_alias=True, exclude_unset=True)
        else:
            document = dict(partial)
        await self._call(
            lambda: self.client.update(index=self.options.index, id=key, doc=document, routing=key)
        )

    async def delete(self, id: Any) -> None:
        """Delete a document; nothing is sent when it does not exist."""
        if not await self.exists(id):
            return

        key = str(id)
        await self._call(
            lambda: self.client.delete(index=self.options.index, id=key, routing=key)
        )

    # ------------------------------------------------------------------
    # Bulk
    # ------------------------------------------------------------------

    async def bulk_insert(self, entities: Iterable[TEntity]) -> None:
        """
        Index documents in chunks of ``BULK_CHUNK_SIZE``.

        Raises:
            ElasticAggregateError: If some chunks still failed after retries
        """
        await self._bulk_chunks(list(entities), self._index_actions)

    async def bulk_update(self, entities: Iterable[TEntity]) -> None:
        """
        Update documents in chunks of ``BULK_CHUNK_SIZE``.

        Raises:
            ElasticAggregateError: If some chunks still failed after retries
        """
        await self._bulk_chunks(list(entities), self._update_actions)

    async def bulk_delete(self, ids: Iterable[Any]) -> None:
        """
        Delete documents in a single bulk request.

        Unlike inserts and updates, deletes are neither chunked nor retried
        item by item.
        """
        keys = [str(id) for id in ids]
        if not keys:
            return

        operations = [{"delete": {"_id": key, "routing": key}} for key in keys]
        response = await self._call(
            lambda: self.client.bulk(index=self.options.index, operations=operations)
        )

        body = response.body
        if body.get("errors"):
            failed = [item for item in self._bulk_items(body) if item.get("error")]
            raise ElasticBulkError(
                self._bulk_reason(body, failed, len(keys)),
                [str(item.get("_id")) for item in failed],
            )

    # ------------------------------------------------------------------
    # Utils
    # ------------------------------------------------------------------

    async def delete_duplicates(self) -> None:
        raise NotImplementedError("Duplicate detection is not implemented")

    async def edit_refresh_interval(
        self,
        index_name: str,
        interval: Union[str, timedelta, None] = None,
    ) -> None:
        """
        Set the refresh interval of an index.

        Args:
            index_name: Index to update
            interval: Interval such as ``"1s"``, a timedelta, or ``"-1"`` to
                disable refreshes (default: 1 second)
        """
        value = self._format_interval(interval)
        await self._call(
            lambda: self.client.indices.put_settings(
                index=index_name, settings={"index": {"refresh_interval": value}}
            )
        )
        logger.debug("Refresh interval of '%s' set to %s", index_name, value)

    async def disable_refresh_interval(self, index_name: str) -> None:
        await self.edit_refresh_interval(index_name, DISABLED_REFRESH_INTERVAL)

    async def close(self) -> None:
        await self.client.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _call(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run an engine call through the retry executor."""
        return await self.retry_executor.execute(lambda: self._once(operation))

    async def _once(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run an engine call once, translating client errors."""
        try:
            return await operation()
        except ApiError as exc:
            raise ElasticOperationError(
                error_reason(exc.body, str(exc)), status=exc.meta.status
            ) from exc
        except TransportError as exc:
            raise ElasticOperationError(str(exc)) from exc

    async def _bulk_chunks(
        self,
        entities: List[TEntity],
        build_actions: Callable[[List[TEntity]], List[Dict[str, Any]]],
    ) -> None:
        """
        Submit entities chunk by chunk with refreshes suspended.

        Chunks run sequentially. A chunk failing after retries is recorded
        and the next chunk proceeds; all recorded failures are raised
        together once every chunk was attempted.
        """
        if not entities:
            return

        index_name = self.options.index
        errors: List[str] = []

        await self.disable_refresh_interval(index_name)
        try:
            for start in range(0, len(entities), self.BULK_CHUNK_SIZE):
                chunk = entities[start:start + self.BULK_CHUNK_SIZE]
                try:
                    response = await self._bulk_chunk(chunk, build_actions)
                except ElasticWrapperError as exc:
                    logger.error(
                        "Bulk chunk at offset %d (%d documents) failed: %s", start, len(chunk), exc
                    )
                    errors.append(str(exc))
                    continue

                if response.meta.status != 200:
                    errors.append(
                        error_reason(response.body, f"Bulk request returned status {response.meta.status}")
                    )
                else:
                    logger.info("Bulk chunk at offset %d: %d documents", start, len(chunk))
        finally:
            await self.edit_refresh_interval(index_name, DEFAULT_REFRESH_INTERVAL)

        if errors:
            raise ElasticAggregateError(errors)

    async def _bulk_chunk(
        self,
        chunk: List[TEntity],
        build_actions: Callable[[List[TEntity]], List[Dict[str, Any]]],
    ) -> Any:
        """Submit one chunk; a retry only resubmits the entities that failed."""
        processing = chunk
        client = self.client.options(ignore_status=list(ACCEPTED_ERROR_STATUS))

        async def submit() -> Any:
            nonlocal processing

            response = await client.bulk(index=self.options.index, operations=build_actions(processing))
            status = response.meta.status
            body = response.body

            failed = [item for item in self._bulk_items(body) if item.get("status") not in SUCCESS_STATUS]
            if failed:
                failed_ids = {str(item.get("_id")) for item in failed}
                processing = [entity for entity in processing if self._entity_id(entity) in failed_ids]
                raise ElasticBulkError(self._bulk_reason(body, failed, len(body.get("items", []))), failed_ids, status)

            if status in ACCEPTED_ERROR_STATUS:
                logger.warning(
                    "Bulk request returned %d: %s",
                    status,
                    error_reason(body, f"status {status}"),
                )
            elif status != 200:
                raise ElasticOperationError(error_reason(body, f"Bulk request returned status {status}"), status)

            return response

        return await self._call(submit)

    def _index_actions(self, entities: List[TEntity]) -> List[Dict[str, Any]]:
        operations: List[Dict[str, Any]] = []
        for entity in entities:
            key = self._entity_id(entity)
            operations.append({"index": {"_id": key, "routing": key}})
            operations.append(self._to_document(entity))
        return operations

    def _update_actions(self, entities: List[TEntity]) -> List[Dict[str, Any]]:
        operations: List[Dict[str, Any]] = []
        for entity in entities:
            key = self._entity_id(entity)
            operations.append({"update": {"_id": key, "routing": key}})
            operations.append({"doc": self._to_document(entity)})
        return operations

    @staticmethod
    def _bulk_items(body: Mapping[str, Any]) -> List[Dict[str, Any]]:
        """Per-item results of a bulk response, without the action wrapper."""
        return [next(iter(item.values())) for item in body.get("items", []) if item]

    @staticmethod
    def _bulk_reason(body: Mapping[str, Any], failed: List[Dict[str, Any]], total: int) -> str:
        reason = error_reason(body, "")
        if not reason and failed:
            reason = error_reason({"error": failed[0].get("error")}, f"status {failed[0].get('status')}")
        return f"{len(failed)} of {total} bulk items failed: {reason}"

    def _to_search_result(self, body: Mapping[str, Any]) -> SearchResult:
        hits = body.get("hits", {})
        total = hits.get("total", 0)
        if isinstance(total, dict):
            total = total.get("value", 0)

        documents = []
        versions: Dict[str, int] = {}
        for hit in hits.get("hits", []):
            if "_source" in hit:
                documents.append(self.entity_type.model_validate(hit["_source"]))
            if "_version" in hit:
                versions[str(hit["_id"])] = hit["_version"]

        return SearchResult(total_hits=total, documents=documents, versions=versions)

    @staticmethod
    def _entity_id(entity: Any) -> str:
        if not isinstance(entity, IElasticEntity) or entity.id is None:
            raise ElasticConfigurationError(
                f"{type(entity).__name__} does not expose an 'id' identifier"
            )
        return str(entity.id)

    @staticmethod
    def _to_document(entity: BaseModel) -> Dict[str, Any]:
        return entity.model_dump(mode="json", by_alias=True)

    @staticmethod
    def _format_interval(interval: Union[str, timedelta, None]) -> str:
        if interval is None:
            return DEFAULT_REFRESH_INTERVAL
        if isinstance(interval, timedelta):
            if interval < timedelta(0):
                return DISABLED_REFRESH_INTERVAL
            return f"{int(interval.total_seconds() * 1000)}ms"
        return interval

    @property
    def _lifecycle_policy_name(self) -> str:
        return self.entity_type.__name__.lower()

    async def _ensure_lifecycle_policy(self) -> None:
        name = self._lifecycle_policy_name
        response = await self._once(
            lambda: self.client.options(ignore_status=404).ilm.get_lifecycle(name=name)
        )
        if response.meta.status != 404:
            return

        await self._once(
            lambda: self.client.ilm.put_lifecycle(
                name=name,
                policy={
                    "phases": {
                        "hot": {
                            "actions": {
                                "rollover": {
                                    "max_docs": self.options.max_documents or self.MAX_DOCUMENTS_DEFAULT,
                                    "max_size": f"{self.options.max_size_gb}gb",
                                }
                            }
                        }
                    }
                },
            )
        )
        logger.info("Created lifecycle policy '%s'", name)
