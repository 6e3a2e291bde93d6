"""Azure Cosmos DB implementation of the document-store abstraction."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, TypeVar

from azure.core.exceptions import ServiceRequestError, ServiceResponseError
from azure.cosmos import CosmosClient, PartitionKey, exceptions

from docdb_import.config import settings
from docdb_import.exceptions import (
    ConfigurationError,
    FatalStoreError,
    RateLimitedError,
    ResourceExistsError,
    ResourceNotFoundError,
    StoreError,
    TransientStoreError,
)
from docdb_import.store.base import DocumentStoreBase
from docdb_import.store.models import (
    CollectionDefinition,
    IndexingPolicy,
    QuerySpec,
    ResourceKind,
    StoredProcedureDefinition,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Legacy DocumentDB performance tiers, in RU/s. S1 (250 RU/s) is raised to
# the provisioned-throughput minimum.
MIN_THROUGHPUT = 400
OFFER_TIERS = {"S1": MIN_THROUGHPUT, "S2": 1000, "S3": 2500}

TRANSIENT_STATUS_CODES = frozenset({408, 410, 449, 500, 502, 503, 504})

RETRY_AFTER_HEADER = "x-ms-retry-after-ms"


def offer_throughput(offer_type: str | None) -> int | None:
    """Translate a tier name or numeric string into provisioned RU/s."""
    if not offer_type:
        return None
    tier = offer_type.strip().upper()
    if tier in OFFER_TIERS:
        return OFFER_TIERS[tier]
    if tier.isdigit():
        throughput = int(tier)
        if throughput < MIN_THROUGHPUT:
            raise ConfigurationError(
                f"Offer of {throughput} RU/s is below the {MIN_THROUGHPUT} RU/s minimum"
            )
        return throughput
    raise ConfigurationError(f"Unsupported offer type: {offer_type!r}")


def _indexing_policy_payload(policy: IndexingPolicy | None) -> dict[str, Any] | None:
    """Convert an :class:`IndexingPolicy` to the Cosmos wire format."""
    if policy is None:
        return None
    included: list[dict[str, Any]] = []
    for p in policy.included_paths:
        if p.index_type is None:
            # Cosmos spells the catch-all path "/*".
            included.append({"path": "/*" if p.path == "/" else p.path})
            continue
        included.append(
            {
                "path": p.path,
                "indexes": [
                    {"kind": p.index_type, "dataType": "String", "precision": -1},
                    {"kind": p.index_type, "dataType": "Number", "precision": -1},
                ],
            }
        )
    return {"indexingMode": "consistent", "automatic": True, "includedPaths": included}


def translate_error(exc: Exception) -> StoreError:
    """Map an azure SDK exception onto the importer's error taxonomy."""
    if isinstance(exc, (ServiceRequestError, ServiceResponseError, exceptions.CosmosClientTimeoutError)):
        return TransientStoreError(str(exc))
    if not isinstance(exc, exceptions.CosmosHttpResponseError):
        return FatalStoreError(str(exc))

    status = exc.status_code
    message = getattr(exc, "http_error_message", None) or str(exc)
    if status == 429:
        headers = exc.headers or {}
        retry_after_ms = headers.get(RETRY_AFTER_HEADER)
        retry_after = float(retry_after_ms) / 1000 if retry_after_ms else 1.0
        return RateLimitedError(message, retry_after=retry_after, status_code=status)
    if status in TRANSIENT_STATUS_CODES:
        return TransientStoreError(message, status_code=status)
    if status == 409:
        return ResourceExistsError(message, status_code=status)
    if status == 404:
        return ResourceNotFoundError(message, status_code=status)
    return FatalStoreError(message, status_code=status)


class CosmosDocumentStore(DocumentStoreBase):
    """Cosmos-backed document store.

    Links are name based: ``"<db>"``, ``"<db>/<coll>"`` and
    ``"<db>/<coll>/<sproc>"``.

    Parameters
    ----------
    endpoint:
        Account endpoint URL.
    key:
        Account master key.
    user_agent_suffix:
        Suffix appended to the SDK user agent.
    client:
        Pre-built :class:`CosmosClient`; mainly for tests.
    """

    def __init__(
        self,
        endpoint: str = settings.cosmos_endpoint,
        key: str = settings.cosmos_key,
        *,
        user_agent_suffix: str = settings.user_agent_suffix,
        client: CosmosClient | None = None,
    ) -> None:
        super().__init__(user_agent_suffix)
        if client is None:
            client = CosmosClient(endpoint, credential=key, user_agent_suffix=user_agent_suffix)
        self._client = client

    # -- helpers --------------------------------------------------------------

    @staticmethod
    def _call(fn: Callable[[], T]) -> T:
        try:
            return fn()
        except (
            exceptions.CosmosHttpResponseError,
            exceptions.CosmosClientTimeoutError,
            ServiceRequestError,
            ServiceResponseError,
        ) as exc:
            raise translate_error(exc) from exc

    def _container(self, collection_link: str):
        database_id, collection_id = collection_link.split("/")[:2]
        return self._client.get_database_client(database_id).get_container_client(collection_id)

    @staticmethod
    def _with_link(payload: dict[str, Any], parent_link: str | None) -> dict[str, Any]:
        record = dict(payload)
        record["_self"] = f"{parent_link}/{payload['id']}" if parent_link else payload["id"]
        return record

    # -- DocumentStoreBase overrides ------------------------------------------

    def query_resources(
        self,
        kind: ResourceKind,
        query: QuerySpec,
        *,
        parent_link: str | None = None,
    ) -> list[dict[str, Any]]:
        params = query.parameters_as_dicts()
        if kind is ResourceKind.DATABASE:
            feed = lambda: list(self._client.query_databases(query=query.query, parameters=params))  # noqa: E731
        elif kind is ResourceKind.COLLECTION:
            if parent_link is None:
                raise ValueError("collection queries need a database link")
            database = self._client.get_database_client(parent_link)
            feed = lambda: list(database.query_containers(query=query.query, parameters=params))  # noqa: E731
        elif kind is ResourceKind.STORED_PROCEDURE:
            if parent_link is None:
                raise ValueError("stored procedure queries need a collection link")
            scripts = self._container(parent_link).scripts
            feed = lambda: list(scripts.query_stored_procedures(query=query.query, parameters=params))  # noqa: E731
        else:
            raise ValueError(f"Unsupported resource kind: {kind!r}")

        return [self._with_link(item, parent_link) for item in self._call(feed)]

    def create_collection(
        self,
        database_link: str,
        definition: CollectionDefinition,
        *,
        offer_type: str | None = None,
    ) -> dict[str, Any]:
        database = self._client.get_database_client(database_link)
        kwargs: dict[str, Any] = {
            "id": definition.id,
            "partition_key": PartitionKey(path=definition.partition_key_path),
        }
        indexing = _indexing_policy_payload(definition.indexing_policy)
        if indexing is not None:
            kwargs["indexing_policy"] = indexing
        throughput = offer_throughput(offer_type)
        if throughput is not None:
            kwargs["offer_throughput"] = throughput

        logger.info("Creating collection %r in %r (offer=%s)", definition.id, database_link, throughput)
        container = self._call(lambda: database.create_container(**kwargs))
        payload = self._call(container.read)
        return self._with_link(payload, database_link)

    def create_stored_procedure(
        self,
        collection_link: str,
        definition: StoredProcedureDefinition,
    ) -> dict[str, Any]:
        scripts = self._container(collection_link).scripts
        logger.info("Registering stored procedure %r on %r", definition.id, collection_link)
        payload = self._call(
            lambda: scripts.create_stored_procedure(body={"id": definition.id, "body": definition.body})
        )
        return self._with_link(payload, collection_link)

    def execute_stored_procedure(self, procedure_link: str, args: list[Any], *, partition_key: Any) -> str:
        database_id, collection_id, sproc_id = procedure_link.split("/")[:3]
        scripts = self._container(f"{database_id}/{collection_id}").scripts
        result = self._call(
            lambda: scripts.execute_stored_procedure(sproc_id, params=args, partition_key=partition_key)
        )
        return result if isinstance(result, str) else json.dumps(result)

    def health_check(self) -> bool:
        try:
            self._call(lambda: list(self._client.list_databases(max_item_count=1)))
            return True
        except StoreError:
            logger.warning("Cosmos health-check failed", exc_info=True)
            return False
