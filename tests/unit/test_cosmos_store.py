"""Unit tests for the Cosmos DB backend, with the SDK client mocked out."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from azure.core.exceptions import ServiceRequestError
from azure.cosmos import PartitionKey, exceptions

from docdb_import.exceptions import (
    ConfigurationError,
    FatalStoreError,
    RateLimitedError,
    ResourceExistsError,
    ResourceNotFoundError,
    TransientStoreError,
)
from docdb_import.store.cosmos_store import CosmosDocumentStore, offer_throughput, translate_error
from docdb_import.store.models import (
    CollectionDefinition,
    IndexingPolicy,
    QuerySpec,
    ResourceKind,
    StoredProcedureDefinition,
)


def _http_error(status: int, headers: dict | None = None) -> exceptions.CosmosHttpResponseError:
    err = exceptions.CosmosHttpResponseError(status_code=status, message=f"status {status}")
    err.headers = headers or {}
    return err


@pytest.fixture()
def client() -> MagicMock:
    return MagicMock()


@pytest.fixture()
def store(client: MagicMock) -> CosmosDocumentStore:
    return CosmosDocumentStore(client=client)


def _scripts(client: MagicMock) -> MagicMock:
    return client.get_database_client.return_value.get_container_client.return_value.scripts


# ── error translation ──────────────────────────────────────────────────


class TestTranslateError:
    def test_throttle_carries_retry_after(self) -> None:
        err = translate_error(_http_error(429, {"x-ms-retry-after-ms": "250"}))
        assert isinstance(err, RateLimitedError)
        assert err.retry_after == pytest.approx(0.25)

    def test_throttle_without_header_defaults_to_one_second(self) -> None:
        err = translate_error(_http_error(429))
        assert isinstance(err, RateLimitedError)
        assert err.retry_after == 1.0

    @pytest.mark.parametrize("status", [408, 410, 449, 500, 503])
    def test_transient_statuses(self, status: int) -> None:
        err = translate_error(_http_error(status))
        assert type(err) is TransientStoreError
        assert err.status_code == status

    def test_conflict(self) -> None:
        assert isinstance(translate_error(_http_error(409)), ResourceExistsError)

    def test_not_found(self) -> None:
        assert isinstance(translate_error(_http_error(404)), ResourceNotFoundError)

    @pytest.mark.parametrize("status", [400, 401, 403, 413])
    def test_fatal_statuses(self, status: int) -> None:
        err = translate_error(_http_error(status))
        assert type(err) is FatalStoreError

    def test_network_error_is_transient(self) -> None:
        assert isinstance(translate_error(ServiceRequestError("connection reset")), TransientStoreError)

    def test_client_timeout_is_transient(self) -> None:
        assert type(translate_error(exceptions.CosmosClientTimeoutError())) is TransientStoreError


class TestOfferThroughput:
    @pytest.mark.parametrize(
        ("offer", "expected"), [("S1", 400), ("s2", 1000), ("S3", 2500), ("400", 400), ("1200", 1200)]
    )
    def test_known_offers(self, offer: str, expected: int) -> None:
        assert offer_throughput(offer) == expected

    def test_no_offer(self) -> None:
        assert offer_throughput(None) is None
        assert offer_throughput("") is None

    def test_every_tier_meets_the_service_minimum(self) -> None:
        assert all(offer_throughput(tier) >= 400 for tier in ("S1", "S2", "S3"))

    def test_throughput_below_minimum_is_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="minimum"):
            offer_throughput("250")

    def test_unknown_offer(self) -> None:
        with pytest.raises(ConfigurationError, match="Unsupported offer"):
            offer_throughput("gold")


# ── CosmosDocumentStore ────────────────────────────────────────────────


class TestCosmosDocumentStore:
    def test_user_agent_suffix_is_passed_to_client(self) -> None:
        with patch("docdb_import.store.cosmos_store.CosmosClient") as cosmos_client:
            store = CosmosDocumentStore("https://acct/", "key", user_agent_suffix="worker-7")
        cosmos_client.assert_called_once_with("https://acct/", credential="key", user_agent_suffix="worker-7")
        assert store.user_agent_suffix == "worker-7"

    def test_query_databases(self, store, client) -> None:
        client.query_databases.return_value = iter([{"id": "bulkimport", "_self": "dbs/xyz/"}])
        result = store.query_resources(ResourceKind.DATABASE, QuerySpec.by_id("bulkimport"))

        assert result == [{"id": "bulkimport", "_self": "bulkimport"}]
        client.query_databases.assert_called_once_with(
            query="SELECT * FROM root r WHERE r.id=@id",
            parameters=[{"name": "@id", "value": "bulkimport"}],
        )

    def test_query_collections_under_database(self, store, client) -> None:
        database = client.get_database_client.return_value
        database.query_containers.return_value = [{"id": "events"}]
        result = store.query_resources(
            ResourceKind.COLLECTION, QuerySpec.by_id("events"), parent_link="bulkimport"
        )

        client.get_database_client.assert_called_with("bulkimport")
        assert result == [{"id": "events", "_self": "bulkimport/events"}]

    def test_query_stored_procedures_under_collection(self, store, client) -> None:
        _scripts(client).query_stored_procedures.return_value = [{"id": "BulkImportSprocV1"}]
        result = store.query_resources(
            ResourceKind.STORED_PROCEDURE, QuerySpec.by_id("BulkImportSprocV1"), parent_link="bulkimport/events"
        )

        client.get_database_client.return_value.get_container_client.assert_called_with("events")
        assert result[0]["_self"] == "bulkimport/events/BulkImportSprocV1"

    def test_query_without_parent_is_rejected(self, store) -> None:
        with pytest.raises(ValueError, match="database link"):
            store.query_resources(ResourceKind.COLLECTION, QuerySpec.by_id("events"))

    def test_query_errors_are_translated(self, store, client) -> None:
        client.query_databases.side_effect = _http_error(503)
        with pytest.raises(TransientStoreError) as excinfo:
            store.query_resources(ResourceKind.DATABASE, QuerySpec.by_id("bulkimport"))
        assert isinstance(excinfo.value.__cause__, exceptions.CosmosHttpResponseError)

    def test_create_collection(self, store, client) -> None:
        database = client.get_database_client.return_value
        database.create_container.return_value.read.return_value = {"id": "events"}
        definition = CollectionDefinition(
            id="events",
            partition_key_path="/tenant",
            indexing_policy=IndexingPolicy.from_range_indexes(["/ts/?"]),
        )

        result = store.create_collection("bulkimport", definition, offer_type="S2")

        assert result == {"id": "events", "_self": "bulkimport/events"}
        kwargs = database.create_container.call_args.kwargs
        assert kwargs["id"] == "events"
        assert kwargs["offer_throughput"] == 1000
        assert isinstance(kwargs["partition_key"], PartitionKey)
        assert kwargs["partition_key"]["paths"] == ["/tenant"]
        paths = kwargs["indexing_policy"]["includedPaths"]
        assert paths[0]["path"] == "/ts/?"
        assert {ix["kind"] for ix in paths[0]["indexes"]} == {"Range"}
        assert paths[-1] == {"path": "/*"}

    def test_create_collection_without_policy_or_offer(self, store, client) -> None:
        database = client.get_database_client.return_value
        database.create_container.return_value.read.return_value = {"id": "events"}
        store.create_collection("bulkimport", CollectionDefinition(id="events", partition_key_path="/tenant"))

        kwargs = database.create_container.call_args.kwargs
        assert "indexing_policy" not in kwargs
        assert "offer_throughput" not in kwargs

    def test_create_collection_conflict(self, store, client) -> None:
        client.get_database_client.return_value.create_container.side_effect = _http_error(409)
        with pytest.raises(ResourceExistsError):
            store.create_collection("bulkimport", CollectionDefinition(id="events", partition_key_path="/tenant"))

    def test_create_stored_procedure(self, store, client) -> None:
        _scripts(client).create_stored_procedure.return_value = {"id": "BulkImportSprocV1", "body": "..."}
        result = store.create_stored_procedure(
            "bulkimport/events", StoredProcedureDefinition(id="BulkImportSprocV1", body="function f() {}\n")
        )

        _scripts(client).create_stored_procedure.assert_called_once_with(
            body={"id": "BulkImportSprocV1", "body": "function f() {}\n"}
        )
        assert result["_self"] == "bulkimport/events/BulkImportSprocV1"

    def test_execute_stored_procedure_returns_decimal_string(self, store, client) -> None:
        _scripts(client).execute_stored_procedure.return_value = 30
        body = store.execute_stored_procedure(
            "bulkimport/events/BulkImportSprocV1", [['{"id":"a"}'], True], partition_key="acme"
        )

        assert body == "30"
        _scripts(client).execute_stored_procedure.assert_called_once_with(
            "BulkImportSprocV1", params=[['{"id":"a"}'], True], partition_key="acme"
        )

    @pytest.mark.parametrize("partition_key", ["t-1", 42, True])
    def test_execute_always_targets_the_given_partition(self, store, client, partition_key) -> None:
        _scripts(client).execute_stored_procedure.return_value = "5"
        assert store.execute_stored_procedure("db/coll/sp", [[], False], partition_key=partition_key) == "5"
        assert _scripts(client).execute_stored_procedure.call_args.kwargs["partition_key"] == partition_key

    def test_execute_client_timeout_is_transient(self, store, client) -> None:
        _scripts(client).execute_stored_procedure.side_effect = exceptions.CosmosClientTimeoutError()
        with pytest.raises(TransientStoreError) as excinfo:
            store.execute_stored_procedure("db/coll/sp", [[], True], partition_key="p")
        assert isinstance(excinfo.value.__cause__, exceptions.CosmosClientTimeoutError)

    def test_below_minimum_offer_fails_before_create(self, store, client) -> None:
        with pytest.raises(ConfigurationError):
            store.create_collection(
                "bulkimport", CollectionDefinition(id="events", partition_key_path="/tenant"), offer_type="100"
            )
        client.get_database_client.return_value.create_container.assert_not_called()

    def test_execute_throttle_is_translated(self, store, client) -> None:
        _scripts(client).execute_stored_procedure.side_effect = _http_error(429, {"x-ms-retry-after-ms": "1500"})
        with pytest.raises(RateLimitedError) as excinfo:
            store.execute_stored_procedure("bulkimport/events/BulkImportSprocV1", [[], True], partition_key="p")
        assert excinfo.value.retry_after == pytest.approx(1.5)

    def test_health_check(self, store, client) -> None:
        client.list_databases.return_value = []
        assert store.health_check() is True
        client.list_databases.side_effect = ServiceRequestError("down")
        assert store.health_check() is False


# ── BulkImporter over the Cosmos backend ───────────────────────────────


def test_import_runs_every_chunk_inside_its_partition(client) -> None:
    from docdb_import.importer import BulkImporter
    from docdb_import.retry import BackoffRetryPolicy

    database = client.get_database_client.return_value
    client.query_databases.return_value = [{"id": "bulkimport"}]
    database.query_containers.return_value = []
    database.create_container.return_value.read.return_value = {"id": "events"}
    _scripts(client).query_stored_procedures.return_value = []
    _scripts(client).create_stored_procedure.return_value = {"id": "BulkImportSprocV1"}
    _scripts(client).execute_stored_procedure.side_effect = lambda sproc, params, partition_key: str(
        len(params[0])
    )

    importer = BulkImporter(
        CosmosDocumentStore(client=client),
        database_name="bulkimport",
        collection_name="events",
        range_indexes=[],
        partition_key_path="/partitionKey",
        partition_key_value="shared",
        retry_policy_factory=BackoffRetryPolicy.factory(sleep=lambda _: None),
    )
    result = importer.import_documents([{"id": "a"}, {"id": "b"}, {"id": "c", "partitionKey": "other"}])

    assert database.create_container.call_args.kwargs["partition_key"]["paths"] == ["/partitionKey"]
    calls = _scripts(client).execute_stored_procedure.call_args_list
    assert [c.kwargs["partition_key"] for c in calls] == ["shared", "other"]
    assert [len(c.kwargs["params"][0]) for c in calls] == [2, 1]
    assert result.documents == 3
