"""Shared pytest configuration and fixtures."""

from __future__ import annotations

from typing import Any, Callable

import pytest

from docdb_import.exceptions import ResourceExistsError, TransientStoreError
from docdb_import.retry import BackoffRetryPolicy
from docdb_import.store.base import DocumentStoreBase
from docdb_import.store.models import (
    CollectionDefinition,
    QuerySpec,
    ResourceKind,
    StoredProcedureDefinition,
)


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


# ── In-memory document store ───────────────────────────────────────────


class FakeDocumentStore(DocumentStoreBase):
    """In-memory store with scriptable procedure behaviour.

    Parameters
    ----------
    databases:
        Database ids that exist up front.
    commit_plan:
        Per-call caps on how many documents the procedure commits; calls
        beyond the plan commit the whole chunk.
    execute_failures:
        Exceptions raised, in order, by the next procedure calls.
    fail_from_call:
        Once this many calls have succeeded, every further call fails
        with a transient error.
    race_on_create:
        Simulate another worker creating the resource first: the create
        call stores it and then raises ``ResourceExistsError``.
    """

    def __init__(
        self,
        *,
        databases: tuple[str, ...] = ("bulkimport",),
        commit_plan: list[int] | None = None,
        execute_failures: list[Exception] | None = None,
        fail_from_call: int | None = None,
        race_on_create: bool = False,
        response_override: Callable[[list[str]], str] | None = None,
    ) -> None:
        super().__init__("test-agent")
        self.resources: dict[tuple[ResourceKind, str | None], list[dict[str, Any]]] = {}
        for db in databases:
            self._add(ResourceKind.DATABASE, None, db)
        self.commit_plan = list(commit_plan or [])
        self.execute_failures = list(execute_failures or [])
        self.fail_from_call = fail_from_call
        self.race_on_create = race_on_create
        self.response_override = response_override

        self.queries: list[tuple[ResourceKind, str | None]] = []
        self.collection_creates: list[tuple[CollectionDefinition, str | None]] = []
        self.procedure_creates: list[StoredProcedureDefinition] = []
        self.calls: list[list[str]] = []
        self.upsert_flags: list[bool] = []
        self.partition_keys: list[Any] = []
        self.committed: list[str] = []

    def _add(self, kind: ResourceKind, parent: str | None, resource_id: str, **extra: Any) -> dict[str, Any]:
        link = f"{parent}/{resource_id}" if parent else resource_id
        payload = {"id": resource_id, "_self": link, **extra}
        self.resources.setdefault((kind, parent), []).append(payload)
        return payload

    def _create(self, kind: ResourceKind, parent: str, resource_id: str, **extra: Any) -> dict[str, Any]:
        existing = self.query_resources(kind, QuerySpec.by_id(resource_id), parent_link=parent)
        if existing:
            raise ResourceExistsError(f"{resource_id} already exists", status_code=409)
        payload = self._add(kind, parent, resource_id, **extra)
        if self.race_on_create:
            raise ResourceExistsError(f"{resource_id} already exists", status_code=409)
        return payload

    # -- DocumentStoreBase overrides ------------------------------------------

    def query_resources(
        self,
        kind: ResourceKind,
        query: QuerySpec,
        *,
        parent_link: str | None = None,
    ) -> list[dict[str, Any]]:
        self.queries.append((kind, parent_link))
        wanted = query.parameters[0].value
        return [dict(r) for r in self.resources.get((kind, parent_link), []) if r["id"] == wanted]

    def create_collection(
        self,
        database_link: str,
        definition: CollectionDefinition,
        *,
        offer_type: str | None = None,
    ) -> dict[str, Any]:
        self.collection_creates.append((definition, offer_type))
        return self._create(ResourceKind.COLLECTION, database_link, definition.id)

    def create_stored_procedure(
        self,
        collection_link: str,
        definition: StoredProcedureDefinition,
    ) -> dict[str, Any]:
        self.procedure_creates.append(definition)
        return self._create(ResourceKind.STORED_PROCEDURE, collection_link, definition.id, body=definition.body)

    def execute_stored_procedure(self, procedure_link: str, args: list[Any], *, partition_key: Any) -> str:
        if self.execute_failures:
            raise self.execute_failures.pop(0)
        if self.fail_from_call is not None and len(self.calls) >= self.fail_from_call:
            raise TransientStoreError("service unavailable", status_code=503)

        docs, upsert = args
        self.calls.append(list(docs))
        self.upsert_flags.append(upsert)
        self.partition_keys.append(partition_key)
        if self.response_override is not None:
            return self.response_override(docs)
        n = min(self.commit_plan.pop(0), len(docs)) if self.commit_plan else len(docs)
        self.committed.extend(docs[:n])
        return str(n)

    def health_check(self) -> bool:
        return True


# ── Fixtures ────────────────────────────────────────────────────────────


@pytest.fixture()
def sleeps() -> list[float]:
    """Records every backoff sleep instead of blocking."""
    return []


@pytest.fixture()
def policy_factory(sleeps: list[float]) -> Callable[[], BackoffRetryPolicy]:
    return BackoffRetryPolicy.factory(
        max_attempts=3,
        initial_backoff=1.0,
        multiplier=2.0,
        max_backoff=30.0,
        max_total_wait=100.0,
        sleep=sleeps.append,
    )


@pytest.fixture()
def fake_store() -> FakeDocumentStore:
    return FakeDocumentStore()
