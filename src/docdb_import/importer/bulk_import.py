"""Bulk import orchestrator — resolve target resources, then stream chunks.

Usage::

    from docdb_import.importer import BulkImporter
    from docdb_import.store import CosmosDocumentStore

    importer = BulkImporter(CosmosDocumentStore(), collection_name="events")
    result = importer.import_documents(records)
    print(result.documents, "documents in", result.chunks, "chunks")

The cursor into the document sequence advances by the count the stored
procedure reports as committed, never by the number of documents sent:
the procedure stops early when it runs out of its server-side time
budget, and the remainder is resubmitted in the next chunk.

Documents are grouped by partition-key value first; each procedure call
writes inside the single logical partition it is called for.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Callable

from pydantic import BaseModel

from docdb_import.config import settings
from docdb_import.exceptions import (
    BulkImportError,
    ChunkSubmissionError,
    CommittedCountError,
    ConfigurationError,
    InvalidDocumentError,
    ResourceExistsError,
    ResourceResolutionError,
    ZeroProgressError,
)
from docdb_import.importer.chunking import build_chunk
from docdb_import.importer.documents import (
    Document,
    add_id_if_missing,
    as_document,
    partition_group_key,
    partition_key_of,
    set_partition_key,
)
from docdb_import.importer.script import BULK_IMPORT_ID, load_bulk_import_body
from docdb_import.retry import BackoffRetryPolicy, execute_with_retry
from docdb_import.store.base import DocumentStoreBase
from docdb_import.store.models import (
    CollectionDefinition,
    IndexingPolicy,
    QuerySpec,
    Resource,
    ResourceKind,
    StoredProcedureDefinition,
)

logger = logging.getLogger(__name__)


class ImportResult(BaseModel):
    """Totals of a successful import run."""

    documents: int
    chunks: int
    partitions: int
    collection_id: str
    procedure_id: str


def parse_committed_count(response: Any, requested: int) -> int:
    """Parse the procedure response as the number of committed documents.

    Raises
    ------
    CommittedCountError
        The body is not a decimal integer, or claims more than *requested*.
    ZeroProgressError
        The call succeeded but nothing was committed.
    """
    text = str(response).strip()
    if not (text.isascii() and text.isdecimal()):
        raise CommittedCountError(f"Stored procedure returned a non-numeric count: {response!r}")
    committed = int(text)
    if committed == 0:
        raise ZeroProgressError(f"Stored procedure committed 0 of {requested} document(s)")
    if committed > requested:
        raise CommittedCountError(
            f"Stored procedure reported {committed} committed but only {requested} were sent"
        )
    return committed


class BulkImporter:
    """Writes a document sequence into one collection via a stored procedure.

    Parameters
    ----------
    store:
        Backend used for every remote call.
    database_name:
        Existing database holding the target collection.
    collection_name:
        Target collection; created when absent.
    range_indexes:
        Field paths to range-index when the collection is created.
    offer_type:
        Service tier for a newly created collection.
    partition_key_path:
        Partition key path of a newly created collection, and where each
        document's partition value is read from.
    partition_key_value:
        Value written at *partition_key_path* into documents lacking one.
    upsert:
        Replace documents with matching ids instead of failing on them.
    max_script_size:
        Character budget of a single procedure payload.
    max_script_docs:
        Maximum documents per procedure call.
    retry_policy_factory:
        Zero-arg callable returning a fresh :class:`BackoffRetryPolicy`;
        called once per remote operation.
    """

    def __init__(
        self,
        store: DocumentStoreBase,
        *,
        database_name: str = settings.database_name,
        collection_name: str = settings.collection_name,
        range_indexes: list[str] | None = None,
        offer_type: str | None = settings.offer_type,
        partition_key_path: str = settings.partition_key_path,
        partition_key_value: str | None = settings.partition_key_value,
        upsert: bool = settings.upsert,
        max_script_size: int = settings.max_script_size,
        max_script_docs: int = settings.max_script_docs,
        retry_policy_factory: Callable[[], BackoffRetryPolicy] | None = None,
    ) -> None:
        if max_script_size <= 0 or max_script_docs <= 0:
            raise ConfigurationError("max_script_size and max_script_docs must be positive")
        if not partition_key_path.startswith("/") or not partition_key_path.strip("/"):
            raise ConfigurationError(f"Invalid partition key path: {partition_key_path!r}")
        self._store = store
        self.database_name = database_name
        self.collection_name = collection_name
        self.range_indexes = list(settings.range_indexes if range_indexes is None else range_indexes)
        self.offer_type = offer_type
        self.partition_key_path = partition_key_path
        self.partition_key_value = partition_key_value
        self.upsert = upsert
        self.max_script_size = max_script_size
        self.max_script_docs = max_script_docs
        self._new_policy = retry_policy_factory or BackoffRetryPolicy

        self._collection: Resource | None = None
        self._procedure: Resource | None = None

    # -- resource resolution --------------------------------------------------

    def _find_one(self, kind: ResourceKind, resource_id: str, parent_link: str | None) -> Resource | None:
        payloads = execute_with_retry(
            lambda: self._store.query_resources(kind, QuerySpec.by_id(resource_id), parent_link=parent_link),
            self._new_policy(),
            description=f"lookup of {kind.value} {resource_id!r}",
        )
        if not payloads:
            return None
        if len(payloads) > 1:
            logger.warning("%d %s resources named %r; using the first", len(payloads), kind.value, resource_id)
        return Resource.from_payload(payloads[0])

    def _create_or_fetch(
        self,
        kind: ResourceKind,
        resource_id: str,
        parent_link: str,
        create: Callable[[], dict[str, Any]],
    ) -> Resource:
        try:
            created = execute_with_retry(
                create, self._new_policy(), description=f"creation of {kind.value} {resource_id!r}"
            )
        except ResourceExistsError as exc:
            # Another worker won the race.
            logger.info("%s %r was created concurrently; fetching it", kind.value, resource_id)
            existing = self._find_one(kind, resource_id, parent_link)
            if existing is None:
                raise ResourceResolutionError(
                    f"{kind.value} {resource_id!r} reported as existing but cannot be found"
                ) from exc
            return existing
        return Resource.from_payload(created)

    def resolve_database(self) -> Resource:
        """Look up the configured database.  The importer never creates one."""
        database = self._find_one(ResourceKind.DATABASE, self.database_name, None)
        if database is None:
            raise ResourceResolutionError(f"Database {self.database_name!r} does not exist")
        return database

    def get_or_create_collection(self, database: Resource) -> Resource:
        """Return the target collection, creating it with the indexing policy if needed."""
        existing = self._find_one(ResourceKind.COLLECTION, self.collection_name, database.self_link)
        if existing is not None:
            return existing

        definition = CollectionDefinition(
            id=self.collection_name,
            partition_key_path=self.partition_key_path,
            indexing_policy=IndexingPolicy.from_range_indexes(self.range_indexes),
        )
        return self._create_or_fetch(
            ResourceKind.COLLECTION,
            self.collection_name,
            database.self_link,
            lambda: self._store.create_collection(database.self_link, definition, offer_type=self.offer_type),
        )

    def get_or_create_bulk_import_procedure(self, collection: Resource) -> Resource:
        """Return the bulk-import procedure, registering the packaged script if needed."""
        existing = self._find_one(ResourceKind.STORED_PROCEDURE, BULK_IMPORT_ID, collection.self_link)
        if existing is not None:
            return existing

        definition = StoredProcedureDefinition(id=BULK_IMPORT_ID, body=load_bulk_import_body())
        return self._create_or_fetch(
            ResourceKind.STORED_PROCEDURE,
            BULK_IMPORT_ID,
            collection.self_link,
            lambda: self._store.create_stored_procedure(collection.self_link, definition),
        )

    def resolve(self) -> tuple[Resource, Resource]:
        """Resolve (once) and return the target collection and procedure.

        Raises
        ------
        ResourceResolutionError
            When any lookup or creation fails for good.
        """
        if self._collection is None or self._procedure is None:
            try:
                database = self.resolve_database()
                collection = self.get_or_create_collection(database)
                procedure = self.get_or_create_bulk_import_procedure(collection)
            except ResourceResolutionError:
                raise
            except BulkImportError as exc:
                raise ResourceResolutionError(
                    f"Cannot prepare {self.database_name}/{self.collection_name}: {exc}"
                ) from exc
            self._collection, self._procedure = collection, procedure
        return self._collection, self._procedure

    # -- submission -----------------------------------------------------------

    def _prepare(self, documents: Iterable[Document | dict[str, Any]]) -> dict[str, tuple[Any, list[str]]]:
        """Back-fill ids and partition values, then group serialized documents by partition.

        Groups keep the order in which their partition first appears, and
        documents keep their input order within a group.
        """
        groups: dict[str, tuple[Any, list[str]]] = {}
        for index, raw in enumerate(documents):
            doc = add_id_if_missing(as_document(raw))
            value = partition_key_of(doc, self.partition_key_path)
            if value is None:
                if self.partition_key_value is None:
                    raise InvalidDocumentError(
                        f"Document {index} ({doc.id!r}) has no value at {self.partition_key_path} "
                        "and no default partition_key_value is configured"
                    )
                doc = set_partition_key(doc, self.partition_key_path, self.partition_key_value)
                value = self.partition_key_value
            key = partition_group_key(value)
            if key not in groups:
                groups[key] = (value, [])
            groups[key][1].append(doc.serialize())
        return groups

    def _submit_chunk(self, procedure: Resource, chunk: list[str], offset: int, partition_key: Any) -> int:
        response = execute_with_retry(
            lambda: self._store.execute_stored_procedure(
                procedure.self_link, [chunk, self.upsert], partition_key=partition_key
            ),
            self._new_policy(),
            description=f"bulk import of chunk at offset {offset}",
        )
        return parse_committed_count(response, len(chunk))

    def import_documents(self, documents: Iterable[Document | dict[str, Any]]) -> ImportResult:
        """Write every document in *documents* to the target collection.

        Documents without an ``id`` get a generated one first, and documents
        without a partition value get the configured default.  A stored
        procedure runs inside one logical partition, so every chunk holds
        documents of a single partition value.  Chunks already committed
        stay committed if a later chunk fails.

        Raises
        ------
        InvalidDocumentError
            A record has an unusable id or partition value.  Nothing is sent.
        ResourceResolutionError
            The collection or procedure could not be prepared.
        ChunkSubmissionError
            A chunk failed for good; ``offset`` tells where to resume.
        """
        groups = self._prepare(documents)
        collection, procedure = self.resolve()

        total = sum(len(serialized) for _, serialized in groups.values())
        logger.info(
            "Importing %d document(s) in %d partition(s) into %r (upsert=%s)",
            total, len(groups), collection.id, self.upsert,
        )

        offset = 0
        chunks = 0
        for partition_key, serialized in groups.values():
            cursor = 0
            while cursor < len(serialized):
                chunk = build_chunk(serialized, cursor, self.max_script_size, self.max_script_docs)
                try:
                    committed = self._submit_chunk(procedure, chunk, offset, partition_key)
                except BulkImportError as exc:
                    logger.error(
                        "Chunk at offset %d (partition %r) failed after %d committed: %s",
                        offset, partition_key, offset, exc,
                    )
                    raise ChunkSubmissionError(
                        f"Chunk at offset {offset} ({len(chunk)} document(s), partition "
                        f"{partition_key!r}) failed: {exc}",
                        offset=offset,
                        chunk_size=len(chunk),
                        committed=offset,
                        partition_key=partition_key,
                    ) from exc
                cursor += committed
                offset += committed
                chunks += 1
                logger.info(
                    "  chunk %d [%r]: committed %d/%d (%d/%d total)",
                    chunks, partition_key, committed, len(chunk), offset, total,
                )

        return ImportResult(
            documents=total,
            chunks=chunks,
            partitions=len(groups),
            collection_id=collection.id,
            procedure_id=procedure.id,
        )
