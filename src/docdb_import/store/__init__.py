"""
Store — the remote document store behind a narrow interface.

Public surface
--------------
- :class:`DocumentStoreBase` — abstract backend (subclass for other stores).
- :class:`CosmosDocumentStore` — default Azure Cosmos DB backend.
- :class:`Resource`, :class:`QuerySpec`, :class:`IndexingPolicy`, … — resource models.
"""

from docdb_import.store.base import DocumentStoreBase
from docdb_import.store.models import (
    CollectionDefinition,
    IndexingPath,
    IndexingPolicy,
    QuerySpec,
    Resource,
    ResourceKind,
    StoredProcedureDefinition,
)

__all__ = [
    "CollectionDefinition",
    "CosmosDocumentStore",
    "DocumentStoreBase",
    "IndexingPath",
    "IndexingPolicy",
    "QuerySpec",
    "Resource",
    "ResourceKind",
    "StoredProcedureDefinition",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import CosmosDocumentStore to avoid pulling in azure-cosmos at import time."""
    if name == "CosmosDocumentStore":
        from docdb_import.store.cosmos_store import CosmosDocumentStore

        return CosmosDocumentStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
