"""Abstract base class for document-store backends.

Adding a new backend only requires subclassing :class:`DocumentStoreBase`
and implementing the four abstract methods.  Backends must translate
their SDK errors into :mod:`docdb_import.exceptions` store errors so the
retry layer can classify them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from docdb_import.store.models import (
    CollectionDefinition,
    QuerySpec,
    ResourceKind,
    StoredProcedureDefinition,
)


class DocumentStoreBase(ABC):
    """Backend-agnostic document-store interface.

    Parameters
    ----------
    user_agent_suffix:
        Diagnostic suffix the backend attaches to outgoing requests.
    """

    def __init__(self, user_agent_suffix: str = "") -> None:
        self.user_agent_suffix = user_agent_suffix

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def query_resources(
        self,
        kind: ResourceKind,
        query: QuerySpec,
        *,
        parent_link: str | None = None,
    ) -> list[dict[str, Any]]:
        """Return every resource of *kind* under *parent_link* matching *query*.

        Each payload **must** contain at least ``"id"`` and ``"_self"``.
        Databases have no parent; collections live under a database link
        and stored procedures under a collection link.
        """
        ...

    @abstractmethod
    def create_collection(
        self,
        database_link: str,
        definition: CollectionDefinition,
        *,
        offer_type: str | None = None,
    ) -> dict[str, Any]:
        """Create a collection and return its payload.

        Raises :class:`~docdb_import.exceptions.ResourceExistsError` when a
        collection with the same id already exists.
        """
        ...

    @abstractmethod
    def create_stored_procedure(
        self,
        collection_link: str,
        definition: StoredProcedureDefinition,
    ) -> dict[str, Any]:
        """Register a stored procedure and return its payload."""
        ...

    @abstractmethod
    def execute_stored_procedure(self, procedure_link: str, args: list[Any], *, partition_key: Any) -> str:
        """Run a stored procedure with positional *args* inside one logical partition.

        Returns the raw response body.
        """
        ...

    # -- optional overrides ---------------------------------------------------

    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable.  Optional."""
        raise NotImplementedError(f"{type(self).__name__} does not support health checks")
