"""Resource models exchanged with the document store."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

ID_QUERY = "SELECT * FROM root r WHERE r.id=@id"


class ResourceKind(str, Enum):
    """Server-side resource types the importer looks up."""

    DATABASE = "database"
    COLLECTION = "collection"
    STORED_PROCEDURE = "stored_procedure"


class QueryParameter(BaseModel):
    name: str
    value: Any = None


class QuerySpec(BaseModel):
    """Parameterised SQL query against a resource feed."""

    query: str
    parameters: list[QueryParameter] = Field(default_factory=list)

    @classmethod
    def by_id(cls, resource_id: str) -> QuerySpec:
        """Point query matching ``r.id`` exactly."""
        return cls(query=ID_QUERY, parameters=[QueryParameter(name="@id", value=resource_id)])

    def parameters_as_dicts(self) -> list[dict[str, Any]]:
        return [p.model_dump() for p in self.parameters]


class IndexingPath(BaseModel):
    """One included path of an indexing policy.

    ``index_type`` is ``None`` for the catch-all default path, which the
    store indexes with its own defaults.
    """

    path: str
    index_type: Literal["Range", "Hash"] | None = None


class IndexingPolicy(BaseModel):
    included_paths: list[IndexingPath] = Field(default_factory=list)

    @classmethod
    def from_range_indexes(cls, paths: list[str] | None) -> IndexingPolicy | None:
        """Range-index every entry of *paths*, plus the default ``/`` path.

        Returns ``None`` when *paths* is empty so the store default applies.
        """
        if not paths:
            return None
        included = [IndexingPath(path=p, index_type="Range") for p in paths]
        included.append(IndexingPath(path="/"))
        return cls(included_paths=included)


class CollectionDefinition(BaseModel):
    id: str
    partition_key_path: str
    indexing_policy: IndexingPolicy | None = None


class StoredProcedureDefinition(BaseModel):
    id: str
    body: str


class Resource(BaseModel):
    """Handle to a server-side resource.

    ``self_link`` is the backend-specific address used to reach the
    resource in later calls (``_self`` in store payloads).
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    self_link: str = Field(alias="_self")

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Resource:
        return cls.model_validate(payload)
