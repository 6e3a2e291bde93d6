"""Document model, id back-fill and partition-key access."""

from __future__ import annotations

import json
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from docdb_import.exceptions import InvalidDocumentError

PARTITION_KEY_TYPES = (str, int, float, bool)


class Document(BaseModel):
    """An opaque JSON document with an optional ``id``.

    Any field besides ``id`` is kept as-is and serialized back out.
    Numeric ids are stored as their string form.
    """

    model_config = ConfigDict(extra="allow")

    id: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _numeric_id_as_str(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    def serialize(self) -> str:
        """Compact JSON form sent to the store."""
        return self.model_dump_json()


def as_document(obj: Document | dict[str, Any]) -> Document:
    """Coerce a mapping into a :class:`Document`; pass documents through.

    Raises
    ------
    InvalidDocumentError
        When *obj* is not a mapping or its ``id`` is not a string or number.
    """
    if isinstance(obj, Document):
        return obj
    try:
        return Document.model_validate(obj)
    except ValidationError as exc:
        raise InvalidDocumentError(f"Not a valid document: {exc}") from exc


def add_id_if_missing(doc: Document) -> Document:
    """Assign a fresh UUID4 string when *doc* has no ``id``."""
    if doc.id is None:
        doc.id = str(uuid4())
    return doc


def _path_parts(path: str) -> list[str]:
    parts = [p for p in path.strip("/").split("/") if p]
    if not parts:
        raise InvalidDocumentError(f"Invalid partition key path: {path!r}")
    return parts


def partition_key_of(doc: Document, path: str) -> Any:
    """Return the value found at *path* (e.g. ``"/tenant/id"``), or ``None``.

    Raises
    ------
    InvalidDocumentError
        When the value is an object or array, which cannot key a partition.
    """
    node: Any = doc.model_dump()
    for part in _path_parts(path):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    if node is not None and not isinstance(node, PARTITION_KEY_TYPES):
        raise InvalidDocumentError(
            f"Document {doc.id!r} has a non-scalar partition key at {path}: {node!r}"
        )
    return node


def set_partition_key(doc: Document, path: str, value: Any) -> Document:
    """Return a copy of *doc* with *value* written at *path*."""
    *parents, leaf = _path_parts(path)
    data = doc.model_dump()
    node = data
    for part in parents:
        child = node.get(part)
        if not isinstance(child, dict):
            child = node[part] = {}
        node = child
    node[leaf] = value
    return Document.model_validate(data)


def partition_group_key(value: Any) -> str:
    """Hashable key separating values that compare equal across types (``1`` vs ``True``)."""
    return json.dumps(value)
