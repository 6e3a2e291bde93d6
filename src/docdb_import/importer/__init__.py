"""
Importer — chunked, retried writes through the bulk-import stored procedure.

Public surface
--------------
- :class:`BulkImporter` — resolves target resources and runs the submission loop.
- :class:`Document` — JSON document with an optional ``id``.
- :func:`build_chunk` / :func:`iter_chunks` — payload-bounded chunking.
"""

from docdb_import.importer.bulk_import import BulkImporter, ImportResult, parse_committed_count
from docdb_import.importer.chunking import build_chunk, iter_chunks
from docdb_import.importer.documents import (
    Document,
    add_id_if_missing,
    as_document,
    partition_key_of,
    set_partition_key,
)
from docdb_import.importer.script import BULK_IMPORT_ID, load_bulk_import_body

__all__ = [
    "BULK_IMPORT_ID",
    "BulkImporter",
    "Document",
    "ImportResult",
    "add_id_if_missing",
    "as_document",
    "build_chunk",
    "iter_chunks",
    "partition_key_of",
    "set_partition_key",
    "load_bulk_import_body",
    "parse_committed_count",
]
