"""Access to the packaged bulk-import stored procedure."""

from __future__ import annotations

from importlib import resources

from docdb_import.exceptions import ScriptResourceError

BULK_IMPORT_ID = "BulkImportSprocV1"
BULK_IMPORT_RESOURCE = "BulkImportScript.js"


def load_bulk_import_body(resource: str = BULK_IMPORT_RESOURCE) -> str:
    """Read the procedure source, normalising every line ending to ``\\n``."""
    try:
        text = resources.files("docdb_import").joinpath("resources").joinpath(resource).read_text(encoding="utf-8")
    except OSError as exc:
        raise ScriptResourceError(f"Cannot read packaged script {resource!r}: {exc}") from exc
    return "".join(line + "\n" for line in text.splitlines())
