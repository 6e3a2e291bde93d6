"""KFP v2 components — each file exports one @dsl.component."""

from pipelines.components.bulk_import import import_documents

__all__ = ["import_documents"]
