"""Size- and count-bounded chunking of serialized documents."""

from __future__ import annotations

from collections.abc import Iterator, Sequence

from docdb_import.config import settings


def build_chunk(
    serialized: Sequence[str],
    start: int,
    max_script_size: int = settings.max_script_size,
    max_docs: int = settings.max_script_docs,
) -> list[str]:
    """Collect the next chunk of *serialized* documents beginning at *start*.

    Documents are taken while the size budget is positive, the chunk
    holds fewer than *max_docs* entries, and input remains.  A document
    that does not fit the remaining budget ends the chunk, unless it is
    the first one: an oversized document therefore travels alone, and
    every other chunk stays within *max_script_size*.

    Parameters
    ----------
    serialized:
        JSON strings of the full document sequence.
    start:
        Offset of the first document not yet committed.
    max_script_size:
        Character budget of one procedure payload.
    max_docs:
        Maximum number of documents per chunk.

    Returns
    -------
    list[str]
        The chunk, empty only when *start* is past the end.
    """
    if max_script_size <= 0 or max_docs <= 0:
        raise ValueError("chunk limits must be positive")

    chunk: list[str] = []
    remaining = max_script_size
    i = start
    while remaining > 0 and len(chunk) < max_docs and i < len(serialized):
        doc = serialized[i]
        if chunk and len(doc) > remaining:
            break
        chunk.append(doc)
        remaining -= len(doc)
        i += 1
    return chunk


def iter_chunks(
    serialized: Sequence[str],
    max_script_size: int = settings.max_script_size,
    max_docs: int = settings.max_script_docs,
) -> Iterator[list[str]]:
    """Partition *serialized* into consecutive chunks, assuming full commits."""
    start = 0
    while start < len(serialized):
        chunk = build_chunk(serialized, start, max_script_size, max_docs)
        yield chunk
        start += len(chunk)
