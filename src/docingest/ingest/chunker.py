"""Fixed-window character chunker with exact overlap.

Chunk *k* starts at ``k * (max_chunk_size - overlap)`` and spans up to
``max_chunk_size`` characters. Emission stops at the first chunk that reaches
the end of the text, so consecutive chunks share exactly ``overlap``
characters, the last chunk ends at ``len(text)`` and no chunk is empty.
Offsets index into the original string; chunk text is never stripped.

    text = "AAAABBBBCCCC", max_chunk_size=6, overlap=2
    [0, 6)  "AAAABB"
    [4, 10) "BBCCCC"
    [8, 12) "CCCC"
"""

from __future__ import annotations

from docingest.db.models import Chunk
from docingest.errors import InternalInvariantViolation


def _check_policy(max_chunk_size: int, overlap: int) -> None:
    if max_chunk_size < 2:
        raise ValueError("max_chunk_size must be >= 2")
    if not 0 < overlap < max_chunk_size:
        raise ValueError("overlap must satisfy 0 < overlap < max_chunk_size")


def chunk_text(text: str, max_chunk_size: int, overlap: int, document_id: str = "") -> list[Chunk]:
    """Split *text* into overlapping chunks.

    Args:
        text: Parsed document text; must be non-empty.
        max_chunk_size: Maximum characters per chunk.
        overlap: Characters shared by consecutive chunks.
        document_id: Owning record id, copied onto every chunk.

    Returns:
        Chunks with contiguous zero-based indices covering ``[0, len(text))``.

    Raises:
        ValueError: The size/overlap policy is invalid.
        InternalInvariantViolation: *text* is empty.
    """
    _check_policy(max_chunk_size, overlap)
    if not text:
        raise InternalInvariantViolation("chunker received empty text")

    length = len(text)
    step = max_chunk_size - overlap
    chunks: list[Chunk] = []
    start = 0

    while True:
        end = min(start + max_chunk_size, length)
        chunks.append(
            Chunk(
                document_id=document_id,
                index=len(chunks),
                text=text[start:end],
                start_offset=start,
                end_offset=end,
            )
        )
        if end >= length:
            break
        start += step

    return chunks


def merge_chunks(chunks: list[Chunk]) -> str:
    """Rebuild the source text by dropping each chunk's overlap with its predecessor."""
    if not chunks:
        return ""
    parts = [chunks[0].text]
    covered = chunks[0].end_offset
    for chunk in chunks[1:]:
        if chunk.start_offset > covered:
            raise InternalInvariantViolation(
                f"gap before chunk {chunk.index}: [{covered}, {chunk.start_offset}) is uncovered"
            )
        parts.append(chunk.text[covered - chunk.start_offset:])
        covered = max(covered, chunk.end_offset)
    return "".join(parts)


class TextChunker:
    """A validated chunking policy.

    Holding the policy in one object lets the orchestrator fail at
    construction time on bad configuration instead of mid-pipeline.
    """

    def __init__(self, max_chunk_size: int = 1_000, overlap: int = 200) -> None:
        _check_policy(max_chunk_size, overlap)
        self.max_chunk_size = max_chunk_size
        self.overlap = overlap

    def chunk(self, text: str, document_id: str = "") -> list[Chunk]:
        """Split *text* for *document_id* under this policy."""
        return chunk_text(text, self.max_chunk_size, self.overlap, document_id=document_id)

    def expected_count(self, length: int) -> int:
        """Number of chunks a text of *length* characters produces."""
        if length <= 0:
            return 0
        if length <= self.max_chunk_size:
            return 1
        step = self.max_chunk_size - self.overlap
        return -(-(length - self.overlap) // step)
