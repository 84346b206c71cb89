"""Split long extracted text into overlapping chunks.

Break points are searched backwards from the window end: sentence terminator,
then newline, then space. A break is only taken past 70% of the window,
otherwise the window is cut hard.
"""

from dataclasses import dataclass
from typing import Iterator

DEFAULT_MAX_CHUNK_SIZE = 4000
DEFAULT_OVERLAP = 200
MIN_BREAK_RATIO = 0.7

SENTENCE_TERMINATORS = (".", "!", "?")


@dataclass(frozen=True)
class Chunk:
    text: str
    chunk_index: int
    chunk_total: int


def _find_break(text: str, start: int, end: int) -> int:
    """Return cut position in (start, end]. Falls back to end when no acceptable break exists."""
    min_pos = start + int((end - start) * MIN_BREAK_RATIO)
    sentence = max(text.rfind(t, start, end) for t in SENTENCE_TERMINATORS)
    if sentence > min_pos:
        return sentence + 1
    newline = text.rfind("\n", start, end)
    if newline > min_pos:
        return newline + 1
    space = text.rfind(" ", start, end)
    if space > min_pos:
        return space + 1
    return end


def iter_chunk_texts(
    text: str,
    max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
    overlap: int = DEFAULT_OVERLAP,
) -> Iterator[str]:
    """Yield trimmed, non-empty chunk texts. Single pass over text."""
    if max_chunk_size <= 0:
        raise ValueError("max_chunk_size must be positive")
    if overlap < 0 or overlap >= max_chunk_size:
        raise ValueError("overlap must be >= 0 and < max_chunk_size")
    if len(text) <= max_chunk_size:
        yield text
        return

    start = 0
    n = len(text)
    while start < n:
        end = min(start + max_chunk_size, n)
        if end < n:
            end = _find_break(text, start, end)
        piece = text[start:end].strip()
        if piece:
            yield piece
        if end >= n:
            break
        # Always advance, even when the break sits inside the overlap.
        start = max(end - overlap, start + 1)


def chunk_document(
    text: str,
    max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
    overlap: int = DEFAULT_OVERLAP,
) -> list[Chunk]:
    """
    Chunk text into at most max_chunk_size pieces with overlap.
    Short text (len <= max_chunk_size) is returned as a single chunk, unmodified.
    """
    texts = list(iter_chunk_texts(text, max_chunk_size, overlap))
    total = len(texts)
    return [Chunk(text=t, chunk_index=i, chunk_total=total) for i, t in enumerate(texts)]
