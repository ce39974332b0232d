"""Fixed-window text chunker with character overlap."""

from __future__ import annotations

from deepdocs.errors import InvalidConfiguration

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_OVERLAP = 100


def validate_window(size: int, overlap: int) -> None:
    """Raise InvalidConfiguration unless ``0 <= overlap < size``."""
    if size < 1:
        raise InvalidConfiguration(f"chunk size must be >= 1, got {size}")
    if overlap < 0:
        raise InvalidConfiguration(f"chunk overlap must be >= 0, got {overlap}")
    if overlap >= size:
        raise InvalidConfiguration(
            f"chunk overlap ({overlap}) must be smaller than chunk size ({size})"
        )


def chunk_text(
    text: str, size: int = DEFAULT_CHUNK_SIZE, overlap: int = DEFAULT_OVERLAP
) -> list[str]:
    """Split *text* into windows of *size* characters sharing *overlap* characters.

    Window n starts at ``n * (size - overlap)``. Splitting stops once the next
    start would be at or past the end of the text, so the last window may be
    shorter than *size*. Slices are returned verbatim (no stripping), which
    keeps the split reversible::

        chunks[0] + "".join(c[overlap:] for c in chunks[1:]) == text

    Raises:
        InvalidConfiguration: If ``overlap >= size`` or either is negative.
    """
    validate_window(size, overlap)

    step = size - overlap
    chunks: list[str] = []
    start = 0
    length = len(text)
    while start < length:
        chunks.append(text[start : start + size])
        start += step
    return chunks
