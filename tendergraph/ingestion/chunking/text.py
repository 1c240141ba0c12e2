"""
Plain Text Chunker

Splits extracted document text into overlapping, sentence-aligned spans.

Algorithm:
    1. Take a window of at most max_chunk_size characters from the cursor
    2. If the window does not reach the end of the text, look back over the
       last search_window characters for the latest sentence delimiter
       (". ", "! ", "? ", blank line, newline) and cut right after it,
       provided the cut leaves at least min_chunk_size characters
    3. Move the cursor to the cut minus overlap_size (or to the cut itself
       if that would not move it forward)
    4. A final piece shorter than min_chunk_size is started earlier, at
       len(text) - min_chunk_size, instead of being dropped

Every span's text is exactly text[start:end], so merging the ranges
reconstructs the input. The one exception is a whitespace-only window,
which is not emitted: only whitespace can fall outside every span.
Pure and deterministic: no I/O, no model calls.
"""

from tendergraph.types import TextSpan

DELIMITERS: tuple[str, ...] = (". ", "! ", "? ", "\n\n", "\n")

DEFAULT_MAX_CHUNK_SIZE = 800
DEFAULT_MIN_CHUNK_SIZE = 100
DEFAULT_OVERLAP_SIZE = 100
DEFAULT_SEARCH_WINDOW = 200


def _validate(max_chunk_size: int, min_chunk_size: int, overlap_size: int, search_window: int) -> None:
    if max_chunk_size <= 0:
        raise ValueError("max_chunk_size must be positive")
    if not 0 <= min_chunk_size <= max_chunk_size:
        raise ValueError("min_chunk_size must be between 0 and max_chunk_size")
    if not 0 <= overlap_size < max_chunk_size:
        raise ValueError("overlap_size must be non-negative and smaller than max_chunk_size")
    if search_window < 0:
        raise ValueError("search_window must be non-negative")


def _find_cut(text: str, cursor: int, end: int, min_chunk_size: int, search_window: int) -> int:
    """Latest delimiter end inside the search window, or end if none qualifies."""
    window_start = max(cursor + min_chunk_size, end - search_window)
    best = -1
    for delimiter in DELIMITERS:
        pos = text.rfind(delimiter, window_start, end)
        if pos != -1:
            best = max(best, pos + len(delimiter))
    if best > cursor + min_chunk_size:
        return best
    return end


def chunk_text(
    text: str,
    *,
    max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
    min_chunk_size: int = DEFAULT_MIN_CHUNK_SIZE,
    overlap_size: int = DEFAULT_OVERLAP_SIZE,
    search_window: int = DEFAULT_SEARCH_WINDOW,
) -> list[TextSpan]:
    """
    Split text into overlapping spans.

    Args:
        text: Extracted document text
        max_chunk_size: Upper bound on span length
        min_chunk_size: Lower bound on span length, except for a lone span
        overlap_size: Characters shared by neighbouring spans
        search_window: How far back from a window's tail to look for a delimiter

    Returns:
        Spans ordered by start offset (strictly increasing). Blank text
        gives []; text no longer than max_chunk_size gives one span.
        Whitespace-only windows are skipped, so uncovered characters
        are always whitespace.

    Raises:
        ValueError: If the size constants are inconsistent
    """
    _validate(max_chunk_size, min_chunk_size, overlap_size, search_window)

    if not text or not text.strip():
        return []

    n = len(text)
    if n <= max_chunk_size:
        return [TextSpan(text=text, start=0, end=n)]

    spans: list[TextSpan] = []
    cursor = 0
    while cursor < n:
        end = min(cursor + max_chunk_size, n)
        if end < n:
            end = _find_cut(text, cursor, end, min_chunk_size, search_window)
        elif spans and end - cursor < min_chunk_size:
            # Short tail: widen it backwards rather than drop it
            cursor = n - min_chunk_size

        piece = text[cursor:end]
        # Whitespace-only windows carry nothing to embed
        if piece.strip():
            spans.append(TextSpan(text=piece, start=cursor, end=end))

        if end >= n:
            break
        next_cursor = end - overlap_size
        cursor = next_cursor if next_cursor > cursor else end

    return spans
