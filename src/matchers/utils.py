"""
Shared utilities for matching: text/byte offsets and line numbers.

Nothing here keeps state between calls; callers that need the UTF-8 bytes or
the line table more than once build them once and pass them along.
"""

import bisect
from typing import List, Union

Source = Union[str, bytes]


def get_source_bytes(source_code: Source) -> bytes:
    """UTF-8 bytes of the source (tree-sitter offsets are byte offsets)."""
    if isinstance(source_code, bytes):
        return source_code
    return source_code.encode("utf-8")


def extract_text(source_code: Source, start_byte: int, end_byte: int) -> str:
    """
    Extract text from source using tree-sitter byte offsets.

    Tree-sitter returns byte offsets, but Python strings use character offsets.
    For ASCII-only files these are the same, but for files with non-ASCII chars
    (accented letters, CJK, emoji) we need to use the byte representation.
    Pass the already encoded bytes when extracting many spans from one source.
    """
    return get_source_bytes(source_code)[start_byte:end_byte].decode("utf-8", errors="replace")


def build_line_offset_table(text: str) -> List[int]:
    """Offsets where each line starts. O(n) once per text."""
    offsets = [0]  # Line 1 starts at offset 0
    pos = text.find("\n")
    while pos != -1:
        offsets.append(pos + 1)
        pos = text.find("\n", pos + 1)
    return offsets


def line_in_table(offsets: List[int], offset: int) -> int:
    """1-based line of `offset` given a table from build_line_offset_table."""
    if offset <= 0:
        return 1
    return bisect.bisect_right(offsets, offset)

