"""
Between-region filter: test the text lying between two captures.

The query grammar only addresses nodes, so gaps (blank lines, comments,
separators) between two syntactic elements are checked here instead.

Example: keep declarations that are NOT separated by a blank line
    BetweenFilter("first", "second", not_contains="\\n\\n")
"""

from dataclasses import dataclass
from typing import List, Optional

from matchers.structural import CaptureSet
from matchers.utils import Source, get_source_bytes


@dataclass(frozen=True)
class BetweenFilter:
    from_label: str
    to_label: str
    contains: Optional[str] = None
    not_contains: Optional[str] = None

    def region(self, source_code: Source, capture_set: CaptureSet) -> Optional[str]:
        """
        Text strictly between the end of `from` and the start of `to`.

        None when a label is missing or `from` does not end before `to` starts.
        """
        start = capture_set.get(self.from_label)
        end = capture_set.get(self.to_label)
        if start is None or end is None:
            return None
        if start.end_byte > end.start_byte:
            return None
        source_bytes = get_source_bytes(source_code)
        return source_bytes[start.end_byte : end.start_byte].decode("utf-8", errors="replace")

    def accepts(self, source_code: Source, capture_set: CaptureSet) -> bool:
        text = self.region(source_code, capture_set)
        if text is None:
            return False
        if self.contains is not None and self.contains not in text:
            return False
        if self.not_contains is not None and self.not_contains in text:
            return False
        return True

    def apply(self, source_code: Source, capture_sets: List[CaptureSet]) -> List[CaptureSet]:
        """Keep the capture sets whose in-between text passes both conditions, in order."""
        return [cs for cs in capture_sets if self.accepts(source_code, cs)]
