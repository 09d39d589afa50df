"""
Regular expression content matching over a single text field.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List

from matchers.utils import build_line_offset_table, line_in_table


@dataclass(frozen=True)
class Occurrence:
    """
    One located match inside a text field.

    Example: pattern `(?P<var>\\w+)\\.unwrap\\(\\)` on `let a = foo.unwrap();` gives
    * `line=1, matched='foo.unwrap()', captures={'0': 'foo.unwrap()', '1': 'foo', 'var': 'foo'}`
    """

    line: int  # 1-based start line
    matched: str
    captures: Dict[str, str] = field(default_factory=dict)
    start: int = 0  # character offsets of the match in its text
    end: int = 0


def build_flags(case_sensitive: bool = True, multiline: bool = True) -> int:
    flags = 0
    if not case_sensitive:
        flags |= re.IGNORECASE
    if multiline:
        flags |= re.MULTILINE
    return flags


@dataclass(frozen=True)
class RegexMatcher:
    """A compiled content pattern together with the options it was compiled with."""

    pattern: re.Pattern
    case_sensitive: bool = True
    multiline: bool = True

    @classmethod
    def compile(cls, source: str, case_sensitive: bool = True, multiline: bool = True) -> "RegexMatcher":
        """Compile a pattern. Raises re.error on malformed input."""
        return cls(re.compile(source, build_flags(case_sensitive, multiline)), case_sensitive, multiline)

    @property
    def source(self) -> str:
        return self.pattern.pattern

    def is_match(self, text: str) -> bool:
        return self.pattern.search(text) is not None

    def search(self, text: str) -> List[Occurrence]:
        """All non-overlapping matches in document order."""
        occurrences = []
        line_starts = build_line_offset_table(text)
        for m in self.pattern.finditer(text):
            occurrences.append(
                Occurrence(
                    line=line_in_table(line_starts, m.start()),
                    matched=m.group(0),
                    captures=_captures(m),
                    start=m.start(),
                    end=m.end(),
                )
            )
        return occurrences

    def __str__(self) -> str:
        return self.source


def _captures(m: re.Match) -> Dict[str, str]:
    """Label groups by index ("0" is the whole match) and additionally by name."""
    captures = {"0": m.group(0)}
    for i, value in enumerate(m.groups(), start=1):
        if value is not None:
            captures[str(i)] = value
    for name, value in m.groupdict().items():
        if value is not None:
            captures[name] = value
    return captures


def search(pattern: str, text: str, case_sensitive: bool = True, multiline: bool = True) -> List[Occurrence]:
    """Convenience wrapper: compile `pattern` with the given options and search `text`."""
    return RegexMatcher.compile(pattern, case_sensitive, multiline).search(text)
