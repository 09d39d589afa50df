"""
File path glob matching.

Supported syntax:
- `*`       any run of characters except the path separator
- `**`      any run of whole path segments (including none)
- `?`       one character except the path separator
- `[abc]`, `[a-z]`, `[!abc]`   character classes
- `!` as the first character negates the whole pattern

A negated pattern that matches its inner pattern means "exclude", so
`matches("!**/test/**", "src/test/a.rs")` is False.
"""

import re
from dataclasses import dataclass


class GlobError(ValueError):
    """Malformed glob pattern."""

    pass


def _translate_class(pattern: str, i: int) -> tuple:
    """Translate a `[...]` class starting at pattern[i] == '['. Returns (regex, next index)."""
    j = i + 1
    if j < len(pattern) and pattern[j] in "!^":
        j += 1
    # A `]` right after the opening (or negation) is a literal member
    if j < len(pattern) and pattern[j] == "]":
        j += 1
    while j < len(pattern) and pattern[j] != "]":
        j += 1
    if j >= len(pattern):
        raise GlobError(f"unterminated character class in glob: {pattern!r}")

    body = pattern[i + 1 : j]
    negated = body[:1] in ("!", "^")
    if negated:
        body = body[1:]
    if not body:
        raise GlobError(f"empty character class in glob: {pattern!r}")
    body = body.replace("\\", "\\\\")
    if negated:
        # Negated classes never match the separator
        return f"[^/{body}]", j + 1
    return f"[{body}]", j + 1


def translate(pattern: str) -> str:
    """Translate a glob (without leading `!`) into an anchored regex source."""
    parts = []
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**", i):
                at_segment_start = i == 0 or pattern[i - 1] == "/"
                after = i + 2
                if at_segment_start and after < n and pattern[after] == "/":
                    # `**/` - zero or more leading directories
                    parts.append("(?:[^/]*/)*")
                    i = after + 1
                    continue
                if at_segment_start and after == n:
                    # trailing `**` - everything below
                    parts.append(".*")
                    i = after
                    continue
                # `**` inside a segment behaves like `*`
                parts.append("[^/]*")
                i = after
                continue
            parts.append("[^/]*")
            i += 1
        elif c == "?":
            parts.append("[^/]")
            i += 1
        elif c == "[":
            regex, i = _translate_class(pattern, i)
            parts.append(regex)
        else:
            parts.append(re.escape(c))
            i += 1
    return "(?s:" + "".join(parts) + r")\Z"


def _normalize_path(path: str) -> str:
    path = path.replace("\\", "/")
    if path.startswith("./"):
        path = path[2:]
    return path


@dataclass(frozen=True)
class GlobPattern:
    """A compiled glob, possibly negated."""

    source: str
    regex: re.Pattern
    negated: bool = False

    @classmethod
    def compile(cls, pattern: str) -> "GlobPattern":
        if not isinstance(pattern, str) or not pattern:
            raise GlobError("glob pattern must be a non-empty string")
        negated = pattern.startswith("!")
        inner = pattern[1:] if negated else pattern
        if not inner:
            raise GlobError(f"negated glob has no pattern: {pattern!r}")
        try:
            regex = re.compile(translate(inner))
        except re.error as e:
            raise GlobError(f"invalid glob {pattern!r}: {e}") from e
        return cls(source=pattern, regex=regex, negated=negated)

    def matches(self, path: str) -> bool:
        hit = self.regex.match(_normalize_path(path)) is not None
        return not hit if self.negated else hit

    def __str__(self) -> str:
        return self.source


def matches(pattern: str, path: str) -> bool:
    """Convenience wrapper: compile `pattern` and test `path`. A malformed pattern matches nothing."""
    try:
        glob = GlobPattern.compile(pattern)
    except GlobError:
        return False
    return glob.matches(path)
