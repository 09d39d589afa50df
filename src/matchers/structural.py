"""
Structural (syntax tree) matching with tree-sitter queries.

Queries use tree-sitter's S-expression syntax:
    (call function: (identifier) @fn (#eq? @fn "print"))

Text predicates (`#eq?`, `#match?`, their `not-`/`any-` forms and `#any-of?`)
are evaluated by tree-sitter after structural matching, so every CaptureSet
returned here already satisfies all predicates of its pattern.

A query without any `@capture` still locates its matches: each top-level
pattern gets an implicit capture, and the match is reported unlabeled with the
span of the whole pattern.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from tree_sitter import Query, QueryCursor

from matchers.parse import get_language, normalize_language, parse_source
from matchers.regex import Occurrence
from matchers.utils import Source, extract_text, get_source_bytes


SUPPORTED_PREDICATES = {
    "eq?",
    "not-eq?",
    "any-eq?",
    "any-not-eq?",
    "match?",
    "not-match?",
    "any-match?",
    "any-not-match?",
    "any-of?",
    "not-any-of?",
    "is?",
    "is-not?",
    "set!",
}

_PREDICATE_RE = re.compile(r"\(\s*#([A-Za-z_][\w-]*[?!]?)")
# String literals are skipped when scanning for predicates
_STRING_RE = re.compile(r'"(?:[^"\\]|\\.)*"')


class StructuralQueryError(ValueError):
    """Malformed query or unsupported predicate."""

    pass


@dataclass(frozen=True)
class Capture:
    """A named node span: byte offsets, 1-based start line and its text."""

    start_byte: int
    end_byte: int
    start_line: int
    text: str


@dataclass(frozen=True)
class CaptureSet:
    """
    One query match: capture label -> Capture.

    `whole` is set for queries without captures and spans the matched pattern.
    """

    captures: Dict[str, Capture] = field(default_factory=dict)
    whole: Optional[Capture] = None

    def get(self, label: str) -> Optional[Capture]:
        return self.captures.get(label)

    def labels(self) -> List[str]:
        return list(self.captures)

    def _spans(self) -> Iterator[Capture]:
        yield from self.captures.values()
        if self.whole is not None:
            yield self.whole

    @property
    def start_byte(self) -> int:
        return min((c.start_byte for c in self._spans()), default=0)

    @property
    def end_byte(self) -> int:
        return max((c.end_byte for c in self._spans()), default=0)

    @property
    def start_line(self) -> int:
        return min((c.start_line for c in self._spans()), default=1)

    def to_occurrence(self, source_code: Source) -> Occurrence:
        """
        Collapse into an Occurrence spanning every capture; captures keyed by label.

        The Occurrence offsets are character offsets, like those of regex matches.
        """
        source_bytes = get_source_bytes(source_code)
        start = len(extract_text(source_bytes, 0, self.start_byte))
        matched = extract_text(source_bytes, self.start_byte, self.end_byte)
        return Occurrence(
            line=self.start_line,
            matched=matched,
            captures={label: c.text for label, c in self.captures.items()},
            start=start,
            end=start + len(matched),
        )


def _unsupported_predicates(query_source: str) -> List[str]:
    stripped = _STRING_RE.sub('""', query_source)
    names = _PREDICATE_RE.findall(stripped)
    return [name for name in names if name not in SUPPORTED_PREDICATES]


_MATCH_PREDICATE_RE = re.compile(r'\(\s*#(?:any-)?(?:not-)?match\?\s+@[\w.-]+\s+"((?:[^"\\]|\\.)*)"')
_QUERY_ESCAPES = {"n": "\n", "r": "\r", "t": "\t", "0": "\0"}


def _unescape_query_string(body: str) -> str:
    """Decode a query string literal body: `\\n`, `\\r`, `\\t`, `\\0`; any other escaped character stands for itself."""
    return re.sub(r"\\(.)", lambda m: _QUERY_ESCAPES.get(m.group(1), m.group(1)), body, flags=re.S)


def _invalid_match_regexes(query_source: str) -> List[str]:
    invalid = []
    for body in _MATCH_PREDICATE_RE.findall(query_source):
        pattern = _unescape_query_string(body)
        try:
            re.compile(pattern)
        except re.error as e:
            invalid.append(f"{pattern!r} ({e})")
    return invalid


IMPLICIT_LABEL = "_nudge_match"


def _capture_top_level_patterns(query_source: str) -> str:
    """Append `@_nudge_match` (after any quantifier) to every top-level pattern."""
    out = []
    depth = 0
    i = 0
    n = len(query_source)
    while i < n:
        ch = query_source[i]
        if ch == ";":
            end = query_source.find("\n", i)
            end = n if end == -1 else end
            out.append(query_source[i:end])
            i = end
            continue
        if ch == '"':
            m = _STRING_RE.match(query_source, i)
            end = m.end() if m else n
            out.append(query_source[i:end])
            i = end
            closed = depth == 0
        else:
            out.append(ch)
            i += 1
            if ch in "([":
                depth += 1
            closed = ch in ")]" and depth == 1
            if ch in ")]":
                depth -= 1
        if closed:
            while i < n and query_source[i] in "*+?":
                out.append(query_source[i])
                i += 1
            out.append(f" @{IMPLICIT_LABEL}")
    return "".join(out)


def _build_query(language_obj, key: str, source: str) -> Query:
    try:
        return Query(language_obj, source)
    except Exception as e:
        # tree-sitter reports syntax, node-kind, field and capture errors here
        raise StructuralQueryError(f"invalid {key} query: {e}") from e


@dataclass(frozen=True)
class StructuralQuery:
    """A tree-sitter query compiled for one language."""

    language: str
    source: str
    query: Query = field(repr=False, compare=False)
    capture_names: Tuple[str, ...] = ()
    implicit_capture: bool = False

    @classmethod
    def compile(cls, language: str, source: str) -> "StructuralQuery":
        """
        Compile a query string for `language`.

        Raises:
            UnsupportedLanguageError: unknown language or missing grammar package
            StructuralQueryError: malformed query, unknown predicate or bad #match? regex
        """
        if not isinstance(source, str) or not source.strip():
            raise StructuralQueryError("query must be a non-empty string")
        key = normalize_language(language)

        unsupported = _unsupported_predicates(source)
        if unsupported:
            raise StructuralQueryError(
                f"unsupported predicate(s): {', '.join('#' + p for p in unsupported)}"
                f" (supported: #eq?, #match? and their not-/any- forms, #any-of?)"
            )
        invalid = _invalid_match_regexes(source)
        if invalid:
            raise StructuralQueryError(f"invalid #match? regex: {'; '.join(invalid)}")

        language_obj = get_language(key)
        query = _build_query(language_obj, key, source)
        names = tuple(query.capture_name(i) for i in range(query.capture_count))
        if names:
            return cls(language=key, source=source, query=query, capture_names=names)

        query = _build_query(language_obj, key, _capture_top_level_patterns(source))
        return cls(language=key, source=source, query=query, implicit_capture=True)

    def run(self, source_code: Source) -> List[CaptureSet]:
        """
        Execute against source text (str, or its UTF-8 bytes).

        Returns CaptureSets ordered by the start of their earliest capture.
        Raises SourceParseError when the source cannot be parsed.
        """
        source_bytes = get_source_bytes(source_code)
        tree = parse_source(self.language, source_bytes)
        cursor = QueryCursor(self.query)

        results = []
        for _pattern_index, captured in cursor.matches(tree.root_node):
            captures: Dict[str, Capture] = {}
            whole = None
            for label, nodes in captured.items():
                if not nodes:
                    continue
                # Quantified captures bind several nodes; the first one stands for the label
                node = nodes[0] if isinstance(nodes, list) else nodes
                capture = Capture(
                    start_byte=node.start_byte,
                    end_byte=node.end_byte,
                    start_line=node.start_point[0] + 1,
                    text=extract_text(source_bytes, node.start_byte, node.end_byte),
                )
                if self.implicit_capture and label == IMPLICIT_LABEL:
                    whole = capture
                else:
                    captures[label] = capture
            if captures or whole is not None:
                results.append(CaptureSet(captures, whole))

        results.sort(key=lambda cs: cs.start_byte)
        return results

    def __str__(self) -> str:
        return self.source


def query(language: str, source_text: str, pattern: str) -> List[CaptureSet]:
    """Convenience wrapper: compile `pattern` for `language` and run it on `source_text`."""
    return StructuralQuery.compile(language, pattern).run(source_text)
