"""
Rules IR - compiled, immutable form of declarative rules.

A raw rule (YAML mapping or Hy `defrule` call) becomes a CompiledRule:
activation criteria, one match clause variant, an action and a message template.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from core.context import EventContext, EventKind
from matchers.between import BetweenFilter
from matchers.glob import GlobPattern
from matchers.regex import Occurrence, RegexMatcher
from matchers.structural import StructuralQuery


class RuleCompileError(ValueError):
    """
    A raw rule could not be compiled.

    Carries the rule name (or "<unnamed>") and the offending field path,
    e.g. `match.syntax_tree.query`.
    """

    def __init__(self, rule_name: Optional[str], field: str, detail: str):
        self.rule_name = rule_name or "<unnamed>"
        self.field = field
        self.detail = detail
        super().__init__(f"rule {self.rule_name!r}: {field}: {detail}")


class Action(Enum):
    """What the host should do when a rule fires."""

    INTERRUPT = "interrupt"
    CONTINUE = "continue"

    @classmethod
    def from_string(cls, s: str) -> "Action":
        s_lower = s.lower().strip()
        for action in cls:
            if action.value == s_lower:
                return action
        raise ValueError(f"Unknown action: {s}")


# Fields a single-regex match can target
FIELD_MATCH_KINDS = ("content", "prompt", "message", "command", "url")
EDIT_MATCH_KINDS = ("new_string", "old_string")
SYNTAX_TREE_KIND = "syntax_tree"


def resolve_source(event: EventContext) -> Optional[str]:
    """The text being written: `content` on writes, `new_string` on edits."""
    if event.kind == EventKind.FILE_EDIT:
        return event.get_field("new_string")
    return event.get_field("content")


def resolve_field(event: EventContext, name: str) -> Optional[str]:
    if name == "content":
        return resolve_source(event)
    return event.get_field(name)


@dataclass(frozen=True)
class Activation:
    """Cheap pre-filter evaluated before any content matching."""

    event: EventKind
    tool: Optional[re.Pattern] = None
    file: Optional[GlobPattern] = None

    def accepts(self, event: EventContext) -> bool:
        if event.kind != self.event:
            return False
        if self.tool is not None:
            if not event.tool_name or self.tool.search(event.tool_name) is None:
                return False
        if self.file is not None:
            if not event.file_path or not self.file.matches(event.file_path):
                return False
        return True

    def __str__(self):
        parts = [self.event.value]
        if self.tool is not None:
            parts.append(f"tool={self.tool.pattern}")
        if self.file is not None:
            parts.append(f"file={self.file}")
        return " ".join(parts)


# =============================================================================
# Match clauses
#
# occurrences(event) returns None when the rule does not match, otherwise the
# list of located occurrences (empty only for AlwaysMatch).
# =============================================================================


class MatchClause:
    """Base class for match clauses."""

    kind = "always"

    def occurrences(self, event: EventContext) -> Optional[List[Occurrence]]:
        raise NotImplementedError

    def source_text(self, event: EventContext) -> Optional[str]:
        """The event text that occurrence offsets point into; None when there is none."""
        return None


@dataclass(frozen=True)
class AlwaysMatch(MatchClause):
    """Matches unconditionally once activation passes."""

    kind = "always"

    def occurrences(self, event: EventContext) -> Optional[List[Occurrence]]:
        return []

    def __str__(self):
        return "always"


@dataclass(frozen=True)
class FieldRegexMatch(MatchClause):
    """One regex searched in one named event field."""

    kind = "field"

    field_name: str
    matcher: RegexMatcher

    def occurrences(self, event: EventContext) -> Optional[List[Occurrence]]:
        text = resolve_field(event, self.field_name)
        if text is None:
            return None
        found = self.matcher.search(text)
        return found or None

    def source_text(self, event: EventContext) -> Optional[str]:
        return resolve_field(event, self.field_name)

    def __str__(self):
        return f"{self.field_name} =~ /{self.matcher}/"


@dataclass(frozen=True)
class EditRegexMatch(MatchClause):
    """
    Regexes over the two sides of an edit; every given pattern must match.

    Occurrences come from `new_string` when it has a pattern, else from `old_string`.
    """

    kind = "edit"

    new_string: Optional[RegexMatcher] = None
    old_string: Optional[RegexMatcher] = None

    def occurrences(self, event: EventContext) -> Optional[List[Occurrence]]:
        results = {}
        for name, matcher in (("new_string", self.new_string), ("old_string", self.old_string)):
            if matcher is None:
                continue
            text = event.get_field(name)
            if text is None:
                return None
            found = matcher.search(text)
            if not found:
                return None
            results[name] = found
        return results.get("new_string") or results.get("old_string")

    def source_text(self, event: EventContext) -> Optional[str]:
        if self.new_string is not None:
            return event.get_field("new_string")
        return event.get_field("old_string")

    def __str__(self):
        parts = []
        if self.new_string is not None:
            parts.append(f"new_string =~ /{self.new_string}/")
        if self.old_string is not None:
            parts.append(f"old_string =~ /{self.old_string}/")
        return " and ".join(parts)


@dataclass(frozen=True)
class SyntaxTreeMatch(MatchClause):
    """Tree-sitter query over the written text, optionally refined by a between filter."""

    kind = "syntax_tree"

    query: StructuralQuery
    between: Optional[BetweenFilter] = None

    def occurrences(self, event: EventContext) -> Optional[List[Occurrence]]:
        """Raises SourceParseError when the text cannot be parsed."""
        source = resolve_source(event)
        if source is None:
            return None
        source_bytes = source.encode("utf-8")
        capture_sets = self.query.run(source_bytes)
        if self.between is not None:
            capture_sets = self.between.apply(source_bytes, capture_sets)
        if not capture_sets:
            return None
        return [cs.to_occurrence(source_bytes) for cs in capture_sets]

    def source_text(self, event: EventContext) -> Optional[str]:
        return resolve_source(event)

    def __str__(self):
        between = ""
        if self.between is not None:
            between = f" between @{self.between.from_label}..@{self.between.to_label}"
        return f"{self.query.language} query{between}"


@dataclass(frozen=True)
class CompiledRule:
    """A rule ready for evaluation. Immutable and shared across evaluations."""

    name: str
    activation: Activation
    action: Action
    message: str
    match: MatchClause = field(default_factory=AlwaysMatch)
    description: str = ""

    def __repr__(self):
        return f"CompiledRule({self.name}, {self.action.value}, on={self.activation}, match={self.match})"


Registry = Tuple[CompiledRule, ...]
