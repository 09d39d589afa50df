"""
Rule compiler: raw rule mappings -> CompiledRule.

Every regex, glob and query is compiled eagerly, so a malformed pattern
fails here with the rule name and field instead of at evaluation time.

Raw rule shape:
    name: no-todo
    description: optional
    on: {event: file_write, tool: "Write|Edit", file: "**/*.rs"}
    match: {content: "TODO|FIXME", case_sensitive: true, multiline: true}
    action: interrupt
    message: "Found {{ matched }} on lines {{ lines }}"
"""

import re
from typing import Any, Dict, Iterable, Mapping, Optional

from core.context import EventKind
from core.utils import warn
from matchers.between import BetweenFilter
from matchers.glob import GlobError, GlobPattern
from matchers.parse import UnsupportedLanguageError
from matchers.regex import RegexMatcher
from matchers.structural import StructuralQuery, StructuralQueryError
from rules.ir import (
    EDIT_MATCH_KINDS,
    FIELD_MATCH_KINDS,
    SYNTAX_TREE_KIND,
    Action,
    Activation,
    AlwaysMatch,
    CompiledRule,
    EditRegexMatch,
    FieldRegexMatch,
    MatchClause,
    Registry,
    RuleCompileError,
    SyntaxTreeMatch,
)


RULE_KEYS = {"name", "description", "on", "match", "action", "message"}
ACTIVATION_KEYS = {"event", "tool", "file"}
MATCH_OPTION_KEYS = {"case_sensitive", "multiline"}
MATCH_KIND_KEYS = set(FIELD_MATCH_KINDS) | set(EDIT_MATCH_KINDS) | {SYNTAX_TREE_KIND}
SYNTAX_TREE_KEYS = {"language", "query", "between"}
BETWEEN_KEYS = {"from", "to", "contains", "not_contains"}


class _Fields:
    """Reads one mapping of a raw rule, reporting errors against the rule name and a field prefix."""

    def __init__(self, rule_name: Optional[str], prefix: str, raw: Any, allowed: set):
        self.rule_name = rule_name
        self.prefix = prefix
        if raw is None:
            raw = {}
        if not isinstance(raw, Mapping):
            raise RuleCompileError(rule_name, prefix or "rule", f"expected a mapping, got {type(raw).__name__}")
        unknown = sorted(str(k) for k in raw if k not in allowed)
        if unknown:
            raise RuleCompileError(
                rule_name, prefix or "rule", f"unknown key(s): {', '.join(unknown)} (allowed: {', '.join(sorted(allowed))})"
            )
        self.raw = raw

    def path(self, key: str) -> str:
        return f"{self.prefix}.{key}" if self.prefix else key

    def fail(self, key: str, detail: str) -> RuleCompileError:
        return RuleCompileError(self.rule_name, self.path(key), detail)

    def string(self, key: str, required: bool = False, allow_empty: bool = False) -> Optional[str]:
        value = self.raw.get(key)
        if value is None:
            if required:
                raise self.fail(key, "is required")
            return None
        if not isinstance(value, str):
            raise self.fail(key, f"expected a string, got {type(value).__name__}")
        if not value and not allow_empty:
            raise self.fail(key, "must not be empty")
        return value

    def boolean(self, key: str, default: bool) -> bool:
        value = self.raw.get(key, default)
        if not isinstance(value, bool):
            raise self.fail(key, f"expected true or false, got {value!r}")
        return value


def _compile_regex(fields: _Fields, key: str, case_sensitive: bool, multiline: bool) -> Optional[RegexMatcher]:
    source = fields.string(key)
    if source is None:
        return None
    try:
        return RegexMatcher.compile(source, case_sensitive, multiline)
    except re.error as e:
        raise fields.fail(key, f"invalid regex {source!r}: {e}") from e


def _compile_activation(name: str, raw: Any) -> Activation:
    if raw is None:
        raise RuleCompileError(name, "on", "is required")
    fields = _Fields(name, "on", raw, ACTIVATION_KEYS)

    event_name = fields.string("event", required=True)
    try:
        event = EventKind.from_string(event_name)
    except ValueError as e:
        choices = ", ".join(k.value for k in EventKind)
        raise fields.fail("event", f"{e} (expected one of: {choices})") from e

    tool = None
    tool_source = fields.string("tool")
    if tool_source is not None:
        try:
            tool = re.compile(tool_source)
        except re.error as e:
            raise fields.fail("tool", f"invalid regex {tool_source!r}: {e}") from e

    glob = None
    glob_source = fields.string("file")
    if glob_source is not None:
        try:
            glob = GlobPattern.compile(glob_source)
        except GlobError as e:
            raise fields.fail("file", str(e)) from e

    return Activation(event=event, tool=tool, file=glob)


def _compile_between(name: str, raw: Any) -> BetweenFilter:
    fields = _Fields(name, "match.syntax_tree.between", raw, BETWEEN_KEYS)
    from_label = fields.string("from", required=True).lstrip("@")
    to_label = fields.string("to", required=True).lstrip("@")
    contains = fields.string("contains", allow_empty=True)
    not_contains = fields.string("not_contains", allow_empty=True)
    if contains is None and not_contains is None:
        raise RuleCompileError(name, fields.prefix, "needs `contains` or `not_contains`")
    return BetweenFilter(from_label, to_label, contains=contains, not_contains=not_contains)


def _compile_syntax_tree(name: str, raw: Any) -> SyntaxTreeMatch:
    fields = _Fields(name, "match.syntax_tree", raw, SYNTAX_TREE_KEYS)
    language = fields.string("language", required=True)
    source = fields.string("query", required=True)
    try:
        query = StructuralQuery.compile(language, source)
    except UnsupportedLanguageError as e:
        raise fields.fail("language", str(e)) from e
    except StructuralQueryError as e:
        raise fields.fail("query", str(e)) from e

    between = None
    if fields.raw.get("between") is not None:
        between = _compile_between(name, fields.raw["between"])
        for label in (between.from_label, between.to_label):
            if label not in query.capture_names:
                raise RuleCompileError(
                    name,
                    "match.syntax_tree.between",
                    f"@{label} is not captured by the query (captures: {', '.join(query.capture_names)})",
                )
    return SyntaxTreeMatch(query=query, between=between)


def _compile_match(name: str, raw: Any) -> MatchClause:
    fields = _Fields(name, "match", raw, MATCH_KIND_KEYS | MATCH_OPTION_KEYS)
    case_sensitive = fields.boolean("case_sensitive", True)
    multiline = fields.boolean("multiline", True)

    given = [k for k in fields.raw if k in MATCH_KIND_KEYS]
    for key in given:
        if fields.raw[key] is None:
            raise fields.fail(key, "must not be empty")
    if not given:
        return AlwaysMatch()

    # `new_string` and `old_string` together form one match kind
    kinds = {"edit" if k in EDIT_MATCH_KINDS else k for k in given}
    if len(kinds) > 1:
        raise RuleCompileError(name, "match", f"only one match kind allowed, got: {', '.join(sorted(given))}")

    kind = kinds.pop()
    if kind == SYNTAX_TREE_KIND:
        return _compile_syntax_tree(name, fields.raw[SYNTAX_TREE_KIND])
    if kind == "edit":
        return EditRegexMatch(
            new_string=_compile_regex(fields, "new_string", case_sensitive, multiline),
            old_string=_compile_regex(fields, "old_string", case_sensitive, multiline),
        )
    return FieldRegexMatch(field_name=kind, matcher=_compile_regex(fields, kind, case_sensitive, multiline))


def compile_rule(raw: Mapping[str, Any]) -> CompiledRule:
    """
    Compile one raw rule.

    Raises:
        RuleCompileError: on any missing or malformed field
    """
    if not isinstance(raw, Mapping):
        raise RuleCompileError(None, "rule", f"expected a mapping, got {type(raw).__name__}")

    name = raw.get("name")
    rule_name = name if isinstance(name, str) and name else None
    fields = _Fields(rule_name, "", raw, RULE_KEYS)
    name = fields.string("name", required=True)

    activation = _compile_activation(name, raw.get("on"))
    match = _compile_match(name, raw.get("match"))

    action_name = fields.string("action", required=True)
    try:
        action = Action.from_string(action_name)
    except ValueError as e:
        raise fields.fail("action", f"{e} (expected interrupt or continue)") from e

    message = fields.string("message", required=True)
    description = fields.string("description", allow_empty=True) or ""

    return CompiledRule(
        name=name,
        activation=activation,
        action=action,
        message=message,
        match=match,
        description=description,
    )


def warn_duplicates(rules: Iterable[CompiledRule]) -> None:
    seen: Dict[str, int] = {}
    for i, rule in enumerate(rules):
        if rule.name in seen:
            warn(f"Duplicate rule name '{rule.name}' (rules #{seen[rule.name] + 1} and #{i + 1})")
        else:
            seen[rule.name] = i


def compile_rules(raws: Iterable[Mapping[str, Any]], check_duplicates: bool = True) -> Registry:
    """
    Compile rules in order into an immutable registry.

    Duplicate names are allowed but reported with a warning.
    The first RuleCompileError propagates.
    """
    compiled = tuple(compile_rule(raw) for raw in raws)
    if check_duplicates:
        warn_duplicates(compiled)
    return compiled
