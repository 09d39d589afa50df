"""Tests for the rule compiler."""
import pytest

from core.context import EventKind
from rules.compiler import compile_rule, compile_rules
from rules.ir import (
    Action,
    AlwaysMatch,
    EditRegexMatch,
    FieldRegexMatch,
    RuleCompileError,
    SyntaxTreeMatch,
)


def raw_rule(**overrides):
    rule = {
        "name": "no-todo",
        "on": {"event": "file_write"},
        "match": {"content": "TODO|FIXME"},
        "action": "interrupt",
        "message": "Found {{ matched }}",
    }
    rule.update(overrides)
    return rule


def compile_error(raw) -> RuleCompileError:
    with pytest.raises(RuleCompileError) as excinfo:
        compile_rule(raw)
    return excinfo.value


class TestCompileValidRules:
    def test_field_regex_rule(self):
        rule = compile_rule(raw_rule(description="no unfinished work"))
        assert rule.name == "no-todo"
        assert rule.description == "no unfinished work"
        assert rule.action == Action.INTERRUPT
        assert rule.activation.event == EventKind.FILE_WRITE
        assert isinstance(rule.match, FieldRegexMatch)
        assert rule.match.field_name == "content"
        assert rule.match.matcher.case_sensitive

    def test_absent_match_means_always(self):
        rule = compile_rule(raw_rule(match=None))
        assert isinstance(rule.match, AlwaysMatch)

    def test_options_only_means_always(self):
        rule = compile_rule(raw_rule(match={"case_sensitive": False}))
        assert isinstance(rule.match, AlwaysMatch)

    def test_match_options(self):
        rule = compile_rule(raw_rule(match={"content": "x", "case_sensitive": False, "multiline": False}))
        assert not rule.match.matcher.case_sensitive
        assert not rule.match.matcher.multiline

    def test_edit_pair(self):
        rule = compile_rule(
            raw_rule(on={"event": "file_edit"}, match={"old_string": "foo", "new_string": "bar"}, action="continue")
        )
        assert isinstance(rule.match, EditRegexMatch)
        assert rule.match.new_string.source == "bar"
        assert rule.match.old_string.source == "foo"
        assert rule.action == Action.CONTINUE

    def test_activation_tool_and_file(self):
        rule = compile_rule(raw_rule(on={"event": "file-write", "tool": "Write|Edit", "file": "**/*.rs"}))
        assert rule.activation.tool.pattern == "Write|Edit"
        assert str(rule.activation.file) == "**/*.rs"

    def test_syntax_tree_with_between(self):
        rule = compile_rule(
            raw_rule(
                match={
                    "syntax_tree": {
                        "language": "rust",
                        "query": "(source_file (function_item) @first . (function_item) @second)",
                        "between": {"from": "first", "to": "@second", "not_contains": "\n\n"},
                    }
                }
            )
        )
        assert isinstance(rule.match, SyntaxTreeMatch)
        assert rule.match.query.language == "rust"
        assert rule.match.between.from_label == "first"
        assert rule.match.between.to_label == "second"

    @pytest.mark.parametrize("field", ["prompt", "message", "command", "url"])
    def test_other_field_kinds(self, field):
        rule = compile_rule(raw_rule(match={field: "x"}))
        assert rule.match.field_name == field


class TestCompileErrors:
    def test_missing_name(self):
        raw = raw_rule()
        del raw["name"]
        err = compile_error(raw)
        assert err.field == "name"
        assert err.rule_name == "<unnamed>"

    @pytest.mark.parametrize("key", ["action", "message", "on"])
    def test_missing_required(self, key):
        raw = raw_rule()
        del raw[key]
        err = compile_error(raw)
        assert err.rule_name == "no-todo"
        assert err.field == key

    @pytest.mark.parametrize("key", ["content", "new_string", "syntax_tree"])
    def test_null_match_kind(self, key):
        err = compile_error(raw_rule(match={key: None}))
        assert err.field == f"match.{key}"
        assert "must not be empty" in err.detail

    def test_missing_event(self):
        assert compile_error(raw_rule(on={"file": "*.rs"})).field == "on.event"

    def test_unknown_event(self):
        err = compile_error(raw_rule(on={"event": "file_delete"}))
        assert err.field == "on.event"

    def test_unknown_action(self):
        assert compile_error(raw_rule(action="block")).field == "action"

    def test_unknown_keys(self):
        assert "severity" in str(compile_error(raw_rule(severity="high")))
        assert compile_error(raw_rule(on={"event": "stop", "hook": "Stop"})).field == "on"
        assert compile_error(raw_rule(match={"body": "x"})).field == "match"

    def test_more_than_one_match_kind(self):
        err = compile_error(raw_rule(match={"content": "a", "prompt": "b"}))
        assert err.field == "match"
        assert "only one" in err.detail

    def test_edit_pair_with_other_kind(self):
        assert compile_error(raw_rule(match={"new_string": "a", "content": "b"})).field == "match"

    def test_malformed_regex(self):
        err = compile_error(raw_rule(match={"content": "(unclosed"}))
        assert err.field == "match.content"
        assert "no-todo" in str(err)

    def test_malformed_tool_regex(self):
        assert compile_error(raw_rule(on={"event": "file_write", "tool": "["})).field == "on.tool"

    def test_malformed_glob(self):
        assert compile_error(raw_rule(on={"event": "file_write", "file": "src/[abc"})).field == "on.file"

    def test_malformed_query(self):
        err = compile_error(raw_rule(match={"syntax_tree": {"language": "python", "query": "(call"}}))
        assert err.field == "match.syntax_tree.query"

    def test_unsupported_language(self):
        err = compile_error(raw_rule(match={"syntax_tree": {"language": "cobol", "query": "(x) @x"}}))
        assert err.field == "match.syntax_tree.language"

    def test_between_requires_condition(self):
        err = compile_error(
            raw_rule(
                match={
                    "syntax_tree": {
                        "language": "python",
                        "query": "(call) @c",
                        "between": {"from": "c", "to": "c"},
                    }
                }
            )
        )
        assert err.field == "match.syntax_tree.between"

    def test_between_unknown_label(self):
        err = compile_error(
            raw_rule(
                match={
                    "syntax_tree": {
                        "language": "python",
                        "query": "(call) @c",
                        "between": {"from": "c", "to": "missing", "contains": "x"},
                    }
                }
            )
        )
        assert "@missing" in err.detail

    def test_non_boolean_option(self):
        assert compile_error(raw_rule(match={"content": "x", "multiline": "yes"})).field == "match.multiline"

    def test_not_a_mapping(self):
        with pytest.raises(RuleCompileError):
            compile_rule(["not", "a", "rule"])

    def test_compile_error_is_value_error(self):
        assert issubclass(RuleCompileError, ValueError)


class TestCompileRules:
    def test_preserves_order_and_returns_tuple(self):
        rules = compile_rules([raw_rule(name="a"), raw_rule(name="b"), raw_rule(name="c")])
        assert isinstance(rules, tuple)
        assert [r.name for r in rules] == ["a", "b", "c"]

    def test_duplicate_names_warn(self, capsys):
        rules = compile_rules([raw_rule(name="dup"), raw_rule(name="dup")])
        assert len(rules) == 2
        assert "Duplicate rule name 'dup'" in capsys.readouterr().err

    def test_first_error_propagates(self):
        with pytest.raises(RuleCompileError) as excinfo:
            compile_rules([raw_rule(name="ok"), raw_rule(name="bad", action="nope")])
        assert excinfo.value.rule_name == "bad"
