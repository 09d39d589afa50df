"""Tests for CLI commands."""
import io
import json
import textwrap

import pytest

import main as nudge_main
from cli.debug import collect_syntax_nodes, resolve_input
from cli.helpers import build_sample_event, collect_rule_files
from core.context import EventKind
from matchers.parse import parse_source


RULES_YAML = textwrap.dedent(
    """
    version: 1
    rules:
      - name: no-todo
        description: no unfinished work
        on: {event: file_write, file: "**/*.rs"}
        match: {content: "TODO"}
        action: interrupt
        message: "TODO on line {{ lines }}"
      - name: no-deploy
        on: {event: prompt}
        match: {prompt: deploy}
        action: continue
        message: "Deploys go through CI"
    """
).lstrip()


@pytest.fixture
def project_with_rules(project_dir):
    (project_dir / ".nudge.yaml").write_text(RULES_YAML, encoding="utf-8")
    return project_dir


class TestHookCommand:
    def test_interrupt(self, project_with_rules):
        payload = json.dumps(
            {
                "hook_event_name": "PreToolUse",
                "tool_name": "Write",
                "tool_input": {"file_path": "src/lib.rs", "content": "// TODO"},
            }
        )
        out, err = io.StringIO(), io.StringIO()
        assert nudge_main.run_hook(io.StringIO(payload), out, err) == 2
        assert json.loads(err.getvalue())["hookSpecificOutput"]["permissionDecision"] == "deny"
        assert out.getvalue() == ""

    def test_passthrough(self, project_with_rules):
        payload = json.dumps({"hook_event_name": "UserPromptSubmit", "prompt": "write tests"})
        out, err = io.StringIO(), io.StringIO()
        assert nudge_main.run_hook(io.StringIO(payload), out, err) == 0
        assert out.getvalue() == "" and err.getvalue() == ""

    def test_broken_rules_pass_through(self, project_dir, capsys):
        (project_dir / ".nudge.yaml").write_text("version: 1\nrules: [\n", encoding="utf-8")
        payload = json.dumps({"hook_event_name": "UserPromptSubmit", "prompt": "deploy"})
        out, err = io.StringIO(), io.StringIO()
        assert nudge_main.run_hook(io.StringIO(payload), out, err) == 0
        assert out.getvalue() == "" and err.getvalue() == ""
        assert "Failed to load rules" in capsys.readouterr().err


class TestValidateCommand:
    def test_valid(self, project_with_rules, capsys):
        assert nudge_main.main(["validate"]) == 0
        assert "2 rule(s)" in capsys.readouterr().out

    def test_invalid_path(self, project_dir, capsys):
        bad = project_dir / "bad.yaml"
        bad.write_text("version: 1\nrules:\n  - name: x\n    on: {event: nope}\n    action: continue\n    message: m\n")
        assert nudge_main.main(["validate", str(bad)]) == 1
        assert "on.event" in capsys.readouterr().out

    def test_no_files(self, project_dir, capsys):
        assert nudge_main.main(["validate"]) == 1
        assert "No rule files found" in capsys.readouterr().err


class TestListCommand:
    def test_list(self, project_with_rules, capsys):
        assert nudge_main.main(["list"]) == 0
        out = capsys.readouterr().out
        assert "no-todo" in out and "no-deploy" in out
        assert "no unfinished work" in out

    def test_list_json(self, project_with_rules, capsys):
        assert nudge_main.main(["list", "-o", "json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert [r["name"] for r in data] == ["no-todo", "no-deploy"]
        assert data[0]["event"] == "file_write"


class TestTestCommand:
    def test_rule_fires(self, project_with_rules, capsys):
        code = nudge_main.main(["test", "--rule", "no-todo", "--file", "src/a.rs", "--content", "ok\n// TODO"])
        assert code == 0
        out = capsys.readouterr().out
        assert "INTERRUPT" in out
        assert "TODO on line 2" in out

    def test_full_output_annotates_source(self, project_with_rules, capsys):
        code = nudge_main.main(
            ["test", "--rule", "no-todo", "--file", "src/a.rs", "--content", "ok\n// TODO", "-o", "full"]
        )
        assert code == 0
        out = capsys.readouterr().out
        assert "error: Rule violation. Fix this error and immediately retry." in out
        assert "2 | // TODO" in out
        assert "  |    ^^^^ TODO on line 2" in out

    def test_rule_does_not_fire(self, project_with_rules, capsys):
        assert nudge_main.main(["test", "--rule", "no-todo", "--file", "src/a.rs", "--content", "fine"]) == 1
        assert "PASSTHROUGH" in capsys.readouterr().out

    def test_content_file_and_json(self, project_with_rules, capsys):
        sample = project_with_rules / "sample.rs"
        sample.write_text("// TODO\n", encoding="utf-8")
        code = nudge_main.main(
            ["test", "--rule", "no-todo", "--file", "a.rs", "--content-file", str(sample), "-o", "json"]
        )
        assert code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["decision"] == "interrupt"
        assert data["rules"][0]["occurrences"][0]["line"] == 1

    def test_prompt_rule(self, project_with_rules, capsys):
        assert nudge_main.main(["test", "--rule", "no-deploy", "--prompt", "deploy now"]) == 0
        assert "Deploys go through CI" in capsys.readouterr().out

    def test_unknown_rule(self, project_with_rules, capsys):
        assert nudge_main.main(["test", "--rule", "missing"]) == 1
        assert "Rule not found" in capsys.readouterr().err


class TestSyntaxTreeCommand:
    def test_dump_snippet(self, capsys):
        assert nudge_main.main(["syntax-tree", "--language", "python", "print(1)"]) == 0
        out = capsys.readouterr().out
        assert "module" in out
        assert "function: identifier 'print'" in out

    def test_dump_file(self, tmp_path, capsys):
        path = tmp_path / "a.rs"
        path.write_text("fn main() {}\n", encoding="utf-8")
        assert nudge_main.main(["syntax-tree", "-l", "rust", str(path)]) == 0
        assert "function_item" in capsys.readouterr().out

    def test_unknown_language(self, capsys):
        assert nudge_main.main(["syntax-tree", "-l", "cobol", "x"]) == 1
        assert "unsupported language" in capsys.readouterr().err

    def test_collect_nodes_depth_and_fields(self):
        code = "print(1)"
        rows = collect_syntax_nodes(code, parse_source("python", code).root_node)
        assert rows[0][:3] == (0, None, "module")
        assert (3, "function", "identifier", "print") in [r[:4] for r in rows]

    def test_resolve_input_literal(self):
        assert resolve_input("not/a/real/file.py") == "not/a/real/file.py"


class TestHelpers:
    def test_sample_event_defaults_to_rule_event(self):
        event = build_sample_event(None, content="x")
        assert event.kind == EventKind.FILE_WRITE
        assert build_sample_event("file_edit", content="new", old_string="old").get_field("old_string") == "old"
        assert build_sample_event("stop", message="done").get_field("message") == "done"
        assert build_sample_event("tool_use", tool="Bash", content="ls").get_field("command") == "ls"

    def test_sample_event_unknown_kind(self):
        with pytest.raises(ValueError):
            build_sample_event("nope")

    def test_collect_rule_files(self, tmp_path):
        (tmp_path / "a.yaml").write_text("")
        (tmp_path / "b.hy").write_text("")
        (tmp_path / "_skip.yaml").write_text("")
        (tmp_path / "c.txt").write_text("")
        assert collect_rule_files(str(tmp_path)) == [str(tmp_path / "a.yaml"), str(tmp_path / "b.hy")]
        assert collect_rule_files(str(tmp_path / "missing")) == []
