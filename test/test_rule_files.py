"""Tests for rule file discovery and loading (YAML and Hy)."""
import textwrap
from pathlib import Path

import pytest

from conftest import EXAMPLES_DIR
from rules.config import (
    RuleLoadError,
    compile_files,
    discover_rule_files,
    load_rule_file,
    load_rules,
    load_yaml_rules,
)
from rules.hy_loader import load_hy_rules
from rules.ir import Action, AlwaysMatch, FieldRegexMatch, SyntaxTreeMatch


def write_file(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")
    return path


def yaml_rules(*names: str) -> str:
    body = "version: 1\nrules:\n"
    for name in names:
        body += (
            f"  - name: {name}\n"
            f"    on: {{event: file_write}}\n"
            f"    action: continue\n"
            f"    message: {name}\n"
        )
    return body


class TestYamlLoading:
    def test_load_raw_rules(self, tmp_path):
        path = write_file(
            tmp_path / "rules.yaml",
            """
            version: 1
            rules:
              - name: no-todo
                on:
                  event: file_write
                  file: "**/*.rs"
                match:
                  content: "TODO|FIXME"
                action: interrupt
                message: "Found {{ matched }}"
            """,
        )
        raws = load_yaml_rules(path)
        assert raws == [
            {
                "name": "no-todo",
                "on": {"event": "file_write", "file": "**/*.rs"},
                "match": {"content": "TODO|FIXME"},
                "action": "interrupt",
                "message": "Found {{ matched }}",
            }
        ]

    def test_only_true_false_are_booleans(self, tmp_path):
        path = write_file(
            tmp_path / "rules.yaml",
            """
            version: 1
            rules:
              - name: flags
                on: {event: prompt}
                match: {prompt: "yes|no", case_sensitive: false, multiline: True}
                action: continue
                message: off
            """,
        )
        raw = load_yaml_rules(path)[0]
        assert raw["on"] == {"event": "prompt"}
        assert raw["match"]["case_sensitive"] is False
        assert raw["match"]["multiline"] is True
        assert raw["message"] == "off"

    def test_empty_file(self, tmp_path):
        assert load_yaml_rules(write_file(tmp_path / "empty.yaml", "")) == []

    def test_version_required(self, tmp_path):
        path = write_file(tmp_path / "rules.yaml", "rules: []\n")
        with pytest.raises(RuleLoadError, match="version"):
            load_yaml_rules(path)

    def test_invalid_yaml(self, tmp_path):
        path = write_file(tmp_path / "rules.yaml", "version: 1\nrules: [\n")
        with pytest.raises(RuleLoadError) as excinfo:
            load_yaml_rules(path)
        assert excinfo.value.path == path

    def test_rules_must_be_list(self, tmp_path):
        path = write_file(tmp_path / "rules.yaml", "version: 1\nrules: {name: x}\n")
        with pytest.raises(RuleLoadError):
            load_yaml_rules(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(RuleLoadError, match="cannot read"):
            load_yaml_rules(tmp_path / "missing.yaml")

    def test_compile_error_names_file(self, tmp_path):
        path = write_file(
            tmp_path / "bad.yaml",
            """
            version: 1
            rules:
              - name: broken
                on: {event: file_write}
                match: {content: "(unclosed"}
                action: interrupt
                message: x
            """,
        )
        with pytest.raises(RuleLoadError) as excinfo:
            compile_files([path])
        assert excinfo.value.path == path
        assert "broken" in str(excinfo.value)
        assert "match.content" in str(excinfo.value)

    def test_unsupported_suffix(self, tmp_path):
        with pytest.raises(RuleLoadError):
            load_rule_file(write_file(tmp_path / "rules.toml", ""))


class TestHyLoading:
    def test_defrule_calls_become_raw_rules(self, tmp_path):
        path = write_file(
            tmp_path / "rules.hy",
            """
            (defrule "no-unwrap"
              :description "Prefer ?"
              :on {"event" "file_write" "file" "**/*.rs"}
              :match {"content" "\\\\.unwrap\\\\(\\\\)"}
              :action "continue"
              :message "Avoid unwrap() on lines {{ lines }}")

            (defrule "stop-check"
              :on {:event "stop"}
              :match {:message "done" :case-sensitive False}
              :action "interrupt"
              :message "Verify before finishing")
            """,
        )
        raws = load_hy_rules(str(path))
        assert [r["name"] for r in raws] == ["no-unwrap", "stop-check"]
        assert raws[0]["on"] == {"event": "file_write", "file": "**/*.rs"}
        assert raws[0]["match"] == {"content": "\\.unwrap\\(\\)"}
        assert raws[1]["on"] == {"event": "stop"}
        assert raws[1]["match"] == {"message": "done", "case_sensitive": False}

    def test_each_load_is_independent(self, tmp_path):
        path = write_file(tmp_path / "one.hy", '(defrule "only" :on {"event" "stop"} :action "continue" :message "m")\n')
        assert len(load_hy_rules(str(path))) == 1
        assert len(load_hy_rules(str(path))) == 1

    def test_broken_hy_file(self, tmp_path):
        path = write_file(tmp_path / "broken.hy", "(defrule \"x\"\n")
        with pytest.raises(RuleLoadError) as excinfo:
            load_rule_file(path)
        assert excinfo.value.path == path

    def test_hy_rules_compile(self, tmp_path):
        path = write_file(
            tmp_path / "rules.hy",
            '(defrule "p" :on {"event" "prompt"} :match {"prompt" "deploy"} :action "continue" :message "m")\n',
        )
        rules = compile_files([path])
        assert isinstance(rules[0].match, FieldRegexMatch)


class TestDiscovery:
    def test_no_rule_files(self, project_dir):
        assert discover_rule_files() == []
        assert load_rules() == ()

    def test_discovery_order(self, project_dir, isolated_config):
        user = write_file(isolated_config / "rules.yaml", yaml_rules("user"))
        project_yaml = write_file(project_dir / ".nudge.yaml", yaml_rules("project-yaml"))
        project_hy = write_file(
            project_dir / ".nudge.hy",
            '(defrule "project-hy" :on {"event" "stop"} :action "continue" :message "m")\n',
        )
        b = write_file(project_dir / ".nudge" / "b.yml", yaml_rules("dir-b"))
        a = write_file(project_dir / ".nudge" / "a.yaml", yaml_rules("dir-a"))
        nested = write_file(project_dir / ".nudge" / "sub" / "c.yaml", yaml_rules("dir-c"))
        write_file(project_dir / ".nudge" / "_private.yaml", yaml_rules("private"))
        write_file(project_dir / ".nudge" / "notes.md", "not rules")

        assert discover_rule_files() == [user, project_yaml, project_hy, a, b, nested]
        assert [r.name for r in load_rules()] == ["user", "project-yaml", "project-hy", "dir-a", "dir-b", "dir-c"]

    def test_explicit_project_dir(self, tmp_path):
        other = tmp_path / "other"
        write_file(other / ".nudge.yaml", yaml_rules("x"))
        assert [r.name for r in load_rules(other)] == ["x"]

    def test_duplicates_across_files_warn(self, project_dir, capsys):
        write_file(project_dir / ".nudge.yaml", yaml_rules("same"))
        write_file(project_dir / ".nudge" / "more.yaml", yaml_rules("same"))
        rules = load_rules()
        assert len(rules) == 2
        assert "Duplicate rule name 'same'" in capsys.readouterr().err

    def test_broken_file_raises(self, project_dir):
        write_file(project_dir / ".nudge.yaml", "version: 2\nrules: []\n")
        with pytest.raises(RuleLoadError):
            load_rules()


class TestExampleRules:
    def test_rust_examples(self):
        rules = compile_files([EXAMPLES_DIR / "rust.yaml"])
        names = [r.name for r in rules]
        assert names == ["no-todo", "no-unwrap", "no-inline-use", "blank-line-between-functions"]
        assert rules[0].action == Action.INTERRUPT
        assert isinstance(rules[2].match, SyntaxTreeMatch)
        assert rules[3].match.between is not None

    def test_python_examples(self):
        rules = compile_files([EXAMPLES_DIR / "python.hy"])
        assert [r.name for r in rules] == ["no-print", "no-console-log-prompt"]
        assert isinstance(rules[0].match, SyntaxTreeMatch)
        assert not rules[1].match.matcher.case_sensitive
        assert not isinstance(rules[1].match, AlwaysMatch)
