"""
Rule file discovery and loading.

Sources, all additive, in this order:
1. `$NUDGE_CONFIG_DIR/rules.yaml` (user rules, default `~/.config/nudge`)
2. `.nudge.yaml` and `.nudge.hy` in the project directory
3. every `*.yaml`, `*.yml` and `*.hy` under `.nudge/`, walked recursively in
   sorted order; names starting with `_` are skipped

YAML documents look like:

    version: 1
    rules:
      - name: no-todo
        on: {event: file_write}
        match: {content: "TODO|FIXME"}
        action: interrupt
        message: "Resolve TODOs before writing (lines {{ lines }})"
"""

import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import yaml

from core.config import PROJECT_RULE_DIR, PROJECT_RULE_FILES, USER_RULE_FILE, config_dir
from core.utils import debug
from rules.compiler import compile_rules, warn_duplicates
from rules.hy_loader import load_hy_rules
from rules.ir import CompiledRule, Registry, RuleCompileError


SUPPORTED_VERSIONS = (1,)
YAML_SUFFIXES = (".yaml", ".yml")
HY_SUFFIX = ".hy"


class _RuleYamlLoader(yaml.SafeLoader):
    """SafeLoader where only `true`/`false` are booleans, so the `on:` key stays a string."""


_BOOL_TAG = "tag:yaml.org,2002:bool"
_RuleYamlLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != _BOOL_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
_RuleYamlLoader.add_implicit_resolver(
    _BOOL_TAG,
    re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"),
    list("tTfF"),
)


class RuleLoadError(RuntimeError):
    """A rule file exists but could not be read, parsed or compiled."""

    def __init__(self, path: Union[str, Path], detail: str):
        self.path = Path(path)
        self.detail = detail
        super().__init__(f"{path}: {detail}")


def load_yaml_rules(path: Union[str, Path]) -> List[Dict[str, Any]]:
    """Read raw rules from one YAML file."""
    path = Path(path)
    try:
        data = yaml.load(path.read_text(encoding="utf-8"), Loader=_RuleYamlLoader)
    except OSError as e:
        raise RuleLoadError(path, f"cannot read file: {e}") from e
    except yaml.YAMLError as e:
        raise RuleLoadError(path, f"invalid YAML: {e}") from e

    if data is None:
        return []
    if not isinstance(data, dict):
        raise RuleLoadError(path, f"expected a mapping with `version` and `rules`, got {type(data).__name__}")

    version = data.get("version")
    if version not in SUPPORTED_VERSIONS:
        raise RuleLoadError(path, f"unsupported version {version!r} (expected 1)")

    rules = data.get("rules") or []
    if not isinstance(rules, list):
        raise RuleLoadError(path, "`rules` must be a list")
    return rules


def load_rule_file(path: Union[str, Path]) -> List[Dict[str, Any]]:
    """Read raw rules from a YAML or Hy file, chosen by suffix."""
    path = Path(path)
    if path.suffix == HY_SUFFIX:
        try:
            return load_hy_rules(str(path))
        except RuntimeError as e:
            raise RuleLoadError(path, str(e.__cause__ or e)) from e
    if path.suffix in YAML_SUFFIXES:
        return load_yaml_rules(path)
    raise RuleLoadError(path, f"unsupported rule file type {path.suffix!r}")


def _is_rule_file(path: Path) -> bool:
    return path.is_file() and not path.name.startswith("_") and path.suffix in YAML_SUFFIXES + (HY_SUFFIX,)


def discover_rule_files(project_dir: Optional[Union[str, Path]] = None) -> List[Path]:
    """Existing rule files in load order."""
    project = Path(project_dir) if project_dir is not None else Path.cwd()
    found = []

    user_file = config_dir() / USER_RULE_FILE
    if user_file.is_file():
        found.append(user_file)

    for name in PROJECT_RULE_FILES:
        candidate = project / name
        if candidate.is_file():
            found.append(candidate)

    rule_dir = project / PROJECT_RULE_DIR
    if rule_dir.is_dir():
        found.extend(p for p in sorted(rule_dir.rglob("*")) if _is_rule_file(p))

    return found


def compile_files(paths: Iterable[Union[str, Path]]) -> Registry:
    """
    Load and compile rules from the given files, in order.

    Raises:
        RuleLoadError: a file is unreadable, malformed, or holds a rule that fails to compile
    """
    compiled: List[CompiledRule] = []
    for path in paths:
        raws = load_rule_file(path)
        try:
            compiled.extend(compile_rules(raws, check_duplicates=False))
        except RuleCompileError as e:
            raise RuleLoadError(path, str(e)) from e
        debug(f"  {path}: {len(raws)} rule(s)")
    warn_duplicates(compiled)
    return tuple(compiled)


def load_rules(project_dir: Optional[Union[str, Path]] = None) -> Registry:
    """Discover, load and compile every rule visible from `project_dir` (default: cwd)."""
    paths = discover_rule_files(project_dir)
    debug(f"Rule files: {', '.join(str(p) for p in paths) or '(none)'}")
    return compile_files(paths)
