"""
CLI helper functions: rule file collection, validation, sample events.
"""

from pathlib import Path
from typing import List, Optional, Tuple

from core.context import EventContext, EventKind
from core.utils import debug, error
from rules.config import (
    HY_SUFFIX,
    YAML_SUFFIXES,
    RuleLoadError,
    compile_files,
    discover_rule_files,
    load_rules,
)
from rules.ir import CompiledRule, Registry


def collect_rule_files(rule_path: str) -> List[str]:
    """Collect rule files from a path (file or directory)."""
    path = Path(rule_path)
    if not path.exists():
        return []
    if path.is_file():
        return [str(path)]
    if path.is_dir():
        rule_files = []
        for file_path in path.rglob("*"):
            # Skip private files (starting with _)
            if file_path.name.startswith("_") or not file_path.is_file():
                continue
            if file_path.suffix in YAML_SUFFIXES + (HY_SUFFIX,):
                rule_files.append(str(file_path))
        return sorted(rule_files)
    return []


def load_rules_or_report(project_dir: Optional[str] = None) -> Optional[Registry]:
    """Load every discoverable rule; prints the error and returns None on failure."""
    try:
        rules = load_rules(project_dir)
    except RuleLoadError as e:
        error(f"Failed to load rules: {e}")
        return None
    debug(f"Loaded {len(rules)} rule(s)")
    return rules


def validate_rule_files(rule_path: Optional[str] = None) -> List[Tuple[str, Optional[int], Optional[str]]]:
    """
    Compile each rule file independently.

    Returns: (path, rule count or None, error message or None) per file
    """
    if rule_path is None:
        files = [str(p) for p in discover_rule_files()]
    else:
        files = collect_rule_files(rule_path)

    results = []
    for rule_file in files:
        try:
            rules = compile_files([rule_file])
            results.append((rule_file, len(rules), None))
        except RuleLoadError as e:
            results.append((rule_file, None, e.detail))
    return results


def find_rules(rules: Registry, name: str) -> List[CompiledRule]:
    return [rule for rule in rules if rule.name == name]


def build_sample_event(
    event: Optional[str],
    rule: Optional[CompiledRule] = None,
    tool: Optional[str] = None,
    file_path: Optional[str] = None,
    content: Optional[str] = None,
    old_string: Optional[str] = None,
    prompt: Optional[str] = None,
    message: Optional[str] = None,
) -> EventContext:
    """
    Build an event for `nudge test` from command-line values.

    The event kind defaults to the one the rule activates on.
    Raises ValueError on an unknown event kind.
    """
    if event is not None:
        kind = EventKind.from_string(event)
    elif rule is not None:
        kind = rule.activation.event
    else:
        kind = EventKind.FILE_WRITE

    if kind == EventKind.FILE_WRITE:
        return EventContext.file_write(file_path, content or "", tool_name=tool or "Write")
    if kind == EventKind.FILE_EDIT:
        return EventContext.file_edit(file_path, old_string or "", content or "", tool_name=tool or "Edit")
    if kind == EventKind.PROMPT:
        return EventContext.prompt(prompt if prompt is not None else content or "")
    if kind == EventKind.STOP:
        return EventContext.stop(message if message is not None else content)

    fields = {}
    if content is not None:
        fields["command"] = content
    return EventContext.tool_use(tool or "Bash", fields, file_path=file_path)
