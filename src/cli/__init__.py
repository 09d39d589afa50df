"""
CLI utilities: hook boundary, rule file helpers, debug commands.
"""

from cli.helpers import (
    collect_rule_files,
    load_rules_or_report,
    validate_rule_files,
    find_rules,
    build_sample_event,
)
from cli.hook import (
    event_from_payload,
    build_output,
    handle_hook,
    emit,
    HookOutput,
)
from cli.debug import dump_syntax_tree

__all__ = [
    "collect_rule_files",
    "load_rules_or_report",
    "validate_rule_files",
    "find_rules",
    "build_sample_event",
    "event_from_payload",
    "build_output",
    "handle_hook",
    "emit",
    "HookOutput",
    "dump_syntax_tree",
]
