"""
Rule engine: IR types, compiler, message templates and rule file loaders.

Rules are written in YAML or Hy; see examples/ in the repository root.
"""

from rules.ir import (
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
from rules.compiler import compile_rule, compile_rules
from rules.template import MatchValues, render_message
from rules.hy_loader import load_hy_rules
from rules.config import RuleLoadError, discover_rule_files, load_rules

__all__ = [
    # IR types
    "Action",
    "Activation",
    "AlwaysMatch",
    "CompiledRule",
    "EditRegexMatch",
    "FieldRegexMatch",
    "MatchClause",
    "Registry",
    "RuleCompileError",
    "SyntaxTreeMatch",
    # Compilation
    "compile_rule",
    "compile_rules",
    # Templates
    "MatchValues",
    "render_message",
    # Rule files
    "load_hy_rules",
    "RuleLoadError",
    "discover_rule_files",
    "load_rules",
]
