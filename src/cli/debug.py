"""
Debug and development CLI commands: syntax tree dump, parse error check.
"""

from pathlib import Path
from typing import List, Optional, Tuple

from core.utils import error
from matchers.parse import find_error_nodes, parse_source
from matchers.utils import extract_text
from reporter import _C


def resolve_input(input_arg: str) -> str:
    """Treat the argument as a file path when such a file exists, otherwise as literal source."""
    path = Path(input_arg)
    try:
        if path.is_file():
            return path.read_text(encoding="utf-8")
    except (OSError, ValueError):
        pass
    return input_arg


def collect_syntax_nodes(source_code: str, node, depth: int = 0, field_name: Optional[str] = None) -> List[Tuple]:
    """Flatten the tree into (depth, field name, node kind, text) rows in document order."""
    rows = [(depth, field_name, node.type, extract_text(source_code, node.start_byte, node.end_byte))]
    for i, child in enumerate(node.children):
        rows.extend(collect_syntax_nodes(source_code, child, depth + 1, node.field_name_for_child(i)))
    return rows


def render_syntax_node(depth: int, field_name: Optional[str], kind: str, text: str) -> str:
    indent = "  " * depth
    field = f"{_C.CYAN}{field_name}:{_C.RESET} " if field_name else ""
    if len(text) <= 40 and "\n" not in text:
        return f"{indent}{field}{_C.GREEN}{kind}{_C.RESET} {_C.DIM}{text!r}{_C.RESET}"
    return f"{indent}{field}{_C.GREEN}{kind}{_C.RESET} {_C.DIM}..{_C.RESET}"


def check_parser_errors(label: str, source_code: str, root) -> bool:
    """Report ERROR/MISSING nodes. Returns True if any were found."""
    errors: list = []
    find_error_nodes(root, source_code, errors)
    if errors:
        error(f"{label}: {len(errors)} ERROR node(s); queries still run on the partial tree")
        for err_node, err_depth, err_text in errors:
            indent = "  " * err_depth
            error(f"{indent}ERROR [{err_node.start_byte}:{err_node.end_byte}] {repr(err_text)}")
        return True
    return False


def dump_syntax_tree(language: str, input_arg: str) -> int:
    """Print the syntax tree of a file or snippet, to help write structural queries."""
    source_code = resolve_input(input_arg)
    try:
        tree = parse_source(language, source_code)
    except Exception as e:
        error(f"Failed to parse: {e}")
        return 1

    for row in collect_syntax_nodes(source_code, tree.root_node):
        print(render_syntax_node(*row))

    check_parser_errors("input", source_code, tree.root_node)
    return 0
