"""
Source code parsing with tree-sitter.

Grammars come from the per-language `tree-sitter-*` packages and are loaded
lazily, the first time a rule or a command asks for that language.
"""

import importlib
import sys
from functools import lru_cache
from typing import Dict, List, Tuple

from core.utils import error, debug
from matchers.utils import Source, get_source_bytes, extract_text

try:
    from tree_sitter import Language, Parser, Tree
except ImportError:
    error("tree-sitter not installed. Run: pip install -e .")
    sys.exit(1)


# language name -> (grammar module, function returning the language pointer)
GRAMMARS: Dict[str, Tuple[str, str]] = {
    "rust": ("tree_sitter_rust", "language"),
    "python": ("tree_sitter_python", "language"),
    "javascript": ("tree_sitter_javascript", "language"),
    "typescript": ("tree_sitter_typescript", "language_typescript"),
    "tsx": ("tree_sitter_typescript", "language_tsx"),
    "go": ("tree_sitter_go", "language"),
    "java": ("tree_sitter_java", "language"),
    "csharp": ("tree_sitter_c_sharp", "language"),
    "haskell": ("tree_sitter_haskell", "language"),
}

LANGUAGE_ALIASES = {
    "rs": "rust",
    "py": "python",
    "js": "javascript",
    "ts": "typescript",
    "c#": "csharp",
    "c_sharp": "csharp",
    "hs": "haskell",
}


class UnsupportedLanguageError(ValueError):
    """Language name has no registered grammar."""

    pass


class SourceParseError(RuntimeError):
    """The text being matched could not be parsed for the requested language."""

    pass


def supported_languages() -> List[str]:
    return sorted(GRAMMARS)


def normalize_language(name: str) -> str:
    key = str(name).strip().lower()
    key = LANGUAGE_ALIASES.get(key, key)
    if key not in GRAMMARS:
        raise UnsupportedLanguageError(
            f"unsupported language {name!r} (supported: {', '.join(supported_languages())})"
        )
    return key


@lru_cache(maxsize=None)
def get_language(name: str) -> Language:
    """Load the tree-sitter Language for `name` (cached per process)."""
    key = normalize_language(name)
    module_name, attr = GRAMMARS[key]
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise UnsupportedLanguageError(
            f"grammar package for {key!r} is not installed ({module_name}): {e}"
        ) from e
    debug(f"Loaded tree-sitter grammar: {key}")
    return Language(getattr(module, attr)())


def parse_source(language: str, source_code: Source) -> Tree:
    """
    Parse source code and return the tree.

    A fresh Parser per call keeps concurrent evaluations independent.
    Trees containing ERROR nodes are returned as-is; only a parser failure raises.
    """
    lang = get_language(language)
    try:
        parser = Parser(lang)
        tree = parser.parse(get_source_bytes(source_code))
    except (ValueError, RuntimeError) as e:
        raise SourceParseError(f"failed to parse {language} source: {e}") from e
    if tree is None:
        raise SourceParseError(f"failed to parse {language} source")
    return tree


def find_error_nodes(node, source_code: str, errors: list, depth: int = 0, max_depth: int = 50) -> None:
    """Find ERROR nodes in the parse tree (for debugging parse failures)."""
    if depth > max_depth:
        return
    if node.type == "ERROR" or node.is_missing:
        text = extract_text(source_code, node.start_byte, node.end_byte)
        if len(text) > 100:
            text = text[:100] + "..."
        errors.append((node, depth, text))
    for child in node.children:
        find_error_nodes(child, source_code, errors, depth + 1, max_depth)
