"""
Matchers: file globs, regex content search, tree-sitter queries and the between-region filter.
"""

from matchers.glob import GlobError, GlobPattern
from matchers.regex import Occurrence, RegexMatcher
from matchers.parse import SourceParseError, UnsupportedLanguageError, supported_languages
from matchers.structural import Capture, CaptureSet, StructuralQuery, StructuralQueryError
from matchers.between import BetweenFilter

__all__ = [
    "GlobError",
    "GlobPattern",
    "Occurrence",
    "RegexMatcher",
    "SourceParseError",
    "UnsupportedLanguageError",
    "supported_languages",
    "Capture",
    "CaptureSet",
    "StructuralQuery",
    "StructuralQueryError",
    "BetweenFilter",
]
