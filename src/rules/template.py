"""
Message templates.

Placeholders are `{{ name }}` (spaces optional):
* `lines`     - unique 1-based occurrence lines in order, joined by ", "
* `file_path` - path of the file being written/edited
* `matched`   - text of the first occurrence
* `tool_name` - name of the tool being used
* `prompt`    - the submitted prompt
* `$key`      - capture of the first occurrence (`$1`, `$name`, or a query label)

Known names without a value render as "". Unknown names are left as-is.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from core.context import EventContext
from matchers.regex import Occurrence


PLACEHOLDER_RE = re.compile(r"\{\{\s*(\$?[\w.-]+)\s*\}\}")

KNOWN_PLACEHOLDERS = ("lines", "file_path", "matched", "tool_name", "prompt")


@dataclass(frozen=True)
class MatchValues:
    """Values harvested from one rule match for template substitution."""

    lines: List[int] = field(default_factory=list)
    file_path: Optional[str] = None
    matched: Optional[str] = None
    tool_name: Optional[str] = None
    prompt: Optional[str] = None
    captures: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_match(cls, event: EventContext, occurrences: Sequence[Occurrence]) -> "MatchValues":
        lines: List[int] = []
        for occ in occurrences:
            if occ.line not in lines:
                lines.append(occ.line)
        first = occurrences[0] if occurrences else None
        return cls(
            lines=lines,
            file_path=event.file_path,
            matched=first.matched if first else None,
            tool_name=event.tool_name,
            prompt=event.get_field("prompt"),
            captures=dict(first.captures) if first else {},
        )

    def lookup(self, name: str) -> Optional[str]:
        """Rendered value of a placeholder, or None when the name is unknown."""
        if name.startswith("$"):
            return self.captures.get(name[1:], "")
        if name == "lines":
            return ", ".join(str(line) for line in self.lines)
        if name in KNOWN_PLACEHOLDERS:
            value = getattr(self, name)
            return "" if value is None else str(value)
        return None


def render_message(template: str, values: MatchValues) -> str:
    """Substitute placeholders in one pass; substituted text is never re-scanned."""

    def replace(m: re.Match) -> str:
        value = values.lookup(m.group(1))
        return m.group(0) if value is None else value

    return PLACEHOLDER_RE.sub(replace, template)
