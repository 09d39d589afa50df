"""
Describes the immutable snapshot of one hook occurrence that rules are evaluated against.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional


class EventKind(Enum):
    """Kinds of code-editing activity a rule can activate on."""

    FILE_WRITE = "file_write"
    FILE_EDIT = "file_edit"
    PROMPT = "prompt"
    STOP = "stop"
    TOOL_USE = "tool_use"

    @classmethod
    def from_string(cls, s: str) -> "EventKind":
        """Parse event kind from string (`file-write` and `FILE_WRITE` are accepted too)."""
        s_norm = s.strip().lower().replace("-", "_")
        for kind in cls:
            if kind.value == s_norm:
                return kind
        raise ValueError(f"Unknown event kind: {s}")


@dataclass(frozen=True)
class EventContext:
    """
    One occurrence of editing activity.

    Text fields by kind:
    * file_write: `content`
    * file_edit: `old_string`, `new_string`
    * prompt: `prompt`
    * stop: `message`
    * tool_use: string values of the tool input (`command`, `url`, ...)
    """

    kind: EventKind
    file_path: Optional[str] = None
    fields: Mapping[str, str] = field(default_factory=dict)
    tool_name: Optional[str] = None

    def __post_init__(self):
        # Freeze the field mapping so evaluations can never mutate it
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    def get_field(self, name: str) -> Optional[str]:
        return self.fields.get(name)

    @classmethod
    def file_write(cls, file_path: Optional[str], content: str, tool_name: Optional[str] = "Write") -> "EventContext":
        return cls(EventKind.FILE_WRITE, file_path, {"content": content}, tool_name)

    @classmethod
    def file_edit(
        cls,
        file_path: Optional[str],
        old_string: str,
        new_string: str,
        tool_name: Optional[str] = "Edit",
    ) -> "EventContext":
        return cls(EventKind.FILE_EDIT, file_path, {"old_string": old_string, "new_string": new_string}, tool_name)

    @classmethod
    def prompt(cls, prompt: str) -> "EventContext":
        return cls(EventKind.PROMPT, None, {"prompt": prompt})

    @classmethod
    def stop(cls, message: Optional[str] = None) -> "EventContext":
        fields = {"message": message} if message is not None else {}
        return cls(EventKind.STOP, None, fields)

    @classmethod
    def tool_use(cls, tool_name: str, tool_input: Mapping[str, str], file_path: Optional[str] = None) -> "EventContext":
        return cls(EventKind.TOOL_USE, file_path, tool_input, tool_name)
