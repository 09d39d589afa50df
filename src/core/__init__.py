from core.context import EventContext, EventKind
from core.utils import debug, info, warn, error

__all__ = [
    "EventContext",
    "EventKind",
    "debug",
    "info",
    "warn",
    "error",
]
