"""
Hy Rules Loader - load rules written in Hy.

A rule file calls `defrule` once per rule; keyword arguments mirror the YAML keys:

    (defrule "no-unwrap"
      :description "Prefer ? over unwrap()"
      :on {"event" "file_write" "file" "**/*.rs"}
      :match {"content" "\\.unwrap\\(\\)"}
      :action "continue"
      :message "Avoid unwrap() on lines {{ lines }}")

Hy keywords are accepted as mapping keys too (`{:event "file_write"}`),
with dashes read as underscores (`:case-sensitive`).

Usage:
    from rules.hy_loader import load_hy_rules
    raws = load_hy_rules(".nudge/rust.hy")
"""

from pathlib import Path
from typing import Any, Dict, List

from core.utils import debug


def _ensure_hy_imported():
    """Ensure Hy is installed and importable."""
    try:
        import hy
        import hy.importer

        return hy
    except ImportError:
        raise ImportError("Hy is not installed. Install with: pip install hy\nRequired version: hy>=1.0")


def _plain_key(key: Any) -> Any:
    """Hy keyword `:case-sensitive` -> "case_sensitive"; other keys unchanged."""
    hy = _ensure_hy_imported()
    if isinstance(key, hy.models.Keyword):
        return key.name.replace("-", "_")
    return key


def to_plain(value: Any) -> Any:
    """Convert Hy data (keyword keys, Hy collections) into plain Python mappings and lists."""
    if isinstance(value, dict):
        return {_plain_key(k): to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    return value


class RuleCollector:
    """
    Receives `defrule` calls while one Hy file executes.

    Each load gets its own collector, so loading files never touches shared state.
    """

    def __init__(self):
        self.raws: List[Dict[str, Any]] = []

    def defrule(self, name: str, **kwargs) -> Dict[str, Any]:
        raw = {"name": name}
        raw.update({k: to_plain(v) for k, v in kwargs.items()})
        self.raws.append(raw)
        return raw


def load_hy_rules(path: str) -> List[Dict[str, Any]]:
    """
    Load all raw rules from a single .hy file.

    Args:
        path: Path to .hy file

    Returns:
        Raw rule mappings in definition order (compile with rules.compiler)

    Raises:
        RuntimeError: the file failed to execute
    """
    hy = _ensure_hy_imported()

    abs_path = str(Path(path).resolve())
    collector = RuleCollector()

    # Execute the Hy file - this triggers defrule calls which collect rules
    try:
        hy.importer.runhy.run_path(abs_path, init_globals={"defrule": collector.defrule})
    except Exception as e:
        raise RuntimeError(f"Failed to load Hy rules from {path}: {e}") from e

    debug(f"Loaded {len(collector.raws)} rule(s) from {path}")
    return collector.raws
