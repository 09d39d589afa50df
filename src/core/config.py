"""
Environment configuration: config directory, debug output, colors.
"""

import os
from pathlib import Path


# Project-level rule sources, relative to the working directory
PROJECT_RULE_FILES = (".nudge.yaml", ".nudge.hy")
PROJECT_RULE_DIR = ".nudge"

# User-level rule file inside the config directory
USER_RULE_FILE = "rules.yaml"


def config_dir() -> Path:
    """User config directory: $NUDGE_CONFIG_DIR, else $XDG_CONFIG_HOME/nudge, else ~/.config/nudge."""
    override = os.environ.get("NUDGE_CONFIG_DIR")
    if override:
        return Path(override)
    xdg = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg) if xdg else Path.home() / ".config"
    return base / "nudge"


def debug_enabled() -> bool:
    return bool(os.getenv("NUDGE_DEBUG"))


def colors_enabled() -> bool:
    return not os.environ.get("NUDGE_NO_COLORS")
