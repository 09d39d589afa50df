import os
import sys
from pathlib import Path

import pytest


# Ensure the project `src` directory is on sys.path so tests can import
# modules like `pipeline`, `matchers`, `rules`, etc.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
EXAMPLES_DIR = PROJECT_ROOT / "examples"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

# Disable colors before importing reporter (evaluated at import time)
os.environ["NUDGE_NO_COLORS"] = "1"


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Use an isolated, empty user config directory for each test to prevent test pollution."""
    config_dir = tmp_path / "nudge_config"
    config_dir.mkdir()
    monkeypatch.setenv("NUDGE_CONFIG_DIR", str(config_dir))
    monkeypatch.delenv("NUDGE_DEBUG", raising=False)
    yield config_dir


@pytest.fixture
def project_dir(tmp_path, monkeypatch):
    """Empty project directory, made the working directory for rule discovery."""
    project = tmp_path / "project"
    project.mkdir()
    monkeypatch.chdir(project)
    return project
