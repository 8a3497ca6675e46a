import os
import sys
import warnings
from pathlib import Path

import pytest

# Suppress warnings
warnings.filterwarnings("ignore")


# =============================================================================
# Project path setup
# =============================================================================
def _setup_project_path():
    """Add project root to sys.path by finding repo marker files.

    Walks up from this file's directory to find the repository root
    (identified by pyproject.toml, setup.cfg, or .git), then adds it
    to sys.path if not already present.
    """
    current = Path(__file__).resolve().parent
    repo_markers = ["pyproject.toml", "setup.cfg", ".git"]

    # Walk up the directory tree
    for parent in [current] + list(current.parents):
        # Check if any repo marker exists in this directory
        if any((parent / marker).exists() for marker in repo_markers):
            repo_root = str(parent)
            if repo_root not in sys.path:
                sys.path.insert(0, repo_root)
            return repo_root

    # Fallback: couldn't find repo root
    raise RuntimeError(
        f"Could not find repository root from {__file__}. "
        f"Looked for: {', '.join(repo_markers)}"
    )


# Set up project path before any imports
_setup_project_path()

from common.config_utils import ENV_PREFIX  # noqa: E402
from common.settings import reset_settings  # noqa: E402


# =============================================================================
# Settings isolation
# =============================================================================
@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Every test starts from default settings, whatever the shell exports."""
    for key in list(os.environ):
        if key.startswith(ENV_PREFIX):
            monkeypatch.delenv(key, raising=False)
    reset_settings()
    yield
    reset_settings()
