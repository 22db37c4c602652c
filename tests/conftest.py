"""Root test configuration: session-level cleanup of runtime artifacts"""

import os
import shutil
from pathlib import Path

import pytest


_PROJECT_ROOT = Path(__file__).parent.parent

_CLEANUP_FILES = ["blockpub.db", "test.db", "block.json"]
_CLEANUP_DIRS = [".blockpub"]


@pytest.fixture(scope="session", autouse=True)
def cleanup_artifacts():
    """Remove DB files, documents, and key directories created during the test session."""
    yield
    for name in _CLEANUP_FILES:
        p = _PROJECT_ROOT / name
        if p.exists():
            p.unlink()
    for name in _CLEANUP_DIRS:
        p = _PROJECT_ROOT / name
        if p.exists():
            shutil.rmtree(p)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep BLOCKPUB_* variables from the developer's shell out of every test."""
    for name in list(os.environ):
        if name.startswith("BLOCKPUB_"):
            monkeypatch.delenv(name)
