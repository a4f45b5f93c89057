from __future__ import annotations

import os
import shutil

import pytest

FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "fixtures")


@pytest.fixture
def repo(tmp_path):
    """A writable copy of the App + Widgets fixture tree."""
    root = tmp_path / "repo"
    for name in ("app", "Widgets"):
        shutil.copytree(os.path.join(FIXTURES_DIR, name), root / name)
    return root
