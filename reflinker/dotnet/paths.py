"""Conversion between backslash-separated paths in VS files and native paths."""

from __future__ import annotations

import os


def resolve_path(path: str, anchor_dir: str) -> str:
    """Resolve a path as written in a .sln/.csproj against ``anchor_dir``."""
    native = path.replace("\\", os.sep)
    return os.path.normpath(os.path.join(anchor_dir, native))


def relative_path(path: str, destination: str) -> str:
    """Express ``path`` relative to the directory of the file ``destination``.

    The result always uses backslashes, as Visual Studio writes them.
    """
    base = os.path.dirname(os.path.abspath(destination))
    try:
        rel = os.path.relpath(path, base)
    except ValueError:
        # Different drive on Windows
        rel = path
    return rel.replace(os.sep, "\\")


def marked_path(path: str, marker: str) -> str:
    """``App.sln`` -> ``App.<marker>.sln``."""
    root, ext = os.path.splitext(path)
    return f"{root}.{marker}{ext}"
