"""TOML reading and writing utilities.

Uses tomlkit to preserve formatting and comments when modifying
pyproject.toml files. This is important for keeping release commits
small and diff-friendly.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import tomlkit


def load_pyproject(path: Path) -> tomlkit.TOMLDocument:
    """Load and parse a pyproject.toml file.

    Returns a TOMLDocument that preserves formatting when modified and saved.
    """
    return tomlkit.parse(path.read_text(encoding="utf-8"))


def save_pyproject(path: Path, doc: tomlkit.TOMLDocument) -> None:
    """Save a TOMLDocument back to disk, preserving original formatting."""
    path.write_text(tomlkit.dumps(doc), encoding="utf-8")


def get_project_version(doc: tomlkit.TOMLDocument) -> str | None:
    """Extract the version from [project] or, failing that, [tool.poetry].

    Returns None when neither table declares a static version (for
    example when the version is dynamic).
    """
    version = doc.get("project", {}).get("version")
    if version is None:
        version = doc.get("tool", {}).get("poetry", {}).get("version")
    return str(version) if version is not None else None


def set_project_version(doc: tomlkit.TOMLDocument, version: str) -> bool:
    """Write ``version`` to whichever table holds the static version.

    [project].version wins over [tool.poetry].version, mirroring
    get_project_version(). Returns False when neither table has one, in
    which case the document is left untouched.
    """
    project = doc.get("project")
    if project is not None and "version" in project:
        project["version"] = version
        return True
    poetry = doc.get("tool", {}).get("poetry")
    if poetry is not None and "version" in poetry:
        poetry["version"] = version
        return True
    return False


def get_tool_table(doc: tomlkit.TOMLDocument, name: str) -> dict[str, Any]:
    """Return [tool.<name>] as plain Python values, or {} when absent."""
    table = doc.get("tool", {}).get(name)
    if table is None:
        return {}
    return dict(table.unwrap())
