"""Version-bearing manifest files.

Rewrites the version field of the manifests configured in
``version_files``. Updates are best-effort: the release tag is the
source of truth, so a manifest that cannot be rewritten is reported
and skipped by the caller rather than aborting the release.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from tomlkit.exceptions import TOMLKitError

from .config import VersionerConfig
from .errors import ManifestUpdateError
from .toml import get_project_version, load_pyproject, save_pyproject, set_project_version
from .versions import parse_version


@contextmanager
def _manifest_errors(path: Path) -> Iterator[None]:
    """Turn read, decode, parse and write failures into ManifestUpdateError."""
    try:
        yield
    except (OSError, ValueError, TOMLKitError) as exc:
        raise ManifestUpdateError(f"Cannot update {path.name}: {exc}", path=str(path)) from exc


def rewrite_pyproject(path: Path, version: str) -> bool:
    """Update [project].version (or [tool.poetry].version) in place.

    Uses tomlkit to preserve formatting and comments. Returns False for
    a pyproject without a static version, e.g. one using a dynamic
    version plugin.
    """
    with _manifest_errors(path):
        doc = load_pyproject(path)
        if get_project_version(doc) == version:
            return False
        if not set_project_version(doc, version):
            return False
        save_pyproject(path, doc)
    return True


def rewrite_package_json(path: Path, version: str) -> bool:
    """Update the top-level "version" of a package.json."""
    with _manifest_errors(path):
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ManifestUpdateError(f"{path.name} is not a JSON object", path=str(path))
        if data.get("version") == version:
            return False
        data["version"] = version
        path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    return True


def rewrite_version_file(path: Path, version: str) -> bool:
    """Replace the contents of a plain VERSION file."""
    with _manifest_errors(path):
        if path.read_text(encoding="utf-8").strip() == version:
            return False
        path.write_text(version + "\n", encoding="utf-8")
    return True


def rewrite_by_pattern(path: Path, version: str, pattern: str) -> bool:
    """Replace group 1 of the first ``pattern`` match with ``version``."""
    with _manifest_errors(path):
        text = path.read_text(encoding="utf-8")
        match = re.search(pattern, text)
        if not match or match.group(1) == version:
            return False
        start, end = match.span(1)
        path.write_text(text[:start] + version + text[end:], encoding="utf-8")
    return True


def rewrite_manifest(path: Path, version: str, config: VersionerConfig) -> bool:
    """Dispatch on the file name to the matching rewriter."""
    name = path.name
    if name == "pyproject.toml":
        return rewrite_pyproject(path, version)
    if name == "package.json":
        return rewrite_package_json(path, version)
    if name == "VERSION":
        return rewrite_version_file(path, version)
    return rewrite_by_pattern(path, version, config.version_pattern)


def update_manifests(
    module_dir: Path, version: str, config: VersionerConfig
) -> tuple[list[Path], list[ManifestUpdateError]]:
    """Write ``version`` into every configured manifest that exists.

    Returns:
        Tuple of (files that changed, errors for files that could not be
        rewritten). Missing files are neither.
    """
    changed: list[Path] = []
    errors: list[ManifestUpdateError] = []
    for rel in config.version_files:
        path = module_dir / rel
        if not path.is_file():
            continue
        try:
            if rewrite_manifest(path, version, config):
                changed.append(path)
        except ManifestUpdateError as exc:
            errors.append(exc)
    return changed, errors


def read_manifest_version(module_dir: Path, config: VersionerConfig) -> str | None:
    """Return the first valid semantic version found in the manifests."""
    for rel in config.version_files:
        path = module_dir / rel
        if not path.is_file():
            continue
        try:
            version = _read_version(path, config)
        except (OSError, ValueError, TOMLKitError):
            continue
        if version and parse_version(version) is not None:
            return version
    return None


def _read_version(path: Path, config: VersionerConfig) -> str | None:
    if path.name == "pyproject.toml":
        return get_project_version(load_pyproject(path))
    if path.name == "package.json":
        data = json.loads(path.read_text(encoding="utf-8"))
        return data.get("version") if isinstance(data, dict) else None
    if path.name == "VERSION":
        return path.read_text(encoding="utf-8").strip()
    match = re.search(config.version_pattern, path.read_text(encoding="utf-8"))
    return match.group(1) if match else None
