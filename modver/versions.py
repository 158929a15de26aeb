"""Version parsing, bumping and tag naming utilities.

Versions are ``semver.Version`` objects. Tags live in per-module
namespaces: ``<namespace>/v<version>``, or ``v<version>`` for the
repository root.
"""

from __future__ import annotations

import semver

from .models import Increment

ROOT_NAMESPACE = "."


def parse_version(version_str: str) -> semver.Version | None:
    """Parse a strict semantic version string.

    Returns None for anything that is not ``MAJOR.MINOR.PATCH`` with
    optional pre-release and build metadata, so callers can drop
    non-conforming tags without aborting.

    Examples:
        "1.2.3" → Version(1, 2, 3)
        "1.2.3-rc.1+build.5" → Version(1, 2, 3, "rc.1", "build.5")
        "1.x.y" → None
    """
    try:
        return semver.Version.parse(version_str.strip())
    except (TypeError, ValueError):
        return None


def increment_version(version: semver.Version, increment: Increment) -> semver.Version:
    """Apply an increment using the semver reset rules.

    Pre-release and build metadata are dropped on any bump.

    Examples:
        1.2.3 + major → 2.0.0
        1.2.3 + minor → 1.3.0
        1.2.3 + patch → 1.2.4
        1.2.3 + none  → 1.2.3
    """
    if increment is Increment.MAJOR:
        return semver.Version(version.major + 1, 0, 0)
    if increment is Increment.MINOR:
        return semver.Version(version.major, version.minor + 1, 0)
    if increment is Increment.PATCH:
        return semver.Version(version.major, version.minor, version.patch + 1)
    return version


def normalize_namespace(namespace: str | None) -> str:
    """Normalize a module path into a tag namespace.

    Examples:
        "./libs/a/" → "libs/a"
        "" → "."
        "." → "."
    """
    ns = (namespace or "").strip().replace("\\", "/")
    while ns.startswith("./"):
        ns = ns[2:]
    ns = ns.strip("/")
    return ns or ROOT_NAMESPACE


def tag_prefix_for(namespace: str, prefix: str = "v") -> str:
    """Return the text every tag of a namespace starts with."""
    ns = normalize_namespace(namespace)
    if ns == ROOT_NAMESPACE:
        return prefix
    return f"{ns}/{prefix}"


def tag_name(namespace: str, version: semver.Version | str, prefix: str = "v") -> str:
    """Build the tag name for a namespace and version.

    Examples:
        tag_name("libs/a", "1.2.3") → "libs/a/v1.2.3"
        tag_name(".", "1.2.3") → "v1.2.3"
    """
    return f"{tag_prefix_for(namespace, prefix)}{version}"


def version_from_tag(
    tag: str, namespace: str, prefix: str = "v"
) -> semver.Version | None:
    """Extract the version of a namespace tag, or None if it does not conform."""
    tag_prefix = tag_prefix_for(namespace, prefix)
    tag = tag.strip()
    if not tag.startswith(tag_prefix):
        return None
    return parse_version(tag[len(tag_prefix) :])
