"""Changelog rendering.

Groups the conventional commits of one release by type under a heading
named after the release tag, and keeps a markdown changelog file with
the newest entry on top.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from .commits import parse_commits
from .config import VersionerConfig
from .models import Commit, ParsedCommit

TYPE_ORDER = (
    "feat",
    "fix",
    "perf",
    "refactor",
    "docs",
    "style",
    "test",
    "build",
    "ci",
    "chore",
)

CHANGELOG_TITLE = "# Changelog"


def format_entry(commit: ParsedCommit) -> str:
    """Format one bullet: ``* **scope**: description`` or ``* description``."""
    if commit.scope:
        return f"* **{commit.scope}**: {commit.description}"
    return f"* {commit.description}"


def group_by_type(commits: Iterable[ParsedCommit]) -> dict[str, list[ParsedCommit]]:
    """Group parsed commits by type, preserving commit order within a group."""
    groups: dict[str, list[ParsedCommit]] = {}
    for commit in commits:
        groups.setdefault(commit.type, []).append(commit)
    return groups


def render(
    tag: str,
    commits: Iterable[Commit | ParsedCommit],
    config: VersionerConfig | None = None,
) -> str:
    """Render the changelog section for one release.

    Only types in TYPE_ORDER get a section, in that order, and only when
    at least one commit has that type.

    Example:
        ## libs/a/v1.3.0

        ### Feat

        * **api**: add pagination

        ### Fix

        * handle empty pages
    """
    parsed: list[ParsedCommit] = []
    raw: list[Commit] = []
    for commit in commits:
        if isinstance(commit, ParsedCommit):
            parsed.append(commit)
        else:
            raw.append(commit)
    parsed.extend(parse_commits(raw, config))

    groups = group_by_type(parsed)
    lines = [f"## {tag}", ""]
    for commit_type in TYPE_ORDER:
        entries = groups.get(commit_type)
        if not entries:
            continue
        lines.append(f"### {commit_type.title()}")
        lines.append("")
        lines.extend(format_entry(c) for c in entries)
        lines.append("")
    return "\n".join(lines)


def prepend_entry(path: Path, entry: str) -> bool:
    """Insert ``entry`` at the top of a changelog file.

    A new file gets a ``# Changelog`` title. An existing leading ``# ``
    title is kept above the new entry. Returns False, leaving the file
    alone, when the entry's heading is already present.
    """
    entry = entry.rstrip("\n") + "\n"
    heading = entry.splitlines()[0]

    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"{CHANGELOG_TITLE}\n\n{entry}", encoding="utf-8")
        return True

    existing = path.read_text(encoding="utf-8")
    if any(line.strip() == heading.strip() for line in existing.splitlines()):
        return False

    lines = existing.splitlines(keepends=True)
    if lines and lines[0].startswith("# "):
        head = f"{lines[0].rstrip()}\n\n"
        rest = "".join(lines[1:]).lstrip("\n")
    else:
        head = ""
        rest = existing.lstrip("\n")
    content = head + entry
    if rest.strip():
        content += "\n" + rest
    path.write_text(content, encoding="utf-8")
    return True
