"""Tests for modver.changelog."""

from __future__ import annotations

from pathlib import Path

from modver.changelog import format_entry, group_by_type, prepend_entry, render
from modver.commits import parse_commit
from modver.models import Commit


def _commits(*messages: str) -> list[Commit]:
    return [Commit(sha=str(i), message=m) for i, m in enumerate(messages)]


class TestFormatEntry:
    def test_with_scope(self) -> None:
        parsed = parse_commit("feat(api): add pagination")
        assert parsed is not None
        assert format_entry(parsed) == "* **api**: add pagination"

    def test_without_scope(self) -> None:
        parsed = parse_commit("fix: handle empty pages")
        assert parsed is not None
        assert format_entry(parsed) == "* handle empty pages"


class TestRender:
    def test_groups_in_fixed_order(self) -> None:
        entry = render(
            "libs/a/v1.3.0",
            _commits(
                "fix: handle empty pages",
                "chore: bump deps",
                "feat(api): add pagination",
                "feat: add sorting",
            ),
        )
        assert entry == (
            "## libs/a/v1.3.0\n"
            "\n"
            "### Feat\n"
            "\n"
            "* **api**: add pagination\n"
            "* add sorting\n"
            "\n"
            "### Fix\n"
            "\n"
            "* handle empty pages\n"
            "\n"
            "### Chore\n"
            "\n"
            "* bump deps\n"
        )

    def test_omits_unknown_types_and_unparsable(self) -> None:
        entry = render("v0.2.0", _commits("wip", "release: x", "docs: readme"))
        assert "### Docs" in entry
        assert "wip" not in entry
        assert "* x\n" not in entry

    def test_no_commits_gives_heading_only(self) -> None:
        assert render("v0.1.0", []) == "## v0.1.0\n"

    def test_accepts_parsed_commits(self) -> None:
        parsed = parse_commit("perf: faster")
        assert parsed is not None
        assert "### Perf\n\n* faster" in render("v1.0.1", [parsed])


class TestGroupByType:
    def test_preserves_order(self) -> None:
        parsed = [parse_commit(m) for m in ("fix: a", "feat: b", "fix: c")]
        groups = group_by_type(p for p in parsed if p is not None)
        assert [c.description for c in groups["fix"]] == ["a", "c"]
        assert [c.description for c in groups["feat"]] == ["b"]


class TestPrependEntry:
    def test_creates_file_with_title(self, tmp_path: Path) -> None:
        path = tmp_path / "CHANGELOG.md"
        assert prepend_entry(path, "## v0.1.0\n\n### Feat\n\n* x\n")
        assert path.read_text() == "# Changelog\n\n## v0.1.0\n\n### Feat\n\n* x\n"

    def test_newest_entry_goes_below_title(self, tmp_path: Path) -> None:
        path = tmp_path / "CHANGELOG.md"
        path.write_text("# Changelog\n\n## v0.1.0\n\n* old\n")

        assert prepend_entry(path, "## v0.2.0\n\n* new\n")

        assert path.read_text() == (
            "# Changelog\n\n## v0.2.0\n\n* new\n\n## v0.1.0\n\n* old\n"
        )

    def test_file_without_title(self, tmp_path: Path) -> None:
        path = tmp_path / "CHANGELOG.md"
        path.write_text("## v0.1.0\n\n* old\n")

        prepend_entry(path, "## v0.2.0\n\n* new\n")

        assert path.read_text() == "## v0.2.0\n\n* new\n\n## v0.1.0\n\n* old\n"

    def test_is_idempotent(self, tmp_path: Path) -> None:
        path = tmp_path / "CHANGELOG.md"
        prepend_entry(path, "## v0.2.0\n\n* new\n")
        before = path.read_text()

        assert not prepend_entry(path, "## v0.2.0\n\n* new\n")
        assert path.read_text() == before

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        path = tmp_path / "docs" / "CHANGELOG.md"
        assert prepend_entry(path, "## v1.0.0\n")
        assert path.exists()
