"""Tests for modver.commits."""

from __future__ import annotations

import pytest

from modver.commits import (
    classify,
    fold,
    is_breaking,
    next_increment,
    parse_commit,
    parse_commits,
    validate_commit_message,
)
from modver.config import VersionerConfig
from modver.errors import CommitValidationError
from modver.models import Commit, Increment


class TestParseCommit:
    def test_type_scope_description(self) -> None:
        parsed = parse_commit("feat(api): add pagination", sha="abc")
        assert parsed is not None
        assert parsed.sha == "abc"
        assert parsed.type == "feat"
        assert parsed.scope == "api"
        assert parsed.description == "add pagination"
        assert not parsed.breaking
        assert parsed.increment is Increment.MINOR

    def test_without_scope(self) -> None:
        parsed = parse_commit("fix: handle empty pages")
        assert parsed is not None
        assert parsed.scope is None
        assert parsed.increment is Increment.PATCH

    def test_only_subject_is_parsed(self) -> None:
        parsed = parse_commit("fix: short\n\nfeat: not a header")
        assert parsed is not None
        assert parsed.type == "fix"
        assert parsed.description == "short"

    @pytest.mark.parametrize(
        "message",
        ["", "   ", "Merge branch 'main'", "feat add x", "feat(): x", ": x"],
    )
    def test_non_conventional_returns_none(self, message: str) -> None:
        assert parse_commit(message) is None


class TestClassify:
    @pytest.mark.parametrize(
        ("message", "expected"),
        [
            ("feat: add x", Increment.MINOR),
            ("fix: y", Increment.PATCH),
            ("perf(db): faster", Increment.PATCH),
            ("feat!: z", Increment.MAJOR),
            ("chore: w", Increment.NONE),
            ("docs(readme): typo", Increment.NONE),
            ("unknown: thing", Increment.NONE),
            ("", Increment.NONE),
            ("not conventional at all", Increment.NONE),
        ],
    )
    def test_examples(self, message: str, expected: Increment) -> None:
        assert classify(message) is expected

    @pytest.mark.parametrize(
        "message",
        [
            "chore!: drop python 3.8",
            "docs(api)!: rename endpoint",
            "fix: y\n\nBREAKING CHANGE: config keys renamed",
            "refactor: z\n\nBREAKING-CHANGE: removed alias",
        ],
    )
    def test_breaking_change_overrides_type(self, message: str) -> None:
        assert classify(message) is Increment.MAJOR

    def test_breaking_indicator_needs_conventional_header(self) -> None:
        assert classify("Update stuff\n\nBREAKING CHANGE: x") is Increment.NONE

    def test_bang_elsewhere_is_not_breaking(self) -> None:
        assert classify("fix: handle the ! character") is Increment.PATCH

    def test_is_deterministic(self) -> None:
        messages = ["feat: a", "fix!: b", "chore: c", "garbage"]
        assert [classify(m) for m in messages] == [classify(m) for m in messages]

    def test_custom_types(self) -> None:
        config = VersionerConfig(commit_types={"feature": Increment.MINOR})
        assert classify("feature: x", config) is Increment.MINOR
        assert classify("feat: x", config) is Increment.NONE

    def test_custom_indicator(self) -> None:
        config = VersionerConfig(breaking_change_indicators=["!", "[major]"])
        assert classify("fix: x [major]", config) is Increment.MAJOR
        assert classify("fix: y\n\nBREAKING CHANGE: z", config) is Increment.PATCH


class TestIsBreaking:
    def test_bang_before_colon(self) -> None:
        assert is_breaking("feat(api)!: x")

    def test_footer(self) -> None:
        assert is_breaking("feat: x\n\nBREAKING CHANGE: y")

    def test_plain(self) -> None:
        assert not is_breaking("feat: x")

    def test_bang_ignored_without_indicator(self) -> None:
        config = VersionerConfig(breaking_change_indicators=["BREAKING CHANGE:"])
        assert not is_breaking("feat(api)!: x", config)
        assert classify("feat!: x", config) is Increment.MINOR
        assert classify("feat: x\n\nBREAKING CHANGE: y", config) is Increment.MAJOR


class TestFold:
    def test_empty_is_none(self) -> None:
        assert fold([]) is Increment.NONE

    def test_takes_maximum(self) -> None:
        assert fold([Increment.PATCH, Increment.MINOR, Increment.NONE]) is Increment.MINOR

    def test_major_wins(self) -> None:
        assert fold([Increment.MAJOR, Increment.PATCH]) is Increment.MAJOR


class TestNextIncrement:
    def test_folds_commits(self) -> None:
        commits = [Commit(sha="1", message="fix: a"), Commit(sha="2", message="feat: b")]
        assert next_increment(commits) is Increment.MINOR

    def test_falls_back_to_default(self) -> None:
        commits = [Commit(sha="1", message="chore: init")]
        assert next_increment(commits) is Increment.PATCH

    def test_breaking_footer_wins_in_any_order(self) -> None:
        chore = Commit(sha="1", message="chore: w")
        breaking = Commit(sha="2", message="fix: x\n\nBREAKING CHANGE: config renamed")
        assert next_increment([chore, breaking]) is Increment.MAJOR
        assert next_increment([breaking, chore]) is Increment.MAJOR

    def test_empty_range_uses_default(self) -> None:
        assert next_increment([]) is Increment.PATCH

    def test_configured_default(self) -> None:
        config = VersionerConfig(default_increment=Increment.MINOR)
        assert next_increment([Commit(message="docs: x")], config) is Increment.MINOR


class TestParseCommits:
    def test_drops_unparsable(self) -> None:
        commits = [
            Commit(sha="1", message="feat: a"),
            Commit(sha="2", message="WIP"),
            Commit(sha="3", message="fix(core): b"),
        ]
        parsed = parse_commits(commits)
        assert [p.sha for p in parsed] == ["1", "3"]


class TestValidateCommitMessage:
    def test_valid_message(self) -> None:
        parsed = validate_commit_message("feat(core): add streaming support")
        assert parsed.type == "feat"
        assert parsed.scope == "core"

    def test_empty(self) -> None:
        with pytest.raises(CommitValidationError, match="cannot be empty"):
            validate_commit_message("")

    def test_malformed(self) -> None:
        with pytest.raises(CommitValidationError, match="must follow format"):
            validate_commit_message("added a feature")

    def test_unknown_type(self) -> None:
        with pytest.raises(CommitValidationError, match="Invalid commit type: feature"):
            validate_commit_message("feature: add streaming support")

    def test_scope_required(self) -> None:
        config = VersionerConfig(require_scope=True)
        with pytest.raises(CommitValidationError, match="scope is required"):
            validate_commit_message("feat: add streaming support", config)

    def test_custom_scope_rejected(self) -> None:
        config = VersionerConfig(allow_custom_scopes=False)
        with pytest.raises(CommitValidationError, match="Invalid commit scope: ui"):
            validate_commit_message("feat(ui): add streaming support", config)
        validate_commit_message("feat(core): add streaming support", config)

    def test_description_too_short(self) -> None:
        with pytest.raises(CommitValidationError, match="at least 10 characters"):
            validate_commit_message("fix: typo")

    def test_error_carries_subject(self) -> None:
        with pytest.raises(CommitValidationError) as excinfo:
            validate_commit_message("oops\n\nbody")
        assert excinfo.value.context["subject"] == "oops"
