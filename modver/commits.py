"""Conventional commit parsing and classification.

Turns raw commit messages into version increments. Classification never
fails: messages that do not follow ``type(scope)!: description`` simply
contribute nothing to the bump.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from .config import VersionerConfig
from .errors import CommitValidationError
from .models import Commit, Increment, ParsedCommit

HEADER_RE = re.compile(r"^(\w+)(\([^)]+\))?(!)?:\s*(.+)$")

# Matched through the header regex, not as a substring
BANG_INDICATOR = "!"


def _default_config() -> VersionerConfig:
    return VersionerConfig()


def is_breaking(message: str, config: VersionerConfig | None = None) -> bool:
    """Check the full message for breaking-change markers.

    A "!" right before the header colon counts when "!" is one of the
    configured indicators. Every other indicator is a plain substring
    search over subject, body and footers.
    """
    config = config or _default_config()
    indicators = config.breaking_change_indicators
    subject = message.strip().splitlines()[0] if message.strip() else ""
    match = HEADER_RE.match(subject.strip())
    if match and match.group(3) and BANG_INDICATOR in indicators:
        return True
    return any(
        indicator in message
        for indicator in indicators
        if indicator and indicator != BANG_INDICATOR
    )


def parse_commit(
    message: str, sha: str = "", config: VersionerConfig | None = None
) -> ParsedCommit | None:
    """Parse a commit message header.

    Returns None when the subject is not a conventional commit header.

    Examples:
        "feat(api): add x" → type="feat", scope="api", increment=minor
        "fix!: drop y" → type="fix", breaking=True, increment=major
        "Merge branch 'main'" → None
    """
    config = config or _default_config()
    if not message or not message.strip():
        return None
    subject = message.strip().splitlines()[0].strip()
    match = HEADER_RE.match(subject)
    if not match:
        return None

    commit_type = match.group(1)
    scope = match.group(2)[1:-1] if match.group(2) else None
    breaking = is_breaking(message, config)
    if breaking:
        increment = Increment.MAJOR
    else:
        increment = config.commit_types.get(commit_type, Increment.NONE)

    return ParsedCommit(
        sha=sha,
        type=commit_type,
        scope=scope,
        description=match.group(4).strip(),
        breaking=breaking,
        increment=increment,
    )


def classify(message: str, config: VersionerConfig | None = None) -> Increment:
    """Map a commit message to the increment it asks for.

    Examples:
        "feat: add x" → minor
        "fix: y" → patch
        "feat!: z" → major
        "chore: w" → none
        "" → none
    """
    parsed = parse_commit(message, config=config)
    return parsed.increment if parsed else Increment.NONE


def fold(increments: Iterable[Increment]) -> Increment:
    """Combine increments, keeping the strongest one (none for no input)."""
    return max(increments, default=Increment.NONE)


def parse_commits(
    commits: Iterable[Commit], config: VersionerConfig | None = None
) -> list[ParsedCommit]:
    """Parse every conventional commit, dropping the rest."""
    parsed: list[ParsedCommit] = []
    for commit in commits:
        result = parse_commit(commit.message, commit.sha, config)
        if result is not None:
            parsed.append(result)
    return parsed


def next_increment(
    commits: Iterable[Commit], config: VersionerConfig | None = None
) -> Increment:
    """Fold the classification of a commit range into one increment.

    Falls back to ``config.default_increment`` when nothing in the range
    asks for a bump (including an empty range), so every release moves
    the version.
    """
    config = config or _default_config()
    increment = fold(classify(c.message, config) for c in commits)
    if increment is Increment.NONE:
        return config.default_increment
    return increment


def validate_commit_message(
    message: str, config: VersionerConfig | None = None
) -> ParsedCommit:
    """Check a commit message against the conventional commit rules.

    Returns the parsed commit when the message is valid.

    Raises:
        CommitValidationError: If the message is empty, malformed, uses an
            unknown type or scope, lacks a required scope, or has a
            description shorter than ``config.min_description_length``.
    """
    config = config or _default_config()
    if not message or not message.strip():
        raise CommitValidationError("Commit message cannot be empty", commit_message="")

    parsed = parse_commit(message, config=config)
    if parsed is None:
        raise CommitValidationError(
            "Commit message must follow format: type(scope): description",
            commit_message=message,
        )

    if parsed.type not in config.commit_types:
        raise CommitValidationError(
            f"Invalid commit type: {parsed.type}", commit_message=message
        )

    if config.require_scope and not parsed.scope:
        raise CommitValidationError("Commit scope is required", commit_message=message)

    if (
        parsed.scope
        and not config.allow_custom_scopes
        and parsed.scope not in config.scopes
    ):
        raise CommitValidationError(
            f"Invalid commit scope: {parsed.scope}", commit_message=message
        )

    if len(parsed.description) < config.min_description_length:
        raise CommitValidationError(
            "Commit description must be at least "
            f"{config.min_description_length} characters",
            commit_message=message,
        )

    return parsed
