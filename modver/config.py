"""Versioner configuration.

A single validated record replaces ad hoc defaults at each use site.
Defaults can be overridden from a ``[tool.modver]`` table in the source
tree's root pyproject.toml and, on top of that, from CLI options.

The first release of a namespace without tags uses ``bootstrap_version``
(0.1.0), and a range whose commits ask for no increment falls back to
``default_increment`` (patch). Both are policy choices, kept explicit
here rather than hard-coded.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator
from tomlkit.exceptions import ParseError

from .errors import ConfigError
from .models import Increment
from .toml import get_tool_table, load_pyproject
from .versions import parse_version

DEFAULT_COMMIT_TYPES: dict[str, Increment] = {
    "feat": Increment.MINOR,
    "fix": Increment.PATCH,
    "perf": Increment.PATCH,
    "refactor": Increment.NONE,
    "style": Increment.NONE,
    "docs": Increment.NONE,
    "test": Increment.NONE,
    "build": Increment.NONE,
    "ci": Increment.NONE,
    "chore": Increment.NONE,
}

DEFAULT_VERSION_PATTERN = (
    r"""version\s*=\s*["']?"""
    r"(\d+\.\d+\.\d+(?:-[a-zA-Z0-9.-]+)?(?:\+[a-zA-Z0-9.-]+)?)"
    r"""["']?"""
)


class VersionerConfig(BaseModel):
    """Settings for one versioning run.

    Attributes:
        tag_prefix: Text between ``<namespace>/`` and the version in tag names.
        bootstrap_version: Version of the first release of an untagged namespace.
        default_increment: Increment used when no commit asks for one.
        commit_types: Conventional commit type → increment.
        breaking_change_indicators: Substrings marking a breaking change. The
            bare "!" entry means "! immediately before the header colon".
        scopes: Known scopes, used when validating commit messages.
        require_scope: Validation rejects messages without a scope.
        allow_custom_scopes: Validation accepts scopes outside ``scopes``.
        min_description_length: Validation minimum for the description.
        version_files: Manifest files, relative to the module directory.
        version_pattern: Regex for manifests without a dedicated handler;
            group 1 is the version.
        commit_manifests: Commit rewritten files before tagging.
        release_commit_message: Format string for that commit.
        generate_changelog: Prepend a changelog entry on release.
        changelog_file: Changelog path, relative to the module directory.
        filter_commits_by_path: Only count commits touching the module directory.
        remote: Git remote to publish to.
        push_retries: Push attempts before giving up.
        resync_attempts: Re-resolve cycles after the remote rejects a push.
        author_name: Identity for release commits and tags.
        author_email: Identity for release commits and tags.
        module_markers: Files marking a directory as a module during discovery.
        command_timeout: Seconds before a git command is abandoned.
    """

    tag_prefix: str = "v"
    bootstrap_version: str = "0.1.0"
    default_increment: Increment = Increment.PATCH
    commit_types: dict[str, Increment] = Field(
        default_factory=lambda: dict(DEFAULT_COMMIT_TYPES)
    )
    breaking_change_indicators: list[str] = Field(
        default_factory=lambda: ["BREAKING CHANGE:", "BREAKING-CHANGE:", "!"]
    )
    scopes: list[str] = Field(
        default_factory=lambda: ["core", "deps", "docs", "tests", "build", "ci"]
    )
    require_scope: bool = False
    allow_custom_scopes: bool = True
    min_description_length: int = Field(default=10, ge=0)
    version_files: list[str] = Field(
        default_factory=lambda: ["pyproject.toml", "package.json", "VERSION"]
    )
    version_pattern: str = DEFAULT_VERSION_PATTERN
    commit_manifests: bool = True
    release_commit_message: str = "chore(release): bump {namespace} to {version}"
    generate_changelog: bool = False
    changelog_file: str = "CHANGELOG.md"
    filter_commits_by_path: bool = False
    remote: str = "origin"
    push_retries: int = Field(default=3, ge=1)
    resync_attempts: int = Field(default=2, ge=0)
    author_name: str = "github-actions[bot]"
    author_email: str = "github-actions[bot]@users.noreply.github.com"
    module_markers: list[str] = Field(default_factory=lambda: ["dagger.json"])
    command_timeout: float = Field(default=120.0, gt=0)

    @field_validator("bootstrap_version")
    @classmethod
    def _check_bootstrap_version(cls, value: str) -> str:
        if parse_version(value) is None:
            raise ValueError(f"not a semantic version: {value!r}")
        return value

    @field_validator("default_increment")
    @classmethod
    def _check_default_increment(cls, value: Increment) -> Increment:
        # Every release must move the version
        if value is Increment.NONE:
            raise ValueError("default_increment cannot be 'none'")
        return value

    @field_validator("version_pattern")
    @classmethod
    def _check_version_pattern(cls, value: str) -> str:
        try:
            compiled = re.compile(value)
        except re.error as exc:
            raise ValueError(f"invalid regex: {exc}") from exc
        if compiled.groups < 1:
            raise ValueError("version_pattern needs a capturing group for the version")
        return value


def _normalize_keys(table: dict[str, Any]) -> dict[str, Any]:
    """Accept ``bootstrap-version`` as well as ``bootstrap_version``."""
    return {str(k).replace("-", "_"): v for k, v in table.items()}


def build_config(settings: dict[str, Any] | None = None) -> VersionerConfig:
    """Validate a settings mapping into a VersionerConfig.

    Raises:
        ConfigError: If any setting is unknown or invalid.
    """
    settings = _normalize_keys(settings or {})
    unknown = sorted(set(settings) - set(VersionerConfig.model_fields))
    if unknown:
        raise ConfigError(
            "Unknown versioner settings", context={"keys": ", ".join(unknown)}
        )
    try:
        return VersionerConfig(**settings)
    except ValidationError as exc:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        )
        raise ConfigError(
            "Invalid versioner settings", context={"errors": details}
        ) from exc


def load_config(root: Path, **overrides: Any) -> VersionerConfig:
    """Load settings from ``[tool.modver]`` in root/pyproject.toml.

    Overrides whose value is None are ignored, so CLI options that were
    not given keep the file's (or the built-in) defaults.
    """
    settings: dict[str, Any] = {}
    pyproject = Path(root) / "pyproject.toml"
    if pyproject.exists():
        try:
            doc = load_pyproject(pyproject)
        except (ParseError, UnicodeDecodeError) as exc:
            raise ConfigError(
                "Could not parse pyproject.toml", context={"path": str(pyproject)}
            ) from exc
        settings.update(_normalize_keys(get_tool_table(doc, "modver")))
    settings.update({k: v for k, v in overrides.items() if v is not None})
    return build_config(settings)
