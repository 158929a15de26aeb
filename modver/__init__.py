"""Semantic versioning and release automation for monorepo modules."""

from modver.config import VersionerConfig, load_config
from modver.errors import (
    CommitValidationError,
    ConfigError,
    ManifestUpdateError,
    PublishError,
    RepositoryError,
    TagAlreadyExistsError,
    VersionerError,
)
from modver.models import Increment, ReleasePlan, ReleaseResult
from modver.pipeline import VersionEngine, bump_version, plan_release
from modver.shell import LocalSandbox

__all__ = [
    "CommitValidationError",
    "ConfigError",
    "Increment",
    "LocalSandbox",
    "ManifestUpdateError",
    "PublishError",
    "ReleasePlan",
    "ReleaseResult",
    "RepositoryError",
    "TagAlreadyExistsError",
    "VersionEngine",
    "VersionerConfig",
    "VersionerError",
    "bump_version",
    "load_config",
    "plan_release",
]
