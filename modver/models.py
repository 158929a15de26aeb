"""Data models for modver.

These Pydantic models represent the core data structures used throughout
the release pipeline. Versions are carried as strings and parsed with
``modver.versions`` where arithmetic or ordering is needed.
"""

from __future__ import annotations

import operator
from collections.abc import Callable
from enum import Enum

from pydantic import BaseModel, Field


class Increment(str, Enum):
    """How a version number should be incremented.

    Ordered ``none < patch < minor < major`` so that folding the
    classifications of many commits is a plain ``max()``.
    """

    NONE = "none"
    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    # str supplies all four rich comparisons, so each one is overridden
    # here; functools.total_ordering would keep str's alphabetical ones.
    def _compare(self, other: object, op: Callable[[int, int], bool]) -> bool:
        if not isinstance(other, Increment):
            return NotImplemented
        return op(self.rank, other.rank)

    def __lt__(self, other: object) -> bool:
        return self._compare(other, operator.lt)

    def __le__(self, other: object) -> bool:
        return self._compare(other, operator.le)

    def __gt__(self, other: object) -> bool:
        return self._compare(other, operator.gt)

    def __ge__(self, other: object) -> bool:
        return self._compare(other, operator.ge)


_RANKS = {
    Increment.NONE: 0,
    Increment.PATCH: 1,
    Increment.MINOR: 2,
    Increment.MAJOR: 3,
}


class Commit(BaseModel):
    """One entry of the source tree's history.

    Attributes:
        sha: Commit hash (opaque identifier).
        message: Full commit message; the first line is the subject.
    """

    sha: str = ""
    message: str = ""

    @property
    def subject(self) -> str:
        return self.message.splitlines()[0] if self.message else ""

    @property
    def body(self) -> str:
        _, _, rest = self.message.partition("\n")
        return rest.strip()


class ParsedCommit(BaseModel):
    """A commit message that follows the conventional commit format.

    Attributes:
        sha: Hash of the commit the message came from (may be empty).
        type: Commit type, e.g. "feat" or "fix".
        scope: Optional scope from ``type(scope): ...``.
        description: Text after the header colon.
        breaking: True when the commit carries a breaking-change marker.
        increment: Version increment this commit asks for.
    """

    sha: str = ""
    type: str
    scope: str | None = None
    description: str
    breaking: bool = False
    increment: Increment = Increment.NONE


class VersionBump(BaseModel):
    """Records a version change for a namespace.

    Attributes:
        old: The version before bumping, or None for a first release.
        new: The version after bumping.
        increment: The folded increment that produced ``new``.
    """

    old: str | None
    new: str
    increment: Increment = Increment.PATCH


class ReleasePlan(BaseModel):
    """Read-only outcome of inspecting a namespace before releasing it.

    Attributes:
        namespace: Normalized module namespace ("." for the repository root).
        current: Current version (the bootstrap version when untagged).
        current_tag: Tag holding the current version, or None if untagged.
        commits: Commits reachable from the tip but not from ``current_tag``.
        increment: Folded increment for ``commits``.
        next: Version the release would produce.
        tag: Tag name the release would create.
        already_released: True when the tip is already tagged for the namespace.
    """

    namespace: str
    current: str
    current_tag: str | None = None
    commits: list[Commit] = Field(default_factory=list)
    increment: Increment = Increment.PATCH
    next: str
    tag: str
    already_released: bool = False

    @property
    def bump(self) -> VersionBump:
        old = self.current if self.current_tag else None
        return VersionBump(old=old, new=self.next, increment=self.increment)


class ReleaseResult(BaseModel):
    """Outcome of one bump_version call.

    Attributes:
        namespace: Normalized module namespace.
        tag: Tag name for the released version.
        version: Released version string.
        created: True when this call created the tag.
        pushed: True when the tag was pushed to the remote.
        changelog: Rendered changelog entry, if one was written.
        updated_files: Manifest and changelog files rewritten by this call.
    """

    namespace: str
    tag: str
    version: str
    created: bool = False
    pushed: bool = False
    changelog: str | None = None
    updated_files: list[str] = Field(default_factory=list)
