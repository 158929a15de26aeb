"""Git queries and mutations used by the release pipeline.

All functions take a Sandbox, so the same code runs against a local
checkout or any other command runner. Read failures raise
RepositoryError: versioning cannot proceed without history.
"""

from __future__ import annotations

import semver

from .config import VersionerConfig
from .errors import RepositoryError
from .models import Commit
from .shell import CommandResult, Sandbox
from .versions import tag_prefix_for, version_from_tag

# ASCII unit/record separators keep multi-line commit bodies intact
FIELD_SEP = "\x1f"
RECORD_SEP = "\x1e"
LOG_FORMAT = "--format=%H%x1f%B%x1e"

REJECTION_MARKERS = (
    "[rejected]",
    "non-fast-forward",
    "fetch first",
    "already exists",
    "stale info",
)


def git(sandbox: Sandbox, *args: str, check: bool = True) -> str:
    """Run a git command in the sandbox and return stripped stdout.

    Args:
        sandbox: Where to run the command.
        *args: Arguments to pass to git (e.g., "tag", "--list").
        check: If True (default), raise RepositoryError on non-zero exit.
            Set to False for commands that may legitimately fail.
    """
    result = sandbox.run("git", *args)
    if check and not result.ok:
        raise RepositoryError(
            f"git {args[0] if args else ''} failed".strip(),
            command=" ".join(("git", *args)),
            returncode=result.returncode,
            stderr=result.stderr.strip(),
        )
    return result.stdout.strip()


def ensure_repository(sandbox: Sandbox) -> None:
    """Fail fast when the sandbox is not inside a git work tree."""
    result = sandbox.run("git", "rev-parse", "--is-inside-work-tree")
    if not result.ok or result.stdout.strip() != "true":
        raise RepositoryError(
            "Not a git repository",
            command="git rev-parse --is-inside-work-tree",
            returncode=result.returncode,
            stderr=result.stderr.strip(),
        )


def head_sha(sandbox: Sandbox) -> str:
    """Return the full hash of the tip commit."""
    return git(sandbox, "rev-parse", "HEAD")


def namespace_tags(
    sandbox: Sandbox,
    namespace: str,
    config: VersionerConfig,
    *extra: str,
) -> list[tuple[str, semver.Version]]:
    """List conforming tags of a namespace, highest version first.

    Tags whose suffix is not a semantic version (``v1.x.y``) are dropped
    silently. ``extra`` goes to ``git tag -l`` (e.g. "--merged",
    "HEAD").

    Raises:
        RepositoryError: If the tag listing itself fails.
    """
    pattern = f"{tag_prefix_for(namespace, config.tag_prefix)}*"
    output = git(sandbox, "tag", "-l", *extra, pattern)
    tags: list[tuple[str, semver.Version]] = []
    for line in output.splitlines():
        tag = line.strip()
        version = version_from_tag(tag, namespace, config.tag_prefix)
        if version is not None:
            tags.append((tag, version))
    tags.sort(key=lambda item: item[1], reverse=True)
    return tags


def latest_tag(
    sandbox: Sandbox, namespace: str, config: VersionerConfig
) -> tuple[str, semver.Version] | None:
    """Return the highest namespace tag reachable from the tip, if any."""
    tags = namespace_tags(sandbox, namespace, config, "--merged", "HEAD")
    return tags[0] if tags else None


def resolve_current_version(
    sandbox: Sandbox, namespace: str, config: VersionerConfig
) -> semver.Version:
    """Return the version currently released for a namespace.

    Falls back to ``config.bootstrap_version`` when the namespace has no
    conforming tag reachable from the tip.
    """
    found = latest_tag(sandbox, namespace, config)
    if found is None:
        return semver.Version.parse(config.bootstrap_version)
    return found[1]


def tip_version(
    sandbox: Sandbox, namespace: str, config: VersionerConfig
) -> tuple[str, semver.Version] | None:
    """Return the highest namespace tag pointing at the tip commit, if any."""
    tags = namespace_tags(sandbox, namespace, config, "--points-at", "HEAD")
    return tags[0] if tags else None


def parse_log(output: str) -> list[Commit]:
    """Split ``git log`` output produced with LOG_FORMAT into commits."""
    commits: list[Commit] = []
    for record in output.split(RECORD_SEP):
        record = record.strip("\n")
        if not record.strip():
            continue
        sha, _, message = record.partition(FIELD_SEP)
        commits.append(Commit(sha=sha.strip(), message=message.strip()))
    return commits


def commits_since(
    sandbox: Sandbox, tag: str | None, *, only_module: bool = False
) -> list[Commit]:
    """Return commits reachable from the tip but not from ``tag``.

    The whole history is returned when ``tag`` is None. With
    ``only_module``, commits must touch the sandbox's module directory.
    """
    rev_range = f"{tag}..HEAD" if tag else "HEAD"
    args = ["log", LOG_FORMAT, rev_range]
    if only_module:
        args += ["--", "."]
    result = sandbox.run("git", *args)
    if not result.ok:
        raise RepositoryError(
            "Cannot read commit history",
            command=" ".join(("git", *args)),
            returncode=result.returncode,
            stderr=result.stderr.strip(),
        )
    return parse_log(result.stdout)


def tag_exists(sandbox: Sandbox, tag: str) -> bool:
    """Check whether a tag ref exists in the working copy."""
    result = sandbox.run("git", "rev-parse", "-q", "--verify", f"refs/tags/{tag}")
    return result.ok


def create_tag(
    sandbox: Sandbox, tag: str, message: str, commit: str = "HEAD", *, force: bool = False
) -> None:
    """Create an annotated tag at ``commit``."""
    args = ["tag", "-a", tag, "-m", message]
    if force:
        args.insert(1, "-f")
    git(sandbox, *args, commit)


def delete_tag(sandbox: Sandbox, tag: str) -> None:
    """Delete a local tag, ignoring a tag that is already gone."""
    git(sandbox, "tag", "-d", tag, check=False)


def commit_files(sandbox: Sandbox, paths: list[str], message: str) -> str:
    """Stage and commit ``paths``; returns the new commit hash."""
    git(sandbox, "add", "--", *paths)
    git(sandbox, "commit", "-m", message, "--", *paths)
    return head_sha(sandbox)


def undo_commit(sandbox: Sandbox, commit: str, paths: list[str]) -> None:
    """Move the branch back to ``commit`` and unstage ``paths``.

    The working tree is left alone; the caller restores file contents.
    """
    git(sandbox, "reset", "--soft", commit)
    git(sandbox, "reset", "-q", "--", *paths)


def current_branch(sandbox: Sandbox) -> str | None:
    """Return the checked-out branch name, or None on a detached HEAD."""
    name = git(sandbox, "symbolic-ref", "--short", "-q", "HEAD", check=False)
    return name or None


def push(sandbox: Sandbox, remote: str, *refs: str, force: bool = False) -> CommandResult:
    """Push refs in one go; the caller decides whether a failure is retryable.

    Several refs are pushed atomically: either all of them land or none.
    """
    args = ["git", "push"]
    if force:
        args.append("--force")
    if len(refs) > 1:
        args.append("--atomic")
    args += [remote, *refs]
    return sandbox.run(*args)


def is_rejection(result: CommandResult) -> bool:
    """True when the remote refused the update rather than being unreachable."""
    text = f"{result.stdout}\n{result.stderr}".lower()
    return any(marker in text for marker in REJECTION_MARKERS)


def fetch_tags(sandbox: Sandbox, remote: str) -> None:
    """Refresh local tags from the remote, which is authoritative."""
    git(sandbox, "fetch", remote, "--tags", "--force")


def rebase_onto_remote(sandbox: Sandbox, remote: str, branch: str) -> bool:
    """Replay local commits on top of the remote branch.

    Returns False when the remote has no such branch yet.
    """
    if not sandbox.run("git", "fetch", remote, branch).ok:
        return False
    git(sandbox, "rebase", "--autostash", "FETCH_HEAD")
    return True


def version_history(
    sandbox: Sandbox, namespace: str, config: VersionerConfig
) -> list[tuple[str, str]]:
    """Return (tag, subject) for every conforming namespace tag, newest first."""
    pattern = f"{tag_prefix_for(namespace, config.tag_prefix)}*"
    output = git(
        sandbox, "tag", "-l", "--format=%(refname:strip=2)%09%(subject)", pattern
    )
    entries: list[tuple[semver.Version, str, str]] = []
    for line in output.splitlines():
        tag, _, subject = line.partition("\t")
        version = version_from_tag(tag, namespace, config.tag_prefix)
        if version is not None:
            entries.append((version, tag.strip(), subject.strip()))
    entries.sort(key=lambda item: item[0], reverse=True)
    return [(tag, subject) for _, tag, subject in entries]
