"""Release pipeline: resolve → classify → bump → write → tag → publish.

This module orchestrates one release of a module namespace:
1. Resolve the current version from the namespace's tags
2. Collect the commits since that tag and fold their classification
3. Compute the next version
4. Write it into recognized manifest files (and optionally a changelog)
5. Create an annotated tag for the new version
6. Push the release commit and tag to the remote

Releasing is idempotent: a tip that is already tagged for the namespace,
or a computed tag that already exists, returns the existing version
without creating anything. Nothing persists if the run stops before the
tag is created; once the tag exists, a later run picks up the push.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from contextlib import AbstractContextManager, nullcontext
from pathlib import Path

import semver

from .changelog import prepend_entry, render
from .commits import next_increment
from .config import VersionerConfig
from .errors import PublishError, PushRejectedError, TagAlreadyExistsError
from .manifests import update_manifests
from .models import Increment, ReleasePlan, ReleaseResult
from .repository import (
    commit_files,
    commits_since,
    create_tag,
    current_branch,
    delete_tag,
    ensure_repository,
    fetch_tags,
    head_sha,
    is_rejection,
    latest_tag,
    push,
    rebase_onto_remote,
    tag_exists,
    tip_version,
    undo_commit,
)
from .shell import Sandbox, info, step, warn
from .versions import increment_version, normalize_namespace, tag_name


def discover_modules(root: Path, config: VersionerConfig) -> list[str]:
    """Find module namespaces by their marker files.

    A directory containing any of ``config.module_markers`` is a module.
    Hidden directories (``.git``, ``.github``, ...) are skipped.

    Returns:
        Sorted list of normalized namespaces ("." for the root).
    """
    step("Discovering modules")

    root = Path(root)
    found: set[str] = set()
    for marker in config.module_markers:
        for path in root.rglob(marker):
            rel = path.parent.relative_to(root)
            if any(part.startswith(".") for part in rel.parts):
                continue
            found.add(normalize_namespace(rel.as_posix()))

    namespaces = sorted(found)
    for ns in namespaces:
        info(ns)
    if not namespaces:
        info("<none>")
    return namespaces


def plan_release(
    sandbox: Sandbox, namespace: str, config: VersionerConfig
) -> ReleasePlan:
    """Work out what releasing a namespace would do, without side effects.

    The first release of a namespace (no conforming tag reachable from
    the tip) gets ``config.bootstrap_version`` whatever the commits say.
    """
    namespace = normalize_namespace(namespace)
    ensure_repository(sandbox)

    tipped = tip_version(sandbox, namespace, config)
    if tipped is not None:
        tag, version = tipped
        return ReleasePlan(
            namespace=namespace,
            current=str(version),
            current_tag=tag,
            increment=Increment.NONE,
            next=str(version),
            tag=tag,
            already_released=True,
        )

    found = latest_tag(sandbox, namespace, config)
    commits = commits_since(
        sandbox,
        found[0] if found else None,
        only_module=config.filter_commits_by_path,
    )
    increment = next_increment(commits, config)

    if found is None:
        current = semver.Version.parse(config.bootstrap_version)
        next_version = current
        current_tag = None
    else:
        current_tag, current = found
        next_version = increment_version(current, increment)

    return ReleasePlan(
        namespace=namespace,
        current=str(current),
        current_tag=current_tag,
        commits=commits,
        increment=increment,
        next=str(next_version),
        tag=tag_name(namespace, next_version, config.tag_prefix),
    )


def publish(
    sandbox: Sandbox, refs: list[str], config: VersionerConfig, *, force: bool = False
) -> None:
    """Push refs to the configured remote, retrying transient failures.

    Several refs go in one atomic push so a release commit never lands
    without its tag.

    Raises:
        PushRejectedError: The remote refused the update (it has moved on).
        PublishError: The push kept failing after ``config.push_retries`` tries.
    """
    label = ", ".join(refs)
    last_error = ""
    for attempt in range(1, config.push_retries + 1):
        result = push(sandbox, config.remote, *refs, force=force)
        if result.ok:
            info(f"Pushed {label} to {config.remote}")
            return
        last_error = result.stderr.strip()
        if not force and is_rejection(result):
            raise PushRejectedError(
                f"{config.remote} rejected the push",
                ref=label,
                attempts=attempt,
                stderr=last_error,
            )
        first_line = last_error.splitlines()[0] if last_error else "unknown error"
        warn(f"push attempt {attempt}/{config.push_retries} failed: {first_line}")

    raise PublishError(
        f"Failed to push to {config.remote}",
        ref=label,
        attempts=config.push_retries,
        stderr=last_error,
    )


def resync(sandbox: Sandbox, config: VersionerConfig) -> None:
    """Bring tags and the current branch up to date with the remote."""
    step(f"Resyncing with {config.remote}")
    fetch_tags(sandbox, config.remote)
    branch = current_branch(sandbox)
    if branch and rebase_onto_remote(sandbox, config.remote, branch):
        info(f"Rebased {branch} onto {config.remote}/{branch}")


def _snapshot(paths: Iterable[Path]) -> dict[Path, bytes | None]:
    snapshot: dict[Path, bytes | None] = {}
    for path in paths:
        try:
            snapshot[path] = path.read_bytes() if path.is_file() else None
        except OSError:
            # Unreadable files are left alone by the manifest writers too
            continue
    return snapshot


def _restore(
    sandbox: Sandbox,
    original: str,
    snapshot: dict[Path, bytes | None],
    committed: list[str],
) -> None:
    """Undo the release commit and file edits of an unfinished release."""
    if committed:
        undo_commit(sandbox, original, committed)
    for path, content in snapshot.items():
        if content is None:
            path.unlink(missing_ok=True)
        elif not path.exists() or path.read_bytes() != content:
            path.write_bytes(content)


def _write_release_files(
    sandbox: Sandbox, plan: ReleasePlan, config: VersionerConfig
) -> tuple[list[Path], str | None]:
    """Update manifests and the changelog for the planned version."""
    module_dir = sandbox.workdir
    changed, errors = update_manifests(module_dir, plan.next, config)
    for error in errors:
        warn(str(error))

    entry = None
    if config.generate_changelog:
        entry = render(plan.tag, plan.commits, config)
        path = module_dir / config.changelog_file
        if prepend_entry(path, entry):
            changed.append(path)

    for path in changed:
        info(f"Updated {_relative(sandbox, path)}")
    return changed, entry


def _relative(sandbox: Sandbox, path: Path) -> str:
    try:
        return path.relative_to(sandbox.root).as_posix()
    except ValueError:
        return str(path)


def _release_existing(
    sandbox: Sandbox,
    plan: ReleasePlan,
    tag: str,
    version: str,
    config: VersionerConfig,
    *,
    push_to_remote: bool,
    strict: bool,
    force: bool,
    at_head: bool,
) -> ReleaseResult:
    """Handle a release whose tag already exists (idempotent replay)."""
    if strict:
        raise TagAlreadyExistsError(tag, version=version)
    info(f"{tag} already exists; nothing to create")
    pushed = False
    if push_to_remote:
        # Resumes a run that tagged but stopped before pushing; a tag on
        # the tip may sit on a release commit the branch has not pushed
        refs = [f"refs/tags/{tag}"]
        branch = current_branch(sandbox) if at_head else None
        if branch:
            refs.insert(0, f"HEAD:refs/heads/{branch}")
        publish(sandbox, refs, config, force=force)
        pushed = True
    return ReleaseResult(
        namespace=plan.namespace,
        tag=tag,
        version=version,
        created=False,
        pushed=pushed,
    )


def _execute(
    sandbox: Sandbox,
    plan: ReleasePlan,
    config: VersionerConfig,
    *,
    push_to_remote: bool,
    strict: bool,
    overwrite: bool,
) -> ReleaseResult:
    if plan.already_released:
        return _release_existing(
            sandbox,
            plan,
            plan.tag,
            plan.next,
            config,
            push_to_remote=push_to_remote,
            strict=strict,
            force=overwrite,
            at_head=True,
        )

    exists = tag_exists(sandbox, plan.tag)
    if exists and not overwrite:
        return _release_existing(
            sandbox,
            plan,
            plan.tag,
            plan.next,
            config,
            push_to_remote=push_to_remote,
            strict=strict,
            force=False,
            at_head=False,
        )

    bump = plan.bump
    info(f"{bump.old or '<none>'} → {bump.new} ({bump.increment.value})")

    original = head_sha(sandbox)
    targets = [sandbox.workdir / rel for rel in config.version_files]
    if config.generate_changelog:
        targets.append(sandbox.workdir / config.changelog_file)
    snapshot = _snapshot(targets)
    committed: list[str] = []
    tagged = False
    try:
        changed, entry = _write_release_files(sandbox, plan, config)
        if changed and config.commit_manifests:
            paths = [str(p) for p in changed]
            message = config.release_commit_message.format(
                namespace=plan.namespace, version=plan.next, tag=plan.tag
            )
            commit_files(sandbox, paths, message)
            committed = paths
            info(f"Committed: {message}")
        create_tag(sandbox, plan.tag, f"Release {plan.tag}", force=exists)
        tagged = True
        info(f"Tagged {plan.tag}")
    except BaseException:
        # Nothing may persist before the tag exists
        if not tagged:
            _restore(sandbox, original, snapshot, committed)
        raise

    pushed = False
    if push_to_remote:
        refs: list[str] = []
        if committed:
            branch = current_branch(sandbox)
            if branch:
                refs.append(f"HEAD:refs/heads/{branch}")
            else:
                warn("detached HEAD; release commit is only reachable through the tag")
        refs.append(f"refs/tags/{plan.tag}")
        try:
            publish(sandbox, refs, config, force=overwrite)
        except PushRejectedError:
            # The remote moved on: drop the local release so a re-plan starts clean
            delete_tag(sandbox, plan.tag)
            _restore(sandbox, original, snapshot, committed)
            raise
        pushed = True

    return ReleaseResult(
        namespace=plan.namespace,
        tag=plan.tag,
        version=plan.next,
        created=True,
        pushed=pushed,
        changelog=entry,
        updated_files=[_relative(sandbox, p) for p in changed],
    )


def bump_version(
    sandbox: Sandbox,
    namespace: str,
    config: VersionerConfig | None = None,
    *,
    push_to_remote: bool = True,
    strict: bool = False,
    overwrite: bool = False,
    write_lock: AbstractContextManager | None = None,
) -> ReleaseResult:
    """Release the next version of a namespace.

    Args:
        sandbox: Sandbox whose working directory is the module directory.
        namespace: Module namespace ("." for the repository root).
        config: Versioner settings; defaults when omitted.
        push_to_remote: Push the release commit and tag.
        strict: Raise TagAlreadyExistsError instead of returning the
            existing version when there is nothing new to tag.
        overwrite: Re-point an existing tag at the tip and force-push it.
        write_lock: Held while the working copy is modified and pushed,
            for callers releasing several namespaces of one checkout.

    Returns:
        ReleaseResult for the new (or already existing) version.

    Raises:
        RepositoryError: The history cannot be read or written.
        TagAlreadyExistsError: Strict mode and the tag already exists.
        PublishError: The push failed after retries and resyncs.
    """
    config = config or VersionerConfig()
    namespace = normalize_namespace(namespace)
    lock = write_lock if write_lock is not None else nullcontext()
    step(f"Releasing {namespace}")

    resyncs = 0
    while True:
        plan = plan_release(sandbox, namespace, config)
        info(f"current: {plan.current_tag or '<none>'}, commits: {len(plan.commits)}")
        try:
            with lock:
                return _execute(
                    sandbox,
                    plan,
                    config,
                    push_to_remote=push_to_remote,
                    strict=strict,
                    overwrite=overwrite,
                )
        except PushRejectedError as exc:
            if resyncs >= config.resync_attempts:
                raise PublishError(
                    f"{config.remote} kept rejecting {plan.tag}",
                    ref=plan.tag,
                    attempts=resyncs + 1,
                    stderr=exc.stderr,
                ) from exc
            resyncs += 1
            warn(f"{exc.message}; re-resolving ({resyncs}/{config.resync_attempts})")
            with lock:
                resync(sandbox, config)


class VersionEngine:
    """Releases namespaces of one working copy, safely in parallel.

    Calls for the same namespace are serialized, so two releases can
    never compute the same next version and race to create it. Different
    namespaces plan in parallel; changes to the shared working copy
    (commit, tag, push) take a repository-wide lock.

    Independent processes releasing the same namespace (one CI job per
    module, say) must coordinate outside this class.
    """

    def __init__(self, sandbox: Sandbox, config: VersionerConfig | None = None) -> None:
        self.sandbox = sandbox
        self.config = config or VersionerConfig()
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()
        self._write_lock = threading.RLock()

    def _lock_for(self, namespace: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(namespace, threading.Lock())

    def plan(self, namespace: str = ".") -> ReleasePlan:
        """Dry run for one namespace."""
        ns = normalize_namespace(namespace)
        return plan_release(self.sandbox.for_module(ns), ns, self.config)

    def bump_version(
        self,
        namespace: str = ".",
        *,
        push_to_remote: bool = True,
        strict: bool = False,
        overwrite: bool = False,
    ) -> ReleaseResult:
        """Release one namespace; blocks while another release of it runs."""
        ns = normalize_namespace(namespace)
        with self._lock_for(ns):
            return bump_version(
                self.sandbox.for_module(ns),
                ns,
                self.config,
                push_to_remote=push_to_remote,
                strict=strict,
                overwrite=overwrite,
                write_lock=self._write_lock,
            )

    def release_modules(
        self,
        namespaces: Iterable[str],
        *,
        max_workers: int = 4,
        push_to_remote: bool = True,
        strict: bool = False,
    ) -> list[ReleaseResult]:
        """Release several namespaces; results come back in input order.

        Duplicate namespaces are released once. The first failure is
        raised after every submitted release has finished.
        """
        unique = list(dict.fromkeys(normalize_namespace(ns) for ns in namespaces))
        if not unique:
            return []
        with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
            futures = [
                pool.submit(
                    self.bump_version,
                    ns,
                    push_to_remote=push_to_remote,
                    strict=strict,
                )
                for ns in unique
            ]
        return [future.result() for future in futures]


def run_release(
    engine: VersionEngine,
    namespaces: list[str] | None = None,
    *,
    max_workers: int = 4,
    push_to_remote: bool = True,
) -> list[ReleaseResult]:
    """Release every discovered module (or the given namespaces)."""
    if namespaces is None:
        namespaces = discover_modules(engine.sandbox.root, engine.config)
    if not namespaces:
        return []

    results = engine.release_modules(
        namespaces, max_workers=max_workers, push_to_remote=push_to_remote
    )

    step("Summary")
    for result in results:
        status = "released" if result.created else "unchanged"
        info(f"{result.tag} ({status})")
    return results
