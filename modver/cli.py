"""CLI entry point for modver."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import click

from modver.changelog import render
from modver.commits import validate_commit_message
from modver.config import VersionerConfig, load_config
from modver.errors import VersionerError
from modver.manifests import read_manifest_version
from modver.pipeline import VersionEngine, run_release
from modver.repository import ensure_repository, resolve_current_version, version_history
from modver.shell import LocalSandbox, author_env
from modver.versions import normalize_namespace


@contextmanager
def _errors() -> Iterator[None]:
    """Turn versioning failures into a one-line error and exit code 1."""
    try:
        yield
    except VersionerError as exc:
        raise click.ClickException(str(exc)) from exc


def _sandbox(root: Path, config: VersionerConfig, token: str | None = None) -> LocalSandbox:
    return LocalSandbox(
        root,
        env=author_env(config.author_name, config.author_email),
        token=token,
        timeout=config.command_timeout,
    )


def source_option(func: Callable[..., Any]) -> Callable[..., Any]:
    """Add the --source option shared by every command."""
    return click.option(
        "--source",
        type=click.Path(exists=True, file_okay=False, path_type=Path),
        default=".",
        show_default=True,
        help="Root of the source tree (a git working copy).",
    )(func)


def module_option(func: Callable[..., Any]) -> Callable[..., Any]:
    """Add the --module option naming the namespace to act on."""
    return click.option(
        "--module",
        default=".",
        show_default=True,
        help='Module namespace, relative to the source root ("." for the root).',
    )(func)


@click.group()
@click.version_option(package_name="modver")
def cli() -> None:
    """Semantic versioning for independently released monorepo modules."""


@cli.command("bump-version")
@source_option
@module_option
@click.option(
    "--output-version",
    is_flag=True,
    help="Print only the bare version (for capturing in scripts).",
)
@click.option(
    "--push/--no-push", default=True, show_default=True, help="Publish to the remote."
)
@click.option(
    "--changelog/--no-changelog",
    default=None,
    help="Prepend a changelog entry (default from [tool.modver]).",
)
@click.option("--strict", is_flag=True, help="Fail when the version is already tagged.")
@click.option("--overwrite", is_flag=True, help="Re-point an existing tag and force-push it.")
@click.option("--remote", default=None, help="Git remote to publish to.")
@click.option(
    "--token",
    envvar="MODVER_GIT_TOKEN",
    default=None,
    help="Token for HTTPS remotes (env: MODVER_GIT_TOKEN).",
)
def bump_version(
    source: Path,
    module: str,
    output_version: bool,
    push: bool,
    changelog: bool | None,
    strict: bool,
    overwrite: bool,
    remote: str | None,
    token: str | None,
) -> None:
    """Release the next version of a module."""
    with _errors():
        config = load_config(source, remote=remote, generate_changelog=changelog)
        engine = VersionEngine(_sandbox(source, config, token), config)
        result = engine.bump_version(
            module, push_to_remote=push, strict=strict, overwrite=overwrite
        )

    if output_version:
        click.echo(result.version)
    else:
        status = "created" if result.created else "unchanged"
        click.echo(f"{result.tag} ({status})")


@cli.command("next-version")
@source_option
@module_option
def next_version(source: Path, module: str) -> None:
    """Print the version the next release would produce."""
    with _errors():
        config = load_config(source)
        plan = VersionEngine(_sandbox(source, config), config).plan(module)
    click.echo(plan.next)


@cli.command("current-version")
@source_option
@module_option
@click.option(
    "--from-manifest",
    is_flag=True,
    help="Read the version from the module's manifest files instead of tags.",
)
def current_version(source: Path, module: str, from_manifest: bool) -> None:
    """Print the currently released version of a module."""
    ns = normalize_namespace(module)
    with _errors():
        config = load_config(source)
        sandbox = _sandbox(source, config).for_module(ns)
        if from_manifest:
            version = read_manifest_version(sandbox.workdir, config)
            if version is None:
                raise click.ClickException(
                    f"No version found in {', '.join(config.version_files)}"
                )
        else:
            ensure_repository(sandbox)
            version = str(resolve_current_version(sandbox, ns, config))
    click.echo(version)


@cli.command()
@source_option
@module_option
def changelog(source: Path, module: str) -> None:
    """Print the changelog entry the next release would add."""
    with _errors():
        config = load_config(source)
        plan = VersionEngine(_sandbox(source, config), config).plan(module)
    click.echo(render(plan.tag, plan.commits, config))


@cli.command()
@source_option
@module_option
def history(source: Path, module: str) -> None:
    """List the released versions of a module, newest first."""
    ns = normalize_namespace(module)
    with _errors():
        config = load_config(source)
        sandbox = _sandbox(source, config).for_module(ns)
        ensure_repository(sandbox)
        entries = version_history(sandbox, ns, config)
    for tag, subject in entries:
        click.echo(f"{tag}\t{subject}")


@cli.command("validate-commit")
@click.argument("message")
@source_option
def validate_commit(message: str, source: Path) -> None:
    """Check MESSAGE against the conventional commit rules."""
    with _errors():
        parsed = validate_commit_message(message, load_config(source))
    scope = f"({parsed.scope})" if parsed.scope else ""
    click.echo(f"✓ {parsed.type}{scope}: {parsed.increment.value}")


@cli.command()
@source_option
@click.option(
    "--workers", default=4, show_default=True, help="Modules released in parallel."
)
@click.option(
    "--push/--no-push", default=True, show_default=True, help="Publish to the remote."
)
@click.option(
    "--token",
    envvar="MODVER_GIT_TOKEN",
    default=None,
    help="Token for HTTPS remotes (env: MODVER_GIT_TOKEN).",
)
def release(source: Path, workers: int, push: bool, token: str | None) -> None:
    """Discover modules and release each of them (usually called from CI)."""
    with _errors():
        config = load_config(source)
        engine = VersionEngine(_sandbox(source, config, token), config)
        results = run_release(engine, max_workers=workers, push_to_remote=push)
    if not results:
        raise click.ClickException(
            f"No modules found (markers: {', '.join(config.module_markers)})"
        )
    for result in results:
        click.echo(result.tag)
