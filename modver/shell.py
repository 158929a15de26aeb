"""Command execution sandbox and output helpers.

Every git command runs through a Sandbox bound to one working copy and
one module directory. Author identity and credentials travel in the
sandbox's environment instead of global git configuration, and secrets
are redacted from anything printed.
"""

from __future__ import annotations

import base64
import os
import subprocess
import sys
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel

from .versions import ROOT_NAMESPACE, normalize_namespace


class CommandResult(BaseModel):
    """Outcome of one sandbox command."""

    stdout: str = ""
    stderr: str = ""
    returncode: int = 0

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class Sandbox(Protocol):
    """Runs commands against a working copy of the source tree."""

    @property
    def root(self) -> Path: ...

    @property
    def workdir(self) -> Path: ...

    def run(self, *args: str) -> CommandResult: ...

    def for_module(self, namespace: str) -> Sandbox: ...


class LocalSandbox:
    """Sandbox backed by a local checkout and subprocess.

    Args:
        root: Repository root (the working copy).
        namespace: Module directory, relative to root, used as the
            working directory for every command.
        env: Extra environment variables (e.g. author identity).
        token: Credential for HTTPS remotes. Injected as an
            ``http.extraHeader`` through GIT_CONFIG_* variables and never
            printed.
        timeout: Seconds before a command is abandoned.
    """

    def __init__(
        self,
        root: Path,
        namespace: str = ROOT_NAMESPACE,
        *,
        env: dict[str, str] | None = None,
        token: str | None = None,
        timeout: float = 120.0,
    ) -> None:
        self._root = Path(root).resolve()
        self.namespace = normalize_namespace(namespace)
        self.env = dict(env or {})
        self.token = token
        self.timeout = timeout

    @property
    def root(self) -> Path:
        return self._root

    @property
    def workdir(self) -> Path:
        if self.namespace == ROOT_NAMESPACE:
            return self._root
        return self._root / self.namespace

    def for_module(self, namespace: str) -> LocalSandbox:
        """Return a sandbox on the same working copy, rooted at ``namespace``."""
        return LocalSandbox(
            self._root,
            namespace,
            env=self.env,
            token=self.token,
            timeout=self.timeout,
        )

    def _environment(self) -> dict[str, str]:
        env = {**os.environ, **self.env}
        # Never block on an interactive credential prompt
        env["GIT_TERMINAL_PROMPT"] = "0"
        if self.token:
            basic = base64.b64encode(f"x-access-token:{self.token}".encode()).decode()
            count = int(env.get("GIT_CONFIG_COUNT", "0"))
            env[f"GIT_CONFIG_KEY_{count}"] = "http.extraHeader"
            env[f"GIT_CONFIG_VALUE_{count}"] = f"AUTHORIZATION: basic {basic}"
            env["GIT_CONFIG_COUNT"] = str(count + 1)
        return env

    def redact(self, text: str) -> str:
        """Hide the credential from text that is about to be shown."""
        if self.token and text:
            return text.replace(self.token, "***")
        return text

    def run(self, *args: str) -> CommandResult:
        """Run a command in the module directory and capture its output.

        A command that cannot start or exceeds the timeout comes back as
        a failed CommandResult, so callers deal with a single failure
        shape.
        """
        try:
            result = subprocess.run(
                list(args),
                cwd=self.workdir,
                env=self._environment(),
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as exc:
            return CommandResult(stderr=self.redact(str(exc)), returncode=127)
        except NotADirectoryError as exc:
            return CommandResult(stderr=self.redact(str(exc)), returncode=126)
        except subprocess.TimeoutExpired:
            return CommandResult(
                stderr=f"command timed out after {self.timeout:g}s", returncode=124
            )
        return CommandResult(
            stdout=result.stdout,
            stderr=self.redact(result.stderr),
            returncode=result.returncode,
        )


def author_env(name: str, email: str) -> dict[str, str]:
    """Environment that sets the git author and committer identity."""
    return {
        "GIT_AUTHOR_NAME": name,
        "GIT_AUTHOR_EMAIL": email,
        "GIT_COMMITTER_NAME": name,
        "GIT_COMMITTER_EMAIL": email,
    }


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Output goes to stderr so stdout only carries command results (e.g.
    the bare version printed by ``bump-version --output-version``).
    """
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}", file=sys.stderr)


def info(msg: str) -> None:
    """Print an indented progress line."""
    print(f"  {msg}", file=sys.stderr)


def warn(msg: str) -> None:
    """Print a warning that does not stop the pipeline."""
    print(f"  Warning: {msg}", file=sys.stderr)
