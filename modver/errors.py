"""Typed exceptions for modver.

All versioning errors inherit from VersionerError. The CLI turns the
fatal ones into a one-line error and a non-zero exit code.
"""

from __future__ import annotations

from typing import Any


class VersionerError(Exception):
    """Base exception for all versioning errors."""

    def __init__(self, message: str, *, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx})"
        return self.message


class RepositoryError(VersionerError):
    """The source tree is not a usable git repository or history is unreadable."""

    def __init__(
        self,
        message: str,
        *,
        command: str | None = None,
        returncode: int | None = None,
        stderr: str | None = None,
    ):
        context = {"command": command, "returncode": returncode, "stderr": stderr}
        super().__init__(message, context={k: v for k, v in context.items() if v})
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class TagAlreadyExistsError(VersionerError):
    """A tag with the computed name already exists.

    Recoverable: the orchestrator treats it as success with the existing
    version unless the caller asked for strict mode.
    """

    def __init__(self, tag: str, *, version: str | None = None):
        super().__init__(f"Tag {tag} already exists", context={"tag": tag})
        self.tag = tag
        self.version = version


class PublishError(VersionerError):
    """Pushing a tag or release commit to the remote failed."""

    def __init__(
        self,
        message: str,
        *,
        ref: str | None = None,
        attempts: int | None = None,
        stderr: str | None = None,
    ):
        context = {"ref": ref, "attempts": attempts, "stderr": stderr}
        super().__init__(message, context={k: v for k, v in context.items() if v})
        self.ref = ref
        self.attempts = attempts
        self.stderr = stderr


class PushRejectedError(PublishError):
    """The remote rejected a push (non-fast-forward or tag already present)."""


class ManifestUpdateError(VersionerError):
    """A recognized manifest file could not be rewritten."""

    def __init__(self, message: str, *, path: str | None = None):
        super().__init__(message, context={"path": path} if path else None)
        self.path = path


class ConfigError(VersionerError):
    """Invalid versioner configuration."""


class CommitValidationError(VersionerError):
    """A commit message does not follow the conventional commit format."""

    def __init__(self, message: str, *, commit_message: str | None = None):
        context: dict[str, Any] = {}
        if commit_message is not None:
            subject = commit_message.splitlines()[0] if commit_message else ""
            # Truncate long subjects for readability
            context["subject"] = subject[:72] + "..." if len(subject) > 72 else subject
        super().__init__(message, context=context)
        self.commit_message = commit_message
