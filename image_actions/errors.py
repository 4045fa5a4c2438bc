"""Failure taxonomy for template expansion and process launching.

Collaborators raise these; only the action runner turns them into user-facing
notifications.
"""

from __future__ import annotations

from typing import Any


class ActionError(Exception):
    """Base class for all image_actions failures."""

    def __init__(self, message: str, error_code: str | None = None, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.error_code = error_code or "ERROR"
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Structured form for logging."""
        return {
            "error_code": self.error_code,
            "message": str(self),
            "details": self.details,
        }


class NoTempDirError(ActionError):
    """No usable temporary directory could be created."""

    def __init__(self, message: str, base: str | None = None):
        details = {"base": base} if base else None
        super().__init__(message, "NO_TEMP_DIR", details)


class NameExhaustedError(ActionError):
    """Every candidate temp file name was taken, fallback stub included."""

    def __init__(self, message: str, stub: str | None = None, ext: str | None = None):
        super().__init__(message, "NAME_EXHAUSTED", {"stub": stub, "ext": ext})


class ArtifactWriteError(ActionError):
    """The document could not be written to a temp artifact."""

    def __init__(self, message: str, path: str | None = None, fmt: str | None = None):
        details: dict[str, Any] = {}
        if path:
            details["path"] = path
        if fmt:
            details["format"] = fmt
        super().__init__(message, "ARTIFACT_WRITE_FAILED", details)


class LaunchError(ActionError):
    """The launcher reported that the program did not start.

    On POSIX a non-zero start status can also come from a program that ran
    and failed; the two cases are not distinguishable here.
    """

    def __init__(self, message: str, status: int, command: str | None = None):
        super().__init__(message, "LAUNCH_FAILED", {"status": status, "command": command})
        self.status = status


class NonZeroExitError(ActionError):
    """A blocking built-in action ran and exited with a failure status."""

    def __init__(self, message: str, code: int, command: str | None = None):
        super().__init__(message, "NON_ZERO_EXIT", {"code": code, "command": command})
        self.code = code
