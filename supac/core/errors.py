"""
Error taxonomy — every failure the reconciliation core can observe.

Two families:
    - Run-level: ``ConfigInvalid`` aborts before any plan is built.
    - Backend/action-level: ``BackendError`` and ``HookError`` are captured
      into the report as ``ErrorInfo`` records and never abort the run.

Adapters raise ``BackendError`` with a kind; the registry and executor
turn those into outcomes.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel


class ErrorKind(StrEnum):
    """Classification of a failure, as surfaced in the report."""

    CONFIG_INVALID = "config_invalid"
    BACKEND_UNAVAILABLE = "backend_unavailable"
    PERMISSION_DENIED = "permission_denied"
    PACKAGE_NOT_FOUND = "package_not_found"
    COMMAND_FAILED = "command_failed"
    TIMEOUT = "timeout"
    HOOK_FAILED = "hook_failed"
    CANCELLED = "cancelled"
    UNSUPPORTED = "unsupported"


class ErrorInfo(BaseModel):
    """Serializable record of a captured error."""

    kind: ErrorKind
    message: str = ""
    exit_code: int | None = None
    stderr: str = ""

    def __str__(self) -> str:
        if self.exit_code is not None:
            return f"{self.kind.value}: {self.message} (exit {self.exit_code})"
        return f"{self.kind.value}: {self.message}"


class SupacError(Exception):
    """Base class for all supac errors."""


class ConfigInvalid(SupacError):
    """Raised when the desired state is malformed or self-contradictory.

    Carries every problem found so the user can fix them in one pass.
    """

    def __init__(self, problems: list[str] | str):
        if isinstance(problems, str):
            problems = [problems]
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


class BackendError(SupacError):
    """A backend operation failed.

    Use the named constructors rather than passing ``kind`` by hand.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str = "",
        exit_code: int | None = None,
        stderr: str = "",
    ):
        self.kind = kind
        self.message = message
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(message or kind.value)

    @classmethod
    def unavailable(cls, message: str) -> BackendError:
        return cls(ErrorKind.BACKEND_UNAVAILABLE, message)

    @classmethod
    def permission_denied(cls, message: str, stderr: str = "") -> BackendError:
        return cls(ErrorKind.PERMISSION_DENIED, message, stderr=stderr)

    @classmethod
    def not_found(cls, message: str, stderr: str = "") -> BackendError:
        return cls(ErrorKind.PACKAGE_NOT_FOUND, message, stderr=stderr)

    @classmethod
    def command_failed(cls, message: str, exit_code: int, stderr: str = "") -> BackendError:
        return cls(ErrorKind.COMMAND_FAILED, message, exit_code=exit_code, stderr=stderr)

    @classmethod
    def timeout(cls, message: str) -> BackendError:
        return cls(ErrorKind.TIMEOUT, message)

    @classmethod
    def unsupported(cls, message: str) -> BackendError:
        return cls(ErrorKind.UNSUPPORTED, message)

    def to_info(self) -> ErrorInfo:
        """Snapshot this error for the report."""
        return ErrorInfo(
            kind=self.kind,
            message=self.message,
            exit_code=self.exit_code,
            stderr=self.stderr,
        )


class HookError(SupacError):
    """A post-install hook failed to run or exited non-zero."""

    def __init__(self, message: str, exit_code: int | None = None, stderr: str = ""):
        self.message = message
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(message)

    def to_info(self) -> ErrorInfo:
        return ErrorInfo(
            kind=ErrorKind.HOOK_FAILED,
            message=self.message,
            exit_code=self.exit_code,
            stderr=self.stderr,
        )
