"""
Action and ActionOutcome models — the execution contract.

Actions represent planned operations against one backend. Outcomes
represent what happened to each of them. The executor turns every
action into exactly one outcome; failures are data, not exceptions.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, Field

from supac.core.errors import ErrorInfo, ErrorKind
from supac.core.models.backend import Backend
from supac.core.models.package import Hook, PackageSpec


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class ActionKind(StrEnum):
    INSTALL = "install"
    PIN = "pin"
    RUN_HOOK = "run_hook"


class SkipReason(StrEnum):
    """Why an action (or declared package) was not executed."""

    ALREADY_PRESENT = "already_present"
    PERMISSION_DENIED = "permission_denied"
    CANCELLED = "cancelled"
    BACKEND_ERROR = "backend_error"
    DEPENDENCY_FAILED = "dependency_failed"   # hook whose install/pin failed
    STRICT_HOOKS = "strict_hooks"             # later hook after a strict-mode failure
    DRY_RUN = "dry_run"


class Action(BaseModel):
    """A planned operation.

    ``hook`` is set only for ``RUN_HOOK`` actions, whose ``spec`` is the
    owning package.
    """

    id: str
    kind: ActionKind
    backend: Backend
    spec: PackageSpec
    hook: Hook | None = None

    @property
    def package(self) -> str:
        return self.spec.name

    @property
    def label(self) -> str:
        """Human-readable one-liner (e.g. ``install ripgrep``)."""
        if self.kind == ActionKind.RUN_HOOK:
            return f"hook for {self.spec.name}"
        return f"{self.kind.value} {self.spec.name}"


class ActionOutcome(BaseModel):
    """Result of a single action (or of a declared package that needed none)."""

    action_id: str
    backend: Backend
    kind: ActionKind
    package: str
    status: Literal["succeeded", "skipped", "failed"] = "succeeded"

    reason: SkipReason | None = None
    error_kind: ErrorKind | None = None
    error: ErrorInfo | None = None

    started_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "succeeded"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @property
    def skipped(self) -> bool:
        return self.status == "skipped"

    @classmethod
    def success(cls, action: Action, **kwargs: Any) -> ActionOutcome:
        """Create a success outcome."""
        return cls(
            action_id=action.id,
            backend=action.backend,
            kind=action.kind,
            package=action.package,
            status="succeeded",
            **kwargs,
        )

    @classmethod
    def failure(cls, action: Action, error: ErrorInfo, **kwargs: Any) -> ActionOutcome:
        """Create a failure outcome."""
        return cls(
            action_id=action.id,
            backend=action.backend,
            kind=action.kind,
            package=action.package,
            status="failed",
            error_kind=error.kind,
            error=error,
            **kwargs,
        )

    @classmethod
    def skip(cls, action: Action, reason: SkipReason, **kwargs: Any) -> ActionOutcome:
        """Create a skip outcome."""
        return cls(
            action_id=action.id,
            backend=action.backend,
            kind=action.kind,
            package=action.package,
            status="skipped",
            reason=reason,
            **kwargs,
        )
