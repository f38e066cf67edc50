"""
Reconciliation report — the structured result of one run.

Built by the reconciler from per-backend outcome slots after all
backend tasks finish. The front end renders it and derives the exit
status from it.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from supac.core.errors import ErrorInfo
from supac.core.models.action import ActionOutcome, SkipReason
from supac.core.models.backend import BACKEND_ORDER, Backend


@dataclass
class BackendReport:
    """Outcomes for one backend, in execution order."""

    backend: Backend
    outcomes: list[ActionOutcome] = field(default_factory=list)
    error: ErrorInfo | None = None   # query failure; backend was skipped

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.failed)

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.skipped)

    def to_dict(self) -> dict:
        return {
            "backend": self.backend.value,
            "error": self.error.model_dump(mode="json") if self.error else None,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "outcomes": [o.model_dump(mode="json") for o in self.outcomes],
        }


@dataclass
class ReconciliationReport:
    """Result of reconciling a desired state."""

    operation_id: str = ""
    backends: dict[Backend, BackendReport] = field(default_factory=dict)
    cancelled: bool = False
    dry_run: bool = False

    def backend(self, backend: Backend) -> BackendReport | None:
        return self.backends.get(backend)

    def add(self, backend_report: BackendReport) -> None:
        self.backends[backend_report.backend] = backend_report
        # keep declaration order regardless of completion order
        self.backends = {
            b: self.backends[b] for b in BACKEND_ORDER if b in self.backends
        }

    @property
    def outcomes(self) -> list[ActionOutcome]:
        return [o for r in self.backends.values() for o in r.outcomes]

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.failed)

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.skipped)

    @property
    def backend_errors(self) -> dict[Backend, ErrorInfo]:
        return {b: r.error for b, r in self.backends.items() if r.error is not None}

    @property
    def all_ok(self) -> bool:
        return self.failed == 0

    @property
    def is_empty(self) -> bool:
        return self.total == 0 and not self.backend_errors

    @property
    def status(self) -> str:
        if self.cancelled:
            return "cancelled"
        if self.failed == 0:
            return "ok"
        if self.succeeded > 0:
            return "partial"
        return "failed"

    def exit_code(self, permission_skips_are_errors: bool = False) -> int:
        """Process exit status: non-zero iff any action failed.

        Args:
            permission_skips_are_errors: Also fail when actions were skipped
                because their backend hit a permission error.
        """
        if self.failed:
            return 1
        if permission_skips_are_errors and any(
            o.reason == SkipReason.PERMISSION_DENIED for o in self.outcomes
        ):
            return 1
        return 0

    def to_dict(self) -> dict:
        return {
            "operation_id": self.operation_id,
            "status": self.status,
            "dry_run": self.dry_run,
            "cancelled": self.cancelled,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "backends": {b.value: r.to_dict() for b, r in self.backends.items()},
        }
