"""
Run options — knobs a front end passes to one reconciliation run.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ReconcileOptions(BaseModel):
    """Options for ``reconcile``.

    Attributes:
        strict_hooks: After a hook fails, skip the backend's later hooks.
        concurrency_limit: Max backends running at once (None = one worker per backend).
        per_op_timeout: Seconds allowed for each adapter call or hook (None = unbounded).
        dry_run: Plan and report, but call no adapter and run no hook.
    """

    strict_hooks: bool = False
    concurrency_limit: int | None = Field(default=None, ge=1)
    per_op_timeout: float | None = Field(default=None, gt=0)
    dry_run: bool = False
