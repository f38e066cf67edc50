"""
Reconcile use case — bring the live system in line with the desired state.

This is the top-level orchestrator:

    validate → query installed state → diff → plan → execute → report

Only ``ConfigInvalid`` escapes as an exception. Every backend- and
action-level failure ends up in the report.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from supac.adapters.hooks import HookRunner
from supac.adapters.registry import AdapterRegistry
from supac.core.engine.differ import BackendDiff, Diff, compute_diff
from supac.core.engine.executor import execute_plan
from supac.core.engine.planner import (
    Plan,
    action_id,
    build_plan,
    generate_operation_id,
    validate_desired_state,
)
from supac.core.engine.query import query_installed_state
from supac.core.models.action import Action, ActionKind, ActionOutcome, SkipReason
from supac.core.models.backend import Backend
from supac.core.models.options import ReconcileOptions
from supac.core.models.package import DesiredState, PackageSpec
from supac.core.models.report import BackendReport, ReconciliationReport
from supac.core.models.state import InstalledState

logger = logging.getLogger(__name__)


@dataclass
class Preview:
    """What a run would do, without doing it."""

    installed: InstalledState
    diff: Diff
    plan: Plan


def _declared_action(backend: Backend, spec: PackageSpec) -> Action:
    """Action describing a declared spec that gets no planned action."""
    kind = ActionKind.PIN if spec.is_pin else ActionKind.INSTALL
    return Action(id=action_id(backend, kind, spec.name), kind=kind, backend=backend, spec=spec)


def _unplanned_outcomes(desired: DesiredState, bd: BackendDiff) -> list[ActionOutcome]:
    """Skip entries for specs that were already present or never attempted."""
    if bd.error is not None:
        return [
            ActionOutcome.skip(
                _declared_action(bd.backend, spec),
                SkipReason.BACKEND_ERROR,
                error=bd.error,
            )
            for spec in desired.all_specs(bd.backend)
        ]
    return [
        ActionOutcome.skip(_declared_action(bd.backend, spec), SkipReason.ALREADY_PRESENT)
        for spec in bd.present
    ]


def preview(
    desired: DesiredState,
    registry: AdapterRegistry,
    options: ReconcileOptions | None = None,
    operation_id: str | None = None,
) -> Preview:
    """Validate, query, diff and plan without executing anything.

    Raises:
        ConfigInvalid: If the desired state is malformed.
    """
    options = options or ReconcileOptions()
    validate_desired_state(desired)

    installed = query_installed_state(
        registry,
        desired.referenced_backends,
        timeout=options.per_op_timeout,
    )
    diff = compute_diff(desired, installed)
    plan = build_plan(diff, operation_id or generate_operation_id())
    logger.info("Planned %d actions across %d backends", plan.total_actions, len(plan.backend_plans))
    return Preview(installed=installed, diff=diff, plan=plan)


def apply(
    desired: DesiredState,
    result: Preview,
    registry: AdapterRegistry,
    hook_runner: HookRunner,
    options: ReconcileOptions | None = None,
    cancel_event: threading.Event | None = None,
) -> ReconciliationReport:
    """Execute a previewed plan and assemble the report."""
    options = options or ReconcileOptions()
    if cancel_event is None:
        cancel_event = threading.Event()

    plan = result.plan
    executed = execute_plan(plan, registry, hook_runner, options, cancel_event)

    report = ReconciliationReport(
        operation_id=plan.operation_id,
        dry_run=options.dry_run,
    )
    for bd in result.diff.backends:
        backend_report = BackendReport(backend=bd.backend, error=bd.error)
        backend_report.outcomes.extend(_unplanned_outcomes(desired, bd))
        backend_report.outcomes.extend(executed.get(bd.backend, []))
        report.add(backend_report)

    report.cancelled = cancel_event.is_set()

    logger.info(
        "Reconciliation %s: %d succeeded, %d failed, %d skipped",
        report.status,
        report.succeeded,
        report.failed,
        report.skipped,
    )
    return report


def reconcile(
    desired: DesiredState,
    registry: AdapterRegistry,
    hook_runner: HookRunner,
    options: ReconcileOptions | None = None,
    cancel_event: threading.Event | None = None,
) -> ReconciliationReport:
    """Reconcile the live system with a desired state.

    Args:
        desired: User-declared target state.
        registry: Backend adapters, keyed by backend.
        hook_runner: Runs post-install hooks.
        options: Run options.
        cancel_event: Set it to cancel the run; checked between actions.

    Returns:
        ReconciliationReport covering every declared spec.

    Raises:
        ConfigInvalid: If the desired state is malformed. Raised before
            the installed state is used; no report is produced.
    """
    result = preview(desired, registry, options)
    return apply(desired, result, registry, hook_runner, options, cancel_event)
