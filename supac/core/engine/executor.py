"""
Executor — run a plan against the backend adapters.

Backends run as independent tasks on a bounded thread pool. Within a
backend, actions run strictly in order: most package managers hold a
database lock and cannot be invoked concurrently with themselves.

Per-action policy:
    install/pin failure   → Failed, continue with the next action
    permission_denied     → Failed, remaining backend actions Skipped
    hook failure          → Failed(hook_failed), non-fatal
                            (strict hooks: later hooks of the backend Skipped)
    cancellation          → running call finishes, the rest Skipped

Each task only writes its own result slot; slots are merged once all
tasks are done.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed

from supac.adapters.hooks import HookRunner
from supac.adapters.registry import AdapterRegistry
from supac.core.engine.planner import BackendPlan, Plan
from supac.core.errors import ErrorInfo, ErrorKind, HookError
from supac.core.models.action import Action, ActionKind, ActionOutcome, SkipReason
from supac.core.models.backend import Backend, ordered
from supac.core.models.options import ReconcileOptions

logger = logging.getLogger(__name__)


def _log_outcome(outcome: ActionOutcome, action: Action) -> None:
    status_marker = "✓" if outcome.ok else "✗" if outcome.failed else "⊘"
    detail = ""
    if outcome.reason:
        detail = f" ({outcome.reason.value})"
    elif outcome.error:
        detail = f" ({outcome.error})"
    log = logger.warning if outcome.failed else logger.info
    log("%s %s: %s → %s%s", status_marker, action.backend, action.label, outcome.status, detail)


def run_hook(action: Action, hook_runner: HookRunner, timeout: float | None = None) -> ActionOutcome:
    """Invoke a RUN_HOOK action's hook. Never raises."""
    assert action.hook is not None
    start_time = time.monotonic()
    try:
        hook_runner.invoke(action.hook, timeout=timeout)
        outcome = ActionOutcome.success(action)
    except HookError as e:
        outcome = ActionOutcome.failure(action, e.to_info())
    except Exception as e:
        logger.error("Hook runner raised for %s: %s", action.package, e)
        outcome = ActionOutcome.failure(
            action,
            ErrorInfo(kind=ErrorKind.HOOK_FAILED, message=f"Unexpected error: {e}"),
        )
    outcome.duration_ms = int((time.monotonic() - start_time) * 1000)
    return outcome


def execute_backend(
    backend_plan: BackendPlan,
    registry: AdapterRegistry,
    hook_runner: HookRunner,
    options: ReconcileOptions | None = None,
    cancel_event: threading.Event | None = None,
) -> list[ActionOutcome]:
    """Run one backend's actions strictly in order.

    Args:
        backend_plan: The backend's ordered actions.
        registry: Adapter registry for install/pin dispatch.
        hook_runner: Runs post-install hooks.
        options: Run options (strict hooks, timeout, dry run).
        cancel_event: Checked before every action.

    Returns:
        One outcome per action, in plan order.
    """
    options = options or ReconcileOptions()
    timeout = options.per_op_timeout
    outcomes: list[ActionOutcome] = []

    abort_reason: SkipReason | None = None
    hooks_blocked = False
    previous: ActionOutcome | None = None   # last install/pin outcome

    for action in backend_plan.actions:
        if abort_reason is None and cancel_event is not None and cancel_event.is_set():
            logger.warning("%s: cancelled, skipping remaining actions", backend_plan.backend)
            abort_reason = SkipReason.CANCELLED

        if abort_reason is not None:
            outcome = ActionOutcome.skip(action, abort_reason)
        elif options.dry_run:
            outcome = ActionOutcome.skip(action, SkipReason.DRY_RUN)
        elif action.kind == ActionKind.RUN_HOOK:
            owner_ok = (
                previous is not None
                and previous.ok
                and previous.package == action.package
            )
            if not owner_ok:
                outcome = ActionOutcome.skip(action, SkipReason.DEPENDENCY_FAILED)
            elif hooks_blocked:
                outcome = ActionOutcome.skip(action, SkipReason.STRICT_HOOKS)
            else:
                outcome = run_hook(action, hook_runner, timeout=timeout)
                if outcome.failed and options.strict_hooks:
                    logger.warning(
                        "%s: hook failed in strict mode, skipping later hooks",
                        backend_plan.backend,
                    )
                    hooks_blocked = True
        else:
            outcome = registry.execute_action(action, timeout=timeout)
            previous = outcome
            if outcome.error_kind == ErrorKind.PERMISSION_DENIED:
                logger.error(
                    "%s: permission denied, skipping remaining actions", backend_plan.backend
                )
                abort_reason = SkipReason.PERMISSION_DENIED

        _log_outcome(outcome, action)
        outcomes.append(outcome)

    return outcomes


def _drain(future: Future) -> list[ActionOutcome]:
    """Wait for a backend task to finish; further interrupts only log."""
    while True:
        try:
            return future.result()
        except KeyboardInterrupt:
            logger.warning("Still waiting for running operations to finish")


def execute_plan(
    plan: Plan,
    registry: AdapterRegistry,
    hook_runner: HookRunner,
    options: ReconcileOptions | None = None,
    cancel_event: threading.Event | None = None,
) -> dict[Backend, list[ActionOutcome]]:
    """Execute every backend plan, concurrently across backends.

    A ``KeyboardInterrupt`` while waiting sets the cancel event: running
    package-manager calls are allowed to finish, queued actions are
    skipped.

    Returns:
        Outcomes per backend, in declaration order.
    """
    options = options or ReconcileOptions()
    if cancel_event is None:
        cancel_event = threading.Event()
    if not plan.backend_plans:
        return {}

    workers = min(
        options.concurrency_limit or len(plan.backend_plans),
        len(plan.backend_plans),
    )
    results: dict[Backend, list[ActionOutcome]] = {}

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="supac") as pool:
        futures = {
            pool.submit(
                execute_backend, bp, registry, hook_runner, options, cancel_event
            ): bp.backend
            for bp in plan.backend_plans
        }
        try:
            for future in as_completed(futures):
                results[futures[future]] = future.result()
        except KeyboardInterrupt:
            logger.warning("Interrupted, letting running operations finish")
            cancel_event.set()
            for future, backend in futures.items():
                results[backend] = _drain(future)

    return {b: results[b] for b in ordered(results)}
