"""
Planner — turn a Diff into an ordered, executable Plan.

Ordering rules, in priority order:
    1. Backends in declaration order (system, sandboxed, language).
    2. Pins before package installs.
    3. Declaration order within each list.
    4. A spec's RUN_HOOK action directly follows its INSTALL/PIN action.

Validation is fail-fast: a malformed spec raises ConfigInvalid before
any plan exists.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime

from supac.core.engine.differ import Diff
from supac.core.errors import ConfigInvalid
from supac.core.models.action import Action, ActionKind
from supac.core.models.backend import Backend
from supac.core.models.package import (
    DesiredState,
    LanguageOptions,
    PackageSpec,
    PinOptions,
    SandboxedOptions,
    SystemOptions,
)

logger = logging.getLogger(__name__)

# options kind each backend accepts for its packages
_PACKAGE_OPTIONS: dict[Backend, type] = {
    Backend.SYSTEM: SystemOptions,
    Backend.SANDBOXED: SandboxedOptions,
    Backend.LANGUAGE: LanguageOptions,
}

# backends that accept pinned runtimes and remotes
_PINNING_BACKENDS = frozenset({Backend.SANDBOXED})


@dataclass
class BackendPlan:
    """Ordered actions for one backend."""

    backend: Backend
    actions: list[Action] = field(default_factory=list)


@dataclass
class Plan:
    """A planned set of actions, partitioned by backend."""

    operation_id: str = ""
    backend_plans: list[BackendPlan] = field(default_factory=list)

    @property
    def actions(self) -> list[Action]:
        return [a for bp in self.backend_plans for a in bp.actions]

    @property
    def total_actions(self) -> int:
        return len(self.actions)

    def for_backend(self, backend: Backend) -> BackendPlan | None:
        for bp in self.backend_plans:
            if bp.backend == backend:
                return bp
        return None

    def to_dict(self) -> dict:
        return {
            "operation_id": self.operation_id,
            "total_actions": self.total_actions,
            "backends": {
                bp.backend.value: [
                    {"id": a.id, "kind": a.kind.value, "package": a.package}
                    for a in bp.actions
                ]
                for bp in self.backend_plans
            },
        }


# ── Validation ──────────────────────────────────────────────────


def spec_problems(backend: Backend, spec: PackageSpec, pinned: bool = False) -> list[str]:
    """Everything wrong with a single spec (empty when valid)."""
    problems = []
    where = f"{backend}.{'pinned' if pinned else 'packages'}[{spec.name}]"

    # plain options carry no fields and fit anywhere
    expected = PinOptions if pinned else _PACKAGE_OPTIONS.get(backend)
    plain = isinstance(spec.options, SystemOptions)
    if expected is not None and not plain and not isinstance(spec.options, expected):
        problems.append(f"{where}: '{spec.options.kind}' options are not valid here")

    opts = spec.options
    if isinstance(opts, LanguageOptions) and opts.over_constrained:
        problems.append(
            f"{where}: all_features and no_default_features cannot be combined "
            f"with an explicit features list"
        )
    return problems


def validate_desired_state(desired: DesiredState) -> None:
    """Check a desired state for malformed or contradictory declarations.

    Raises:
        ConfigInvalid: Listing every problem found.
    """
    problems: list[str] = []

    for backend in desired.referenced_backends:
        payload = desired.payload(backend)

        if backend not in _PINNING_BACKENDS:
            if payload.pinned:
                problems.append(f"{backend}: pinned runtimes are not supported")
            if payload.remotes:
                problems.append(f"{backend}: remotes are not supported")

        for category, specs in (("pinned", payload.pinned), ("packages", payload.packages)):
            seen: set[str] = set()
            for spec in specs:
                if spec.name in seen:
                    problems.append(f"{backend}.{category}: duplicate package '{spec.name}'")
                seen.add(spec.name)
                problems.extend(spec_problems(backend, spec, pinned=category == "pinned"))

        remote_names = {r.name for r in payload.remotes}
        if len(remote_names) != len(payload.remotes):
            problems.append(f"{backend}.remotes: duplicate remote names")
        if remote_names:
            for spec in payload.packages:
                remote = getattr(spec.options, "remote", None)
                if remote and remote not in remote_names:
                    problems.append(
                        f"{backend}.packages[{spec.name}]: unknown remote '{remote}'"
                    )

    if problems:
        raise ConfigInvalid(problems)


# ── Planning ────────────────────────────────────────────────────


def action_id(backend: Backend, kind: ActionKind, name: str) -> str:
    return f"{backend.value}:{kind.value}:{name}"


def _with_hook(backend: Backend, kind: ActionKind, spec: PackageSpec) -> list[Action]:
    actions = [Action(id=action_id(backend, kind, spec.name), kind=kind, backend=backend, spec=spec)]
    if spec.post_hook is not None:
        actions.append(
            Action(
                id=f"{actions[0].id}:hook",
                kind=ActionKind.RUN_HOOK,
                backend=backend,
                spec=spec,
                hook=spec.post_hook,
            )
        )
    return actions


def build_plan(diff: Diff, operation_id: str = "") -> Plan:
    """Build an execution plan from a diff.

    Args:
        diff: Output of ``compute_diff``.
        operation_id: Identifier carried into the plan and report.

    Returns:
        Plan with one BackendPlan per backend that has work.

    Raises:
        ConfigInvalid: If any spec in the diff is malformed.
    """
    problems = []
    for bd in diff.backends:
        for spec in bd.to_pin:
            problems.extend(spec_problems(bd.backend, spec, pinned=True))
        for spec in bd.to_install:
            problems.extend(spec_problems(bd.backend, spec))
    if problems:
        raise ConfigInvalid(problems)

    plan = Plan(operation_id=operation_id)
    for bd in diff.backends:
        if bd.error is not None or bd.is_empty:
            continue

        backend_plan = BackendPlan(backend=bd.backend)
        for spec in bd.to_pin:
            backend_plan.actions.extend(_with_hook(bd.backend, ActionKind.PIN, spec))
        for spec in bd.to_install:
            backend_plan.actions.extend(_with_hook(bd.backend, ActionKind.INSTALL, spec))

        plan.backend_plans.append(backend_plan)
        logger.debug("%s: planned %d actions", bd.backend, len(backend_plan.actions))

    return plan


def generate_operation_id() -> str:
    """Generate a unique operation ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"sync-{now}-{short}"
