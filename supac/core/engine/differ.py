"""
Differ — the additive gap between desired and installed state.

Pure function of its inputs. Matching is by name only; the only
content difference that matters is a pin's declared branch/arch.
Packages installed but not declared are ignored (no removal).
"""

from __future__ import annotations

from dataclasses import dataclass, field

from supac.core.errors import ErrorInfo
from supac.core.models.backend import BACKEND_ORDER, Backend
from supac.core.models.package import DesiredState, PackageSpec, PinOptions
from supac.core.models.state import BackendInventory, InstalledPackage, InstalledState


@dataclass(frozen=True)
class BackendDiff:
    """What one backend is missing."""

    backend: Backend
    to_install: tuple[PackageSpec, ...] = ()
    to_pin: tuple[PackageSpec, ...] = ()
    present: tuple[PackageSpec, ...] = ()       # declared and already satisfied
    error: ErrorInfo | None = None              # query failed; nothing planned

    @property
    def is_empty(self) -> bool:
        return not (self.to_install or self.to_pin)


@dataclass(frozen=True)
class Diff:
    """Per-backend diffs in declaration order."""

    backends: tuple[BackendDiff, ...] = field(default_factory=tuple)

    def get(self, backend: Backend) -> BackendDiff | None:
        for d in self.backends:
            if d.backend == backend:
                return d
        return None

    @property
    def is_empty(self) -> bool:
        return all(d.is_empty for d in self.backends)

    @property
    def total_changes(self) -> int:
        return sum(len(d.to_install) + len(d.to_pin) for d in self.backends)


def _pin_matches(opts: PinOptions, current: InstalledPackage) -> bool:
    if opts.branch is not None and opts.branch != current.branch:
        return False
    if opts.arch is not None and opts.arch != current.arch:
        return False
    if opts.systemwide is not None and current.scope is not None:
        return current.scope == ("system" if opts.systemwide else "user")
    return True


def pin_satisfied(spec: PackageSpec, current: list[InstalledPackage]) -> bool:
    """Whether any existing pin for the name matches the declared one.

    Only fields the pinned entry declares are compared. A runtime can
    carry several pins (older patterns stay until removed), so one
    match is enough.
    """
    opts = spec.options
    if not isinstance(opts, PinOptions):
        return bool(current)
    return any(_pin_matches(opts, pin) for pin in current)


def diff_backend(
    backend: Backend,
    pins: tuple[PackageSpec, ...],
    packages: tuple[PackageSpec, ...],
    inventory: BackendInventory,
) -> BackendDiff:
    to_pin = []
    to_install = []
    present = []

    for spec in pins:
        if pin_satisfied(spec, inventory.get_pins(spec.name)):
            present.append(spec)
        else:
            to_pin.append(spec)

    for spec in packages:
        if inventory.has_package(spec.name):
            present.append(spec)
        else:
            to_install.append(spec)

    return BackendDiff(
        backend=backend,
        to_install=tuple(to_install),
        to_pin=tuple(to_pin),
        present=tuple(present),
    )


def compute_diff(desired: DesiredState, installed: InstalledState) -> Diff:
    """Compute what each declared backend is missing.

    Backends whose query failed get an empty diff carrying the error.
    """
    diffs = []
    for backend in BACKEND_ORDER:
        if backend not in desired.backends:
            continue

        error = installed.error(backend)
        if error is not None:
            diffs.append(BackendDiff(backend=backend, error=error))
            continue

        diffs.append(
            diff_backend(
                backend,
                desired.pins(backend),
                desired.packages(backend),
                installed.inventory(backend),
            )
        )

    return Diff(backends=tuple(diffs))
