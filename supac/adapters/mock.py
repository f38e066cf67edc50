"""
Mock adapter and hook runner — in-memory test doubles.

Used by the test suite and by ``supac --mock`` to exercise the whole
reconciliation loop without touching a real package manager. The mock
keeps its own installed set, so a second run sees what the first one
installed.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from supac.adapters.base import BackendAdapter
from supac.adapters.hooks import HookRunner
from supac.core.errors import BackendError, HookError
from supac.core.models.backend import Backend, Capability
from supac.core.models.package import Hook, PackageSpec
from supac.core.models.state import InstalledPackage


class MockBackendAdapter(BackendAdapter):
    """Universal mock adapter for testing.

    By default every operation succeeds and updates the in-memory
    inventory. Failures can be configured per package name.
    """

    def __init__(
        self,
        backend: Backend,
        installed: Iterable[str | InstalledPackage] = (),
        available: bool = True,
        capabilities: Iterable[Capability] | None = None,
    ):
        self._backend = backend
        self._available = available
        self._installed: dict[str, InstalledPackage] = {}
        self._pins: dict[str, InstalledPackage] = {}
        for entry in installed:
            self.add_installed(entry)
        if capabilities is None:
            capabilities = set(Capability)
        self.capabilities = frozenset(capabilities)
        self._failures: dict[str, BackendError] = {}
        self._query_error: BackendError | None = None
        self._call_log: list[tuple[str, str]] = []
        self._timeout_log: list[tuple[str, float | None]] = []
        self.on_call: Callable[[str, str], None] | None = None

    @property
    def backend(self) -> Backend:
        return self._backend

    @property
    def call_log(self) -> list[tuple[str, str]]:
        """``(operation, package)`` for every call received."""
        return self._call_log

    @property
    def timeout_log(self) -> list[tuple[str, float | None]]:
        """``(operation, timeout)`` for every call received."""
        return self._timeout_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    @property
    def installed_names(self) -> set[str]:
        return set(self._installed)

    def add_installed(self, entry: str | InstalledPackage) -> None:
        if isinstance(entry, str):
            entry = InstalledPackage(name=entry)
        target = self._pins if entry.pinned else self._installed
        target[entry.name] = entry

    def is_available(self) -> bool:
        return self._available

    def set_failure(self, package: str, error: BackendError | None = None) -> None:
        """Make any operation on ``package`` fail."""
        self._failures[package] = error or BackendError.command_failed(
            f"Mock failure for {package}", exit_code=1
        )

    def set_query_error(self, error: BackendError) -> None:
        """Make ``list_installed`` fail."""
        self._query_error = error

    def _record(self, operation: str, package: str, timeout: float | None = None) -> None:
        self._call_log.append((operation, package))
        self._timeout_log.append((operation, timeout))
        if self.on_call is not None:
            self.on_call(operation, package)
        if package in self._failures:
            raise self._failures[package]

    def list_installed(self, timeout: float | None = None) -> list[InstalledPackage]:
        self._call_log.append(("list_installed", ""))
        self._timeout_log.append(("list_installed", timeout))
        if self._query_error is not None:
            raise self._query_error
        return list(self._installed.values()) + list(self._pins.values())

    def install(self, spec: PackageSpec, timeout: float | None = None) -> None:
        self._record("install", spec.name, timeout)
        self._installed.setdefault(spec.name, InstalledPackage(name=spec.name))

    def pin(self, spec: PackageSpec, timeout: float | None = None) -> None:
        self._record("pin", spec.name, timeout)
        self._pins[spec.name] = InstalledPackage(
            name=spec.name,
            branch=getattr(spec.options, "branch", None),
            arch=getattr(spec.options, "arch", None),
            pinned=True,
        )
        self._installed.setdefault(spec.name, InstalledPackage(name=spec.name))

    def uninstall(self, spec: PackageSpec, timeout: float | None = None) -> None:
        self._record("uninstall", spec.name, timeout)
        self._installed.pop(spec.name, None)

    def clean_cache(self, timeout: float | None = None) -> None:
        self._record("clean_cache", "", timeout)

    def reset(self) -> None:
        """Clear call log and configured failures."""
        self._call_log.clear()
        self._timeout_log.clear()
        self._failures.clear()
        self._query_error = None


class MockHookRunner(HookRunner):
    """Records hooks instead of running them."""

    def __init__(self) -> None:
        self.invoked: list[Hook] = []
        self.timeouts: list[float | None] = []
        self._failures: set[str] = set()

    def set_failure(self, hook: Hook) -> None:
        self._failures.add(str(hook))

    def invoke(self, hook: Hook, timeout: float | None = None) -> None:
        self.invoked.append(hook)
        self.timeouts.append(timeout)
        if str(hook) in self._failures:
            raise HookError(f"Mock hook failure: {hook}", exit_code=1)
