"""
Adapter registry — explicit Backend → adapter mapping and dispatch.

Built once at startup by the front end. The engine never talks to
adapters directly, only through the registry, which turns adapter
exceptions into outcomes.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from supac.adapters.base import BackendAdapter
from supac.core.errors import BackendError, ErrorInfo, ErrorKind
from supac.core.models.action import Action, ActionKind, ActionOutcome
from supac.core.models.backend import BACKEND_ORDER, Backend, Capability
from supac.core.models.state import InstalledPackage

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Central registry and dispatcher for backend adapters."""

    def __init__(self, adapters: list[BackendAdapter] | None = None):
        self._adapters: dict[Backend, BackendAdapter] = {}
        for adapter in adapters or []:
            self.register(adapter)

    def register(self, adapter: BackendAdapter) -> None:
        """Register an adapter under its backend tag."""
        backend = adapter.backend
        if backend in self._adapters:
            logger.warning("Overwriting existing adapter for backend: %s", backend)
        self._adapters[backend] = adapter
        logger.debug("Registered adapter: %r", adapter)

    def unregister(self, backend: Backend) -> None:
        self._adapters.pop(backend, None)

    def get(self, backend: Backend) -> BackendAdapter | None:
        return self._adapters.get(backend)

    def list_backends(self) -> list[Backend]:
        """Registered backends, in declaration order."""
        return [b for b in BACKEND_ORDER if b in self._adapters]

    def adapter_status(self) -> dict[str, dict[str, Any]]:
        """Availability and capabilities of every registered adapter."""
        status = {}
        for backend in self.list_backends():
            adapter = self._adapters[backend]
            try:
                available = adapter.is_available()
            except Exception:
                available = False
            status[backend.value] = {
                "backend": backend.value,
                "available": available,
                "type": adapter.__class__.__name__,
                "capabilities": sorted(c.value for c in adapter.capabilities),
            }
        return status

    def require(self, backend: Backend) -> BackendAdapter:
        """Look up an adapter, raising ``unavailable`` when none is registered."""
        adapter = self._adapters.get(backend)
        if adapter is None:
            raise BackendError.unavailable(f"No adapter registered for '{backend}'")
        return adapter

    def list_installed(
        self, backend: Backend, timeout: float | None = None
    ) -> list[InstalledPackage]:
        """Query one backend. Raises BackendError."""
        adapter = self.require(backend)
        if not adapter.supports(Capability.QUERY):
            raise BackendError.unsupported(f"{backend} adapter cannot list packages")
        return adapter.list_installed(timeout=timeout)

    def execute_action(self, action: Action, timeout: float | None = None) -> ActionOutcome:
        """Execute an install or pin action through its adapter.

        Returns:
            ActionOutcome (never raises).
        """
        start_time = time.monotonic()

        try:
            adapter = self.require(action.backend)
            if action.kind == ActionKind.INSTALL:
                adapter.install(action.spec, timeout=timeout)
            elif action.kind == ActionKind.PIN:
                if not adapter.supports(Capability.PIN):
                    raise BackendError.unsupported(f"{action.backend} adapter cannot pin")
                adapter.pin(action.spec, timeout=timeout)
            else:
                raise BackendError.unsupported(f"Registry cannot dispatch {action.kind} actions")
            outcome = ActionOutcome.success(action)
        except BackendError as e:
            outcome = ActionOutcome.failure(action, e.to_info())
        except Exception as e:
            # Adapters should only raise BackendError, but defense in depth
            logger.error("Adapter for %s raised during %s: %s", action.backend, action.label, e)
            outcome = ActionOutcome.failure(
                action,
                ErrorInfo(kind=ErrorKind.COMMAND_FAILED, message=f"Unexpected error: {e}"),
            )

        outcome.duration_ms = int((time.monotonic() - start_time) * 1000)
        return outcome
