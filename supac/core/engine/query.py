"""
State query — ask each referenced backend what is installed.

A failing backend never aborts the query: its error is recorded in
``InstalledState.errors`` and the remaining backends are still asked.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from supac.adapters.registry import AdapterRegistry
from supac.core.errors import BackendError, ErrorInfo, ErrorKind
from supac.core.models.backend import Backend, ordered
from supac.core.models.state import BackendInventory, InstalledState

logger = logging.getLogger(__name__)


def query_installed_state(
    registry: AdapterRegistry,
    backends: Iterable[Backend],
    timeout: float | None = None,
) -> InstalledState:
    """Query installed packages for each backend.

    Args:
        registry: Adapter registry.
        backends: Backends referenced by the desired state.
        timeout: Optional per-query timeout in seconds.

    Returns:
        InstalledState with one inventory or one error per backend.
    """
    state = InstalledState()

    for backend in ordered(backends):
        try:
            entries = registry.list_installed(backend, timeout=timeout)
        except BackendError as e:
            logger.warning("Could not query %s packages: %s", backend, e)
            state.errors[backend] = e.to_info()
            continue
        except Exception as e:
            logger.error("Unexpected error querying %s packages: %s", backend, e)
            state.errors[backend] = ErrorInfo(
                kind=ErrorKind.COMMAND_FAILED,
                message=f"Unexpected error: {e}",
            )
            continue

        inventory = BackendInventory.from_entries(entries)
        state.inventories[backend] = inventory
        logger.info(
            "%s: %d installed, %d pinned",
            backend,
            len(inventory.packages),
            len(inventory.pins),
        )

    return state
