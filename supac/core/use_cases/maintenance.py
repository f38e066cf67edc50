"""
Maintenance use cases — validate configuration, clean backend caches.

Neither touches installed packages.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from supac.adapters.registry import AdapterRegistry
from supac.core.engine.planner import validate_desired_state
from supac.core.errors import BackendError, ConfigInvalid, ErrorInfo
from supac.core.models.backend import Backend, Capability
from supac.core.models.package import DesiredState

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Outcome of checking a desired state against the registered adapters."""

    problems: list[str] = field(default_factory=list)
    backends: dict[str, dict] = field(default_factory=dict)
    missing_adapters: list[Backend] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.problems and not self.missing_adapters

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "problems": self.problems,
            "missing_adapters": [b.value for b in self.missing_adapters],
            "backends": self.backends,
        }


def validate_config(desired: DesiredState, registry: AdapterRegistry) -> ValidationResult:
    """Validate the desired state and report adapter availability."""
    result = ValidationResult()

    try:
        validate_desired_state(desired)
    except ConfigInvalid as e:
        result.problems = e.problems

    status = registry.adapter_status()
    for backend in desired.referenced_backends:
        if backend.value not in status:
            result.missing_adapters.append(backend)
            continue
        entry = dict(status[backend.value])
        entry["declared"] = len(desired.all_specs(backend))
        result.backends[backend.value] = entry

    return result


@dataclass
class CacheCleanResult:
    """Per-backend cache cleaning outcome."""

    cleaned: list[Backend] = field(default_factory=list)
    skipped: list[Backend] = field(default_factory=list)
    errors: dict[Backend, ErrorInfo] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


def clean_caches(
    registry: AdapterRegistry,
    dry_run: bool = False,
    timeout: float | None = None,
) -> CacheCleanResult:
    """Clean the cache of every available backend that supports it.

    A failing backend is recorded and the others still run.
    """
    result = CacheCleanResult()

    for backend in registry.list_backends():
        adapter = registry.require(backend)
        if not adapter.supports(Capability.CLEAN_CACHE) or not adapter.is_available():
            logger.info("%s: cache cleaning not available, skipping", backend)
            result.skipped.append(backend)
            continue
        if dry_run:
            logger.info("%s: [dry-run] would clean cache", backend)
            result.skipped.append(backend)
            continue
        try:
            adapter.clean_cache(timeout=timeout)
        except BackendError as e:
            logger.warning("%s: cache cleaning failed: %s", backend, e)
            result.errors[backend] = e.to_info()
            continue
        result.cleaned.append(backend)

    return result
