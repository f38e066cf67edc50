"""
Installed-state models — what the live system actually has.

Queried fresh on every run, never cached. A backend whose query
failed is recorded under ``errors`` instead of ``inventories`` so
later stages can skip it without crashing.
"""

from __future__ import annotations

from collections.abc import Iterable

from pydantic import BaseModel, Field

from supac.core.errors import ErrorInfo
from supac.core.models.backend import Backend


class InstalledPackage(BaseModel):
    """A package (or pinned runtime) reported by a backend."""

    name: str
    version: str | None = None
    branch: str | None = None
    arch: str | None = None
    pinned: bool = False
    scope: str | None = None   # e.g. "user" / "system" for flatpak


class BackendInventory(BaseModel):
    """Installed packages and pins for one backend, keyed by name."""

    packages: dict[str, InstalledPackage] = Field(default_factory=dict)
    pins: dict[str, list[InstalledPackage]] = Field(default_factory=dict)

    @classmethod
    def from_entries(cls, entries: Iterable[InstalledPackage]) -> BackendInventory:
        """Split a flat adapter listing into packages and pins.

        When a package name is reported twice (e.g. user and system
        scope) the first entry wins. Every pin is kept: flatpak adds
        patterns without replacing older ones for the same runtime.
        """
        inventory = cls()
        for entry in entries:
            if entry.pinned:
                inventory.pins.setdefault(entry.name, []).append(entry)
            else:
                inventory.packages.setdefault(entry.name, entry)
        return inventory

    def has_package(self, name: str) -> bool:
        return name in self.packages

    def get_pins(self, name: str) -> list[InstalledPackage]:
        return self.pins.get(name, [])


class InstalledState(BaseModel):
    """Per-backend inventory or query error."""

    inventories: dict[Backend, BackendInventory] = Field(default_factory=dict)
    errors: dict[Backend, ErrorInfo] = Field(default_factory=dict)

    def is_ok(self, backend: Backend) -> bool:
        return backend in self.inventories

    def inventory(self, backend: Backend) -> BackendInventory:
        """Inventory for a backend (empty when not queried)."""
        return self.inventories.get(backend, BackendInventory())

    def error(self, backend: Backend) -> ErrorInfo | None:
        return self.errors.get(backend)

    @property
    def backends(self) -> list[Backend]:
        return list(self.inventories) + list(self.errors)
