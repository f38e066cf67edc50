"""
Adapter base — the capability contract between the core and package managers.

The reconciliation core only talks to package managers through this
interface, one implementation per ``Backend`` member. The core decides
*what* to do; adapters know *how* to ask their package manager.

To create a new adapter:
    1. Add a member to ``Backend``
    2. Subclass BackendAdapter and declare its ``capabilities``
    3. Register an instance in the AdapterRegistry
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from supac.core.errors import BackendError
from supac.core.models.backend import Backend, Capability
from supac.core.models.package import PackageSpec
from supac.core.models.state import InstalledPackage


class BackendAdapter(ABC):
    """Abstract base class for all backend adapters.

    Operations raise ``BackendError`` on failure; they return nothing on
    success. Installing something already installed must succeed as a
    no-op. ``timeout`` is in seconds; ``None`` means unbounded.
    """

    #: Operations this adapter implements.
    capabilities: frozenset[Capability] = frozenset({Capability.QUERY, Capability.INSTALL})

    @property
    @abstractmethod
    def backend(self) -> Backend:
        """The backend tag this adapter serves."""

    @property
    def name(self) -> str:
        return self.backend.value

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    @abstractmethod
    def is_available(self) -> bool:
        """Check that the underlying package manager exists.

        Should be fast and never raise.
        """

    @abstractmethod
    def list_installed(self, timeout: float | None = None) -> list[InstalledPackage]:
        """List installed packages (and pins, flagged ``pinned=True``)."""

    @abstractmethod
    def install(self, spec: PackageSpec, timeout: float | None = None) -> None:
        """Install one package."""

    def pin(self, spec: PackageSpec, timeout: float | None = None) -> None:
        """Pin a runtime at the declared branch/arch and make sure it is installed."""
        raise BackendError.unsupported(f"{self.name} does not support pinning")

    def uninstall(self, spec: PackageSpec, timeout: float | None = None) -> None:
        """Remove one package. Never called by reconciliation."""
        raise BackendError.unsupported(f"{self.name} does not support uninstall")

    def clean_cache(self, timeout: float | None = None) -> None:
        """Drop the package manager's download/build caches."""
        raise BackendError.unsupported(f"{self.name} does not support cache cleaning")

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} backend={self.name!r}>"
