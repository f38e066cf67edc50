"""
Domain models — Pydantic types for the reconciliation core.

All models are re-exported here for convenient access:

    from supac.core.models import Backend, DesiredState, PackageSpec, Action
"""

from supac.core.models.action import Action, ActionKind, ActionOutcome, SkipReason
from supac.core.models.backend import BACKEND_ORDER, Backend, Capability
from supac.core.models.options import ReconcileOptions
from supac.core.models.package import (
    BackendPayload,
    DesiredState,
    Hook,
    LanguageOptions,
    PackageSpec,
    PinOptions,
    Remote,
    SandboxedOptions,
    SystemOptions,
)
from supac.core.models.report import BackendReport, ReconciliationReport
from supac.core.models.state import BackendInventory, InstalledPackage, InstalledState

__all__ = [
    "BACKEND_ORDER",
    # action.py
    "Action",
    "ActionKind",
    "ActionOutcome",
    # backend.py
    "Backend",
    "BackendInventory",
    # package.py
    "BackendPayload",
    # report.py
    "BackendReport",
    "Capability",
    "DesiredState",
    "Hook",
    # state.py
    "InstalledPackage",
    "InstalledState",
    "LanguageOptions",
    "PackageSpec",
    "PinOptions",
    # options.py
    "ReconcileOptions",
    "ReconciliationReport",
    "Remote",
    "SandboxedOptions",
    "SkipReason",
    "SystemOptions",
]
