"""Adapters — package-manager bindings for the reconciliation core.

Public re-exports for convenient access.
"""

from supac.adapters.base import BackendAdapter
from supac.adapters.hooks import HookRunner, ShellHookRunner
from supac.adapters.mock import MockBackendAdapter, MockHookRunner
from supac.adapters.registry import AdapterRegistry

__all__ = [
    "AdapterRegistry",
    "BackendAdapter",
    "HookRunner",
    "MockBackendAdapter",
    "MockHookRunner",
    "ShellHookRunner",
]
