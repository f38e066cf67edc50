"""
Shared test fixtures and configuration.
"""

from pathlib import Path

import pytest

from supac.adapters.mock import MockBackendAdapter, MockHookRunner
from supac.adapters.registry import AdapterRegistry
from supac.core.models.backend import Backend


@pytest.fixture
def mocks() -> dict[Backend, MockBackendAdapter]:
    """One empty mock adapter per backend."""
    return {b: MockBackendAdapter(b) for b in Backend}


@pytest.fixture
def registry(mocks: dict[Backend, MockBackendAdapter]) -> AdapterRegistry:
    """Registry wired to the ``mocks`` fixture."""
    return AdapterRegistry(list(mocks.values()))


@pytest.fixture
def hook_runner() -> MockHookRunner:
    return MockHookRunner()


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    """Return an empty config directory."""
    path = tmp_path / "supac"
    path.mkdir()
    return path
