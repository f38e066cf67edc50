"""
Tests for observability — logging setup and per-action log lines.
"""

import logging
from pathlib import Path

import pytest

from supac.adapters.mock import MockBackendAdapter, MockHookRunner
from supac.adapters.registry import AdapterRegistry
from supac.core.engine.differ import compute_diff
from supac.core.engine.executor import execute_backend
from supac.core.engine.planner import build_plan
from supac.core.models.backend import Backend
from supac.core.models.package import BackendPayload, DesiredState, PackageSpec
from supac.core.models.state import BackendInventory, InstalledState
from supac.core.observability.logging_config import _parse_level, resolve_level, setup_logging


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


class TestResolveLevel:
    def test_flag_precedence(self):
        env = {"SUPAC_LOG_LEVEL": "ERROR"}
        assert resolve_level(debug=True, verbose=True, env=env) == "DEBUG"
        assert resolve_level(verbose=True, quiet=True, env=env) == "INFO"
        assert resolve_level(quiet=True) == "ERROR"

    def test_env_fallback(self):
        assert resolve_level(env={"SUPAC_LOG_LEVEL": "info"}) == "info"

    def test_default(self):
        assert resolve_level(env={}) == "WARNING"


class TestParseLevel:
    def test_known_names(self):
        assert _parse_level("debug") == logging.DEBUG
        assert _parse_level("ERROR") == logging.ERROR

    def test_unknown_or_empty(self):
        assert _parse_level("chatty") == logging.WARNING
        assert _parse_level(None) == logging.WARNING


class TestSetupLogging:
    def test_console_handler_level(self):
        setup_logging("INFO")
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert root.handlers[0].level == logging.INFO
        assert root.level == logging.INFO

    def test_idempotent(self):
        setup_logging("WARNING")
        setup_logging("WARNING")
        assert len(logging.getLogger().handlers) == 1

    def test_file_handler(self, tmp_path: Path):
        log_file = tmp_path / "supac.log"
        setup_logging("WARNING", log_file=str(log_file), log_file_level="DEBUG")
        root = logging.getLogger()
        assert len(root.handlers) == 2
        assert root.level == logging.DEBUG

        logging.getLogger("supac.test").debug("written to file only")
        for handler in root.handlers:
            handler.flush()
        assert "written to file only" in log_file.read_text()

    def test_file_level_defaults_to_console(self, tmp_path: Path):
        setup_logging("ERROR", log_file=str(tmp_path / "supac.log"))
        assert all(h.level == logging.ERROR for h in logging.getLogger().handlers)


class TestActionLogging:
    def _run(self, mock: MockBackendAdapter) -> None:
        desired = DesiredState(backends={
            Backend.SYSTEM: BackendPayload(packages=(PackageSpec(name="git"), PackageSpec(name="vim"))),
        })
        installed = InstalledState(inventories={Backend.SYSTEM: BackendInventory()})
        plan = build_plan(compute_diff(desired, installed))
        execute_backend(plan.backend_plans[0], AdapterRegistry([mock]), MockHookRunner())

    def test_one_line_per_action(self, caplog: pytest.LogCaptureFixture):
        caplog.set_level(logging.INFO, logger="supac.core.engine.executor")
        self._run(MockBackendAdapter(Backend.SYSTEM))
        lines = [r.getMessage() for r in caplog.records if r.name == "supac.core.engine.executor"]
        assert lines == [
            "✓ system: install git → succeeded",
            "✓ system: install vim → succeeded",
        ]

    def test_failure_logged_as_warning(self, caplog: pytest.LogCaptureFixture):
        caplog.set_level(logging.INFO, logger="supac.core.engine.executor")
        mock = MockBackendAdapter(Backend.SYSTEM)
        mock.set_failure("git")
        self._run(mock)
        failed = [r for r in caplog.records if r.getMessage().startswith("✗")]
        assert len(failed) == 1
        assert failed[0].levelno == logging.WARNING
        assert "install git → failed" in failed[0].getMessage()
