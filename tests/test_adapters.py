"""
Tests for the adapter contract, registry, mock, shell runner and package adapters.
"""

import json
import subprocess
import sys
from pathlib import Path

import pytest

from supac.adapters.hooks import ShellHookRunner
from supac.adapters.mock import MockBackendAdapter, MockHookRunner
from supac.adapters.packages import cargo as cargo_mod
from supac.adapters.packages import flatpak as flatpak_mod
from supac.adapters.packages import pacman as pacman_mod
from supac.adapters.packages.cargo import (
    CargoAdapter,
    install_args,
    parse_binstall_manifest,
    parse_crates2,
)
from supac.adapters.packages.flatpak import (
    FlatpakAdapter,
    parse_list_output,
    parse_runtime_format,
    pin_pattern,
)
from supac.adapters.packages.pacman import PacmanAdapter, complete_groups, parse_query_output
from supac.adapters.registry import AdapterRegistry
from supac.adapters.shell import command as command_mod
from supac.adapters.shell.command import classify_failure, run_command
from supac.core.errors import BackendError, ErrorKind, HookError
from supac.core.models.action import Action, ActionKind
from supac.core.models.backend import Backend, Capability
from supac.core.models.package import (
    Hook,
    LanguageOptions,
    PackageSpec,
    PinOptions,
    SandboxedOptions,
)
from supac.core.models.state import InstalledPackage


class FakeRunner:
    """Stands in for ``run_command``: canned stdout or errors per command line."""

    def __init__(self, outputs=None, errors=None):
        self.outputs = outputs or {}
        self.errors = errors or {}
        self.calls: list[tuple[list[str], bool]] = []
        self.interactive: list[bool] = []

    def __call__(self, args, *, root=False, interactive=False, timeout=None):
        self.calls.append((list(args), root))
        self.interactive.append(interactive)
        key = " ".join(args)
        if key in self.errors:
            raise self.errors[key]
        return self.outputs.get(key, "")

    @property
    def commands(self) -> list[list[str]]:
        return [c for c, _ in self.calls]


def _install(name: str, backend: Backend = Backend.SYSTEM) -> Action:
    return Action(
        id=f"{backend.value}:install:{name}",
        kind=ActionKind.INSTALL,
        backend=backend,
        spec=PackageSpec(name=name),
    )


# ── Registry Tests ───────────────────────────────────────────────────


class TestAdapterRegistry:
    def test_register_and_get(self):
        mock = MockBackendAdapter(Backend.SYSTEM)
        registry = AdapterRegistry([mock])
        assert registry.get(Backend.SYSTEM) is mock
        assert registry.get(Backend.LANGUAGE) is None

    def test_list_backends_in_declaration_order(self):
        registry = AdapterRegistry([
            MockBackendAdapter(Backend.LANGUAGE),
            MockBackendAdapter(Backend.SYSTEM),
        ])
        assert registry.list_backends() == [Backend.SYSTEM, Backend.LANGUAGE]

    def test_unregister(self):
        registry = AdapterRegistry([MockBackendAdapter(Backend.SYSTEM)])
        registry.unregister(Backend.SYSTEM)
        assert registry.list_backends() == []

    def test_require_missing_is_unavailable(self):
        with pytest.raises(BackendError) as exc:
            AdapterRegistry().require(Backend.SANDBOXED)
        assert exc.value.kind == ErrorKind.BACKEND_UNAVAILABLE

    def test_adapter_status(self):
        registry = AdapterRegistry([MockBackendAdapter(Backend.SYSTEM, available=False)])
        status = registry.adapter_status()
        assert status["system"]["available"] is False
        assert status["system"]["type"] == "MockBackendAdapter"
        assert "install" in status["system"]["capabilities"]

    def test_execute_install(self):
        mock = MockBackendAdapter(Backend.SYSTEM)
        outcome = AdapterRegistry([mock]).execute_action(_install("git"))
        assert outcome.ok
        assert "git" in mock.installed_names

    def test_backend_error_becomes_failure(self):
        mock = MockBackendAdapter(Backend.SYSTEM)
        mock.set_failure("git", BackendError.not_found("no such package"))
        outcome = AdapterRegistry([mock]).execute_action(_install("git"))
        assert outcome.failed
        assert outcome.error_kind == ErrorKind.PACKAGE_NOT_FOUND

    def test_unexpected_exception_becomes_failure(self):
        class Broken(MockBackendAdapter):
            def install(self, spec, timeout=None):
                raise RuntimeError("kaboom")

        outcome = AdapterRegistry([Broken(Backend.SYSTEM)]).execute_action(_install("git"))
        assert outcome.failed
        assert outcome.error_kind == ErrorKind.COMMAND_FAILED
        assert "kaboom" in outcome.error.message

    def test_pin_requires_capability(self):
        mock = MockBackendAdapter(
            Backend.SANDBOXED, capabilities={Capability.QUERY, Capability.INSTALL}
        )
        action = Action(
            id="sandboxed:pin:rt",
            kind=ActionKind.PIN,
            backend=Backend.SANDBOXED,
            spec=PackageSpec(name="rt", options=PinOptions()),
        )
        outcome = AdapterRegistry([mock]).execute_action(action)
        assert outcome.failed
        assert outcome.error_kind == ErrorKind.UNSUPPORTED
        assert mock.call_count == 0

    def test_list_installed_requires_query(self):
        mock = MockBackendAdapter(Backend.SYSTEM, capabilities={Capability.INSTALL})
        with pytest.raises(BackendError) as exc:
            AdapterRegistry([mock]).list_installed(Backend.SYSTEM)
        assert exc.value.kind == ErrorKind.UNSUPPORTED


# ── Mock Adapter Tests ───────────────────────────────────────────────


class TestMockBackendAdapter:
    def test_install_updates_inventory(self):
        mock = MockBackendAdapter(Backend.LANGUAGE, installed=["bat"])
        mock.install(PackageSpec(name="ripgrep"))
        names = {p.name for p in mock.list_installed()}
        assert names == {"bat", "ripgrep"}

    def test_call_log(self):
        mock = MockBackendAdapter(Backend.SYSTEM)
        mock.list_installed()
        mock.install(PackageSpec(name="git"))
        assert mock.call_log == [("list_installed", ""), ("install", "git")]

    def test_pin_records_branch(self):
        mock = MockBackendAdapter(Backend.SANDBOXED)
        mock.pin(PackageSpec(name="rt", options=PinOptions(branch="46")))
        pins = [p for p in mock.list_installed() if p.pinned]
        assert pins[0].branch == "46"

    def test_query_error(self):
        mock = MockBackendAdapter(Backend.SYSTEM)
        mock.set_query_error(BackendError.unavailable("gone"))
        with pytest.raises(BackendError):
            mock.list_installed()

    def test_reset(self):
        mock = MockBackendAdapter(Backend.SYSTEM)
        mock.set_failure("git")
        mock.install(PackageSpec(name="vim"))
        mock.reset()
        assert mock.call_count == 0
        mock.install(PackageSpec(name="git"))

    def test_hook_runner_failure(self):
        runner = MockHookRunner()
        hook = Hook(command="false")
        runner.set_failure(hook)
        with pytest.raises(HookError):
            runner.invoke(hook)
        assert runner.invoked == [hook]


# ── Shell Runner Tests ───────────────────────────────────────────────


class TestRunCommand:
    @pytest.fixture(autouse=True)
    def _on_path(self, monkeypatch):
        monkeypatch.setattr(command_mod.shutil, "which", lambda name: f"/usr/bin/{name}")

    def _fake_run(self, monkeypatch, returncode=0, stdout="", stderr="", exc=None):
        seen = {}

        def fake(argv, **kwargs):
            seen["argv"] = argv
            seen["kwargs"] = kwargs
            if exc is not None:
                raise exc
            return subprocess.CompletedProcess(argv, returncode, stdout, stderr)

        monkeypatch.setattr(command_mod.subprocess, "run", fake)
        return seen

    def test_returns_stdout(self, monkeypatch):
        seen = self._fake_run(monkeypatch, stdout="ripgrep 14.1.0-1\n")
        assert run_command(["pacman", "-Q"], timeout=5) == "ripgrep 14.1.0-1\n"
        assert seen["argv"] == ["pacman", "-Q"]
        assert seen["kwargs"]["timeout"] == 5

    def test_root_prefixes_sudo(self, monkeypatch):
        seen = self._fake_run(monkeypatch)
        run_command(["pacman", "-S", "git"], root=True)
        assert seen["argv"][:2] == ["sudo", "pacman"]
        assert seen["kwargs"]["process_group"] is None
        assert seen["kwargs"]["stdin"] is None

    def test_non_interactive_runs_in_own_process_group(self, monkeypatch):
        seen = self._fake_run(monkeypatch)
        run_command(["flatpak", "list"])
        assert seen["kwargs"]["process_group"] == 0
        assert seen["kwargs"]["stdin"] == subprocess.DEVNULL

    def test_interactive_keeps_terminal(self, monkeypatch):
        seen = self._fake_run(monkeypatch)
        run_command(["paru", "-S", "git"], interactive=True)
        assert seen["kwargs"]["process_group"] is None

    def test_missing_binary(self, monkeypatch):
        monkeypatch.setattr(command_mod.shutil, "which", lambda name: None)
        with pytest.raises(BackendError) as exc:
            run_command(["flatpak", "list"])
        assert exc.value.kind == ErrorKind.BACKEND_UNAVAILABLE

    def test_timeout(self, monkeypatch):
        self._fake_run(monkeypatch, exc=subprocess.TimeoutExpired("cargo", 1))
        with pytest.raises(BackendError) as exc:
            run_command(["cargo", "install", "bat"], timeout=1)
        assert exc.value.kind == ErrorKind.TIMEOUT

    def test_permission_denied(self, monkeypatch):
        self._fake_run(
            monkeypatch,
            returncode=1,
            stderr="error: you cannot perform this operation unless you are root.",
        )
        with pytest.raises(BackendError) as exc:
            run_command(["pacman", "-S", "git"])
        assert exc.value.kind == ErrorKind.PERMISSION_DENIED

    def test_not_found(self, monkeypatch):
        self._fake_run(monkeypatch, returncode=1, stderr="error: target not found: nosuchpkg")
        with pytest.raises(BackendError) as exc:
            run_command(["paru", "-S", "nosuchpkg"])
        assert exc.value.kind == ErrorKind.PACKAGE_NOT_FOUND

    def test_other_failure_keeps_exit_code(self, monkeypatch):
        self._fake_run(monkeypatch, returncode=101, stderr="error: failed to compile")
        with pytest.raises(BackendError) as exc:
            run_command(["cargo", "install", "bat"])
        assert exc.value.kind == ErrorKind.COMMAND_FAILED
        assert exc.value.exit_code == 101
        assert "failed to compile" in exc.value.stderr

    def test_empty_command(self):
        with pytest.raises(BackendError):
            run_command([])

    def test_classify_failure(self):
        err = classify_failure(["flatpak", "install", "x"], 1, "error: Nothing matches x")
        assert err.kind == ErrorKind.PACKAGE_NOT_FOUND


class TestShellHookRunner:
    def test_success(self):
        ShellHookRunner().invoke(Hook(command=(sys.executable, "-c", "pass")))

    def test_non_zero_exit(self):
        hook = Hook(command=(sys.executable, "-c", "import sys; sys.exit(3)"))
        with pytest.raises(HookError) as exc:
            ShellHookRunner().invoke(hook)
        assert exc.value.exit_code == 3

    def test_missing_program(self):
        with pytest.raises(HookError):
            ShellHookRunner().invoke(Hook(command=("/nonexistent/supac-hook",)))


# ── System Backend (pacman) ──────────────────────────────────────────


class TestPacmanAdapter:
    def test_unsupported_frontend(self):
        with pytest.raises(ValueError):
            PacmanAdapter(frontend="apt")

    def test_parse_query_output(self):
        packages = parse_query_output("base 3-2\nripgrep 14.1.0-1\n\n")
        assert [(p.name, p.version) for p in packages] == [("base", "3-2"), ("ripgrep", "14.1.0-1")]

    def test_complete_groups(self):
        local = "base-devel gcc\nbase-devel make\n"
        sync = {"base-devel": {"gcc", "make", "autoconf"}}
        assert complete_groups(local, sync, {"gcc", "make"}) == []
        assert complete_groups(local, sync, {"gcc", "make", "autoconf"}) == ["base-devel"]

    def test_list_installed_includes_complete_groups(self, monkeypatch):
        runner = FakeRunner(outputs={
            "pacman --query": "gcc 14-1\nmake 4.4-1\n",
            "pacman --query --groups": "base-devel gcc\nbase-devel make\n",
            "pacman --sync --groups --groups": "base-devel gcc\nbase-devel make\n",
        })
        monkeypatch.setattr(pacman_mod, "run_command", runner)
        names = {p.name for p in PacmanAdapter().list_installed()}
        assert names == {"gcc", "make", "base-devel"}

    def test_list_installed_without_groups(self, monkeypatch):
        runner = FakeRunner(
            outputs={"pacman --query": "git 2.45-1\n"},
            errors={"pacman --query --groups": BackendError.command_failed("no groups", exit_code=1)},
        )
        monkeypatch.setattr(pacman_mod, "run_command", runner)
        assert [p.name for p in PacmanAdapter().list_installed()] == ["git"]

    def test_install_via_helper(self, monkeypatch):
        runner = FakeRunner()
        monkeypatch.setattr(pacman_mod, "run_command", runner)
        PacmanAdapter("paru").install(PackageSpec(name="ripgrep"))
        assert runner.calls == [(["paru", "--sync", "--needed", "--noconfirm", "ripgrep"], False)]
        assert runner.interactive == [True]

    def test_plain_pacman_needs_root(self, monkeypatch):
        runner = FakeRunner()
        monkeypatch.setattr(pacman_mod, "run_command", runner)
        PacmanAdapter("pacman").install(PackageSpec(name="ripgrep"))
        assert runner.calls[0][1] is True

    def test_clean_cache(self, monkeypatch):
        runner = FakeRunner()
        monkeypatch.setattr(pacman_mod, "run_command", runner)
        PacmanAdapter("yay").clean_cache()
        assert runner.commands == [["yay", "--sync", "--clean", "--noconfirm"]]


# ── Sandboxed Backend (flatpak) ──────────────────────────────────────


class TestFlatpakAdapter:
    def test_parse_runtime_format(self):
        assert parse_runtime_format("runtime/org.gnome.Platform/x86_64/46") == (
            "org.gnome.Platform",
            "x86_64",
            "46",
        )
        assert parse_runtime_format("org.kde.Platform") == ("org.kde.Platform", None, None)

    def test_pin_pattern(self):
        assert pin_pattern(PackageSpec(name="rt", options=PinOptions())) == "rt"
        assert pin_pattern(PackageSpec(name="rt", options=PinOptions(arch="x86_64"))) == "rt/x86_64"
        assert pin_pattern(PackageSpec(name="rt", options=PinOptions(branch="46"))) == "rt//46"

    def test_parse_list_output(self):
        entries = parse_list_output("org.mozilla.firefox\tstable\tx86_64\n", "user")
        assert entries[0].name == "org.mozilla.firefox"
        assert entries[0].branch == "stable"
        assert entries[0].scope == "user"

    def test_list_installed_keeps_pins_of_installed_runtimes(self, monkeypatch):
        runner = FakeRunner(outputs={
            "flatpak list --user --columns=application,branch,arch": "org.mozilla.firefox\tstable\tx86_64\n",
            "flatpak pin --user": "runtime/org.gnome.Platform/x86_64/46\n",
            "flatpak list --system --columns=application,branch,arch": "org.gnome.Platform\t46\tx86_64\n",
            "flatpak pin --system": "runtime/org.gnome.Platform/x86_64/46\n",
        })
        monkeypatch.setattr(flatpak_mod, "run_command", runner)
        entries = FlatpakAdapter().list_installed()
        pins = [e for e in entries if e.pinned]
        assert len(pins) == 1
        assert pins[0].scope == "system"
        assert {e.name for e in entries if not e.pinned} == {
            "org.mozilla.firefox",
            "org.gnome.Platform",
        }

    def test_list_installed_keeps_every_pin_of_a_runtime(self, monkeypatch):
        runner = FakeRunner(outputs={
            "flatpak list --user --columns=application,branch,arch": (
                "org.gnome.Platform\t46\tx86_64\norg.gnome.Platform\t47\tx86_64\n"
            ),
            "flatpak pin --user": (
                "runtime/org.gnome.Platform/x86_64/46\nruntime/org.gnome.Platform/x86_64/47\n"
            ),
        })
        monkeypatch.setattr(flatpak_mod, "run_command", runner)
        pins = [e for e in FlatpakAdapter().list_installed() if e.pinned]
        assert [p.branch for p in pins] == ["46", "47"]

    def test_pin_of_other_arch_runtime_not_counted(self, monkeypatch):
        runner = FakeRunner(outputs={
            "flatpak list --user --columns=application,branch,arch": "org.gnome.Platform\t46\tx86_64\n",
            "flatpak pin --user": "runtime/org.gnome.Platform/aarch64/46\n",
        })
        monkeypatch.setattr(flatpak_mod, "run_command", runner)
        assert not [e for e in FlatpakAdapter().list_installed() if e.pinned]

    def test_install_uses_default_scope_and_remote(self, monkeypatch):
        runner = FakeRunner()
        monkeypatch.setattr(flatpak_mod, "run_command", runner)
        spec = PackageSpec(name="org.x.App", options=SandboxedOptions(remote="flathub"))
        FlatpakAdapter().install(spec)
        assert runner.commands == [
            ["flatpak", "install", "--user", "--noninteractive", "flathub", "org.x.App"]
        ]

    def test_spec_overrides_default_scope(self, monkeypatch):
        runner = FakeRunner()
        monkeypatch.setattr(flatpak_mod, "run_command", runner)
        spec = PackageSpec(name="org.x.App", options=SandboxedOptions(systemwide=False))
        FlatpakAdapter(default_systemwide=True).install(spec)
        assert "--user" in runner.commands[0]

    def test_pin_then_install_branch(self, monkeypatch):
        runner = FakeRunner()
        monkeypatch.setattr(flatpak_mod, "run_command", runner)
        spec = PackageSpec(
            name="org.gnome.Platform",
            options=PinOptions(branch="46", arch="x86_64", systemwide=True),
        )
        FlatpakAdapter().pin(spec)
        assert runner.commands == [
            ["flatpak", "pin", "--system", "org.gnome.Platform/x86_64/46"],
            ["flatpak", "install", "--system", "--noninteractive", "org.gnome.Platform/x86_64/46"],
        ]

    def test_pin_installs_declared_arch(self, monkeypatch):
        runner = FakeRunner()
        monkeypatch.setattr(flatpak_mod, "run_command", runner)
        spec = PackageSpec(name="org.gnome.Platform", options=PinOptions(branch="46", arch="aarch64"))
        FlatpakAdapter().pin(spec)
        assert runner.commands[-1] == [
            "flatpak", "install", "--user", "--noninteractive", "org.gnome.Platform/aarch64/46",
        ]

    def test_pin_branch_only_ref(self, monkeypatch):
        runner = FakeRunner()
        monkeypatch.setattr(flatpak_mod, "run_command", runner)
        FlatpakAdapter().pin(PackageSpec(name="rt", options=PinOptions(branch="46")))
        assert runner.commands[-1][-1] == "rt//46"

    def test_clean_cache_covers_both_scopes(self, monkeypatch):
        runner = FakeRunner()
        monkeypatch.setattr(flatpak_mod, "run_command", runner)
        FlatpakAdapter().clean_cache()
        assert [c[-1] for c in runner.commands] == ["--user", "--system"]


# ── Language Backend (cargo) ─────────────────────────────────────────


_CRATES2 = json.dumps({
    "installs": {
        "ripgrep 14.1.0 (registry+https://github.com/rust-lang/crates.io-index)": {},
        "bat 0.24.0 (registry+https://github.com/rust-lang/crates.io-index)": {},
    }
})


class TestCargoAdapter:
    @pytest.fixture
    def cargo_home(self, tmp_path: Path, monkeypatch) -> Path:
        monkeypatch.setattr(cargo_mod.shutil, "which", lambda name: f"/usr/bin/{name}")
        home = tmp_path / "cargo"
        home.mkdir()
        return home

    def test_parse_crates2(self):
        packages = parse_crates2(_CRATES2)
        assert {(p.name, p.version) for p in packages} == {
            ("ripgrep", "14.1.0"),
            ("bat", "0.24.0"),
        }

    def test_parse_crates2_empty(self):
        assert parse_crates2("") == []

    def test_parse_crates2_malformed(self):
        with pytest.raises(BackendError) as exc:
            parse_crates2("{not json")
        assert exc.value.kind == ErrorKind.COMMAND_FAILED

    def test_parse_binstall_manifest(self):
        content = (
            '{"name": "bat", "current_version": "0.24.0"}\n'
            '{"name": "fd-find", "current_version": "9.0.0"}'
        )
        assert [p.name for p in parse_binstall_manifest(content)] == ["bat", "fd-find"]

    def test_list_installed(self, cargo_home: Path):
        (cargo_home / ".crates2.json").write_text(_CRATES2)
        names = {p.name for p in CargoAdapter(cargo_home=cargo_home).list_installed()}
        assert names == {"ripgrep", "bat"}

    def test_missing_manifest_means_nothing_installed(self, cargo_home: Path):
        assert CargoAdapter(cargo_home=cargo_home).list_installed() == []

    def test_binstall_merges_manifests(self, cargo_home: Path):
        (cargo_home / ".crates2.json").write_text(_CRATES2)
        (cargo_home / "binstall").mkdir()
        (cargo_home / "binstall" / "crates-v1.json").write_text(
            '{"name": "bat", "current_version": "0.24.0"}{"name": "zoxide", "current_version": "0.9.4"}'
        )
        adapter = CargoAdapter(use_binstall=True, cargo_home=cargo_home)
        names = sorted(p.name for p in adapter.list_installed())
        assert names == ["bat", "ripgrep", "zoxide"]

    def test_unavailable_without_cargo(self, tmp_path: Path, monkeypatch):
        monkeypatch.setattr(cargo_mod.shutil, "which", lambda name: None)
        with pytest.raises(BackendError) as exc:
            CargoAdapter(cargo_home=tmp_path).list_installed()
        assert exc.value.kind == ErrorKind.BACKEND_UNAVAILABLE

    def test_install_args(self):
        spec = PackageSpec(
            name="ripgrep",
            options=LanguageOptions(
                git_remote="https://github.com/BurntSushi/ripgrep",
                no_default_features=True,
                features=("pcre2", "simd"),
            ),
        )
        assert install_args(spec) == [
            "cargo",
            "install",
            "--git",
            "https://github.com/BurntSushi/ripgrep",
            "--no-default-features",
            "--features",
            "pcre2,simd",
            "ripgrep",
        ]

    def test_install_args_binstall(self):
        args = install_args(PackageSpec(name="bat"), installer="binstall")
        assert args == ["cargo", "binstall", "--no-confirm", "bat"]

    def test_clean_cache_without_cargo_cache(self, monkeypatch, tmp_path: Path):
        runner = FakeRunner(errors={
            "cargo cache --help": BackendError.command_failed("no such command", exit_code=101),
        })
        monkeypatch.setattr(cargo_mod, "run_command", runner)
        CargoAdapter(cargo_home=tmp_path).clean_cache()
        assert runner.commands == [["cargo", "cache", "--help"]]

    def test_clean_cache(self, monkeypatch, tmp_path: Path):
        runner = FakeRunner()
        monkeypatch.setattr(cargo_mod, "run_command", runner)
        CargoAdapter(cargo_home=tmp_path).clean_cache()
        assert runner.commands[-1] == ["cargo", "cache", "--autoclean"]


class TestBaseAdapter:
    def test_unsupported_operations_raise(self):
        adapter = CargoAdapter(cargo_home=Path("/nonexistent"))
        with pytest.raises(BackendError) as exc:
            adapter.pin(PackageSpec(name="bat"))
        assert exc.value.kind == ErrorKind.UNSUPPORTED

    def test_supports(self):
        assert FlatpakAdapter().supports(Capability.PIN)
        assert not PacmanAdapter().supports(Capability.PIN)

    def test_installed_package_defaults(self):
        assert InstalledPackage(name="x").pinned is False
