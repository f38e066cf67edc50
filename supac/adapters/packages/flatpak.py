"""
Sandboxed backend adapter — Flatpak applications and pinned runtimes.

Flatpak keeps separate user and system installations. Each spec may
choose one with ``systemwide``; otherwise the configured default is
used. Queries cover both installations.
"""

from __future__ import annotations

import logging
import shutil

from supac.adapters.base import BackendAdapter
from supac.adapters.shell.command import run_command
from supac.core.models.backend import Backend, Capability
from supac.core.models.package import PackageSpec
from supac.core.models.state import InstalledPackage

logger = logging.getLogger(__name__)

SCOPES = ("user", "system")


class FlatpakAdapter(BackendAdapter):
    """Flatpak adapter.

    Args:
        default_systemwide: Scope for specs that do not set ``systemwide``.
    """

    capabilities = frozenset({
        Capability.QUERY,
        Capability.INSTALL,
        Capability.PIN,
        Capability.UNINSTALL,
        Capability.CLEAN_CACHE,
    })

    def __init__(self, default_systemwide: bool = False):
        self.default_systemwide = default_systemwide

    @property
    def backend(self) -> Backend:
        return Backend.SANDBOXED

    def is_available(self) -> bool:
        return shutil.which("flatpak") is not None

    def _scope_flag(self, spec: PackageSpec) -> str:
        systemwide = getattr(spec.options, "systemwide", None)
        if systemwide is None:
            systemwide = self.default_systemwide
        return "--system" if systemwide else "--user"

    def list_installed(self, timeout: float | None = None) -> list[InstalledPackage]:
        entries: list[InstalledPackage] = []
        for scope in SCOPES:
            out = run_command(
                ["flatpak", "list", f"--{scope}", "--columns=application,branch,arch"],
                timeout=timeout,
            )
            installed = parse_list_output(out, scope)
            entries.extend(installed)

            # a pin only counts once a matching runtime is actually installed
            pins = run_command(["flatpak", "pin", f"--{scope}"], timeout=timeout)
            entries.extend(
                p for p in parse_pin_output(pins, scope)
                if any(_runtime_matches(p, e) for e in installed)
            )

        logger.debug("flatpak reports %d installed entries", len(entries))
        return entries

    def install(self, spec: PackageSpec, timeout: float | None = None) -> None:
        args = ["flatpak", "install", self._scope_flag(spec), "--noninteractive"]
        remote = getattr(spec.options, "remote", None)
        if remote:
            args.append(remote)
        args.append(spec.name)
        run_command(args, timeout=timeout)

    def pin(self, spec: PackageSpec, timeout: float | None = None) -> None:
        scope = self._scope_flag(spec)
        pattern = pin_pattern(spec)
        run_command(["flatpak", "pin", scope, pattern], timeout=timeout)
        # the pattern doubles as a partial ref, so the declared arch is installed too
        run_command(["flatpak", "install", scope, "--noninteractive", pattern], timeout=timeout)

    def uninstall(self, spec: PackageSpec, timeout: float | None = None) -> None:
        run_command(
            ["flatpak", "remove", self._scope_flag(spec), "--noninteractive", spec.name],
            timeout=timeout,
        )

    def clean_cache(self, timeout: float | None = None) -> None:
        for scope in SCOPES:
            run_command(
                ["flatpak", "remove", "--delete-data", "--unused", "--noninteractive", f"--{scope}"],
                timeout=timeout,
            )


def pin_pattern(spec: PackageSpec) -> str:
    """Build a ``name/arch/branch`` pin pattern, dropping empty tail parts."""
    arch = getattr(spec.options, "arch", None) or ""
    branch = getattr(spec.options, "branch", None) or ""
    if not arch and not branch:
        return spec.name
    if not branch:
        return f"{spec.name}/{arch}"
    return f"{spec.name}/{arch}/{branch}"


def parse_runtime_format(line: str) -> tuple[str, str | None, str | None]:
    """Parse a pin line into ``(name, arch, branch)``.

    Accepts ``runtime/<name>/<arch>/<branch>`` and the bare
    ``<name>/<arch>/<branch>`` form; missing parts become None.
    """
    parts = line.strip().split("/")
    if parts and parts[0] == "runtime":
        parts = parts[1:]
    name = parts[0] if parts else ""
    arch = parts[1] if len(parts) > 1 and parts[1] else None
    branch = parts[2] if len(parts) > 2 and parts[2] else None
    return name, arch, branch


def parse_pin_output(output: str, scope: str) -> list[InstalledPackage]:
    pins = []
    for line in output.splitlines():
        if not line.strip():
            continue
        name, arch, branch = parse_runtime_format(line)
        if name:
            pins.append(
                InstalledPackage(name=name, arch=arch, branch=branch, pinned=True, scope=scope)
            )
    return pins


def parse_list_output(output: str, scope: str) -> list[InstalledPackage]:
    """Parse ``flatpak list --columns=application,branch,arch`` (tab separated)."""
    entries = []
    for line in output.splitlines():
        parts = [p.strip() for p in line.split("\t")]
        if not parts or not parts[0]:
            continue
        entries.append(
            InstalledPackage(
                name=parts[0],
                branch=parts[1] if len(parts) > 1 and parts[1] else None,
                arch=parts[2] if len(parts) > 2 and parts[2] else None,
                scope=scope,
            )
        )
    return entries


def _runtime_matches(pin: InstalledPackage, runtime: InstalledPackage) -> bool:
    """Whether an installed runtime satisfies the parts a pin names."""
    if pin.name != runtime.name:
        return False
    if pin.branch and pin.branch != runtime.branch:
        return False
    return not pin.arch or pin.arch == runtime.arch
