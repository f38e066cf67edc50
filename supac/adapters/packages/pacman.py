"""
System backend adapter — Arch Linux packages via pacman or an AUR helper.

The frontend is configurable (``paru`` by default). Plain ``pacman``
needs root and is run through sudo; AUR helpers escalate on their own.
Either way a password prompt may appear, so changes run interactively.
Package groups count as installed when every member is installed, so a
declared group is not re-planned on every run.
"""

from __future__ import annotations

import logging
import shutil

from supac.adapters.base import BackendAdapter
from supac.adapters.shell.command import run_command
from supac.core.errors import BackendError
from supac.core.models.backend import Backend, Capability
from supac.core.models.package import PackageSpec
from supac.core.models.state import InstalledPackage

logger = logging.getLogger(__name__)

SUPPORTED_FRONTENDS = ("paru", "yay", "pacman")


class PacmanAdapter(BackendAdapter):
    """Arch package adapter.

    Args:
        frontend: Command used for install/uninstall/cache operations.
            Queries always go through ``pacman`` itself.
    """

    capabilities = frozenset({
        Capability.QUERY,
        Capability.INSTALL,
        Capability.UNINSTALL,
        Capability.CLEAN_CACHE,
    })

    def __init__(self, frontend: str = "paru"):
        if frontend not in SUPPORTED_FRONTENDS:
            raise ValueError(
                f"Unsupported arch package manager '{frontend}'. "
                f"Valid: {', '.join(SUPPORTED_FRONTENDS)}"
            )
        self.frontend = frontend

    @property
    def backend(self) -> Backend:
        return Backend.SYSTEM

    @property
    def _needs_root(self) -> bool:
        return self.frontend == "pacman"

    def is_available(self) -> bool:
        return shutil.which("pacman") is not None and shutil.which(self.frontend) is not None

    def list_installed(self, timeout: float | None = None) -> list[InstalledPackage]:
        out = run_command(["pacman", "--query"], timeout=timeout)
        packages = parse_query_output(out)

        # `pacman -Qg` exits non-zero when no installed package belongs to a group
        try:
            groups_out = run_command(["pacman", "--query", "--groups"], timeout=timeout)
        except BackendError as e:
            if e.exit_code is None:
                raise
            groups_out = ""
        installed_names = {p.name for p in packages}
        sync_groups = self._sync_groups(timeout) if groups_out else {}
        for group in complete_groups(groups_out, sync_groups, installed_names):
            packages.append(InstalledPackage(name=group))

        logger.debug("pacman reports %d installed entries", len(packages))
        return packages

    def _sync_groups(self, timeout: float | None) -> dict[str, set[str]]:
        """Full group membership from the sync databases."""
        try:
            out = run_command(["pacman", "--sync", "--groups", "--groups"], timeout=timeout)
        except BackendError as e:
            logger.debug("Could not read sync groups: %s", e)
            return {}
        return parse_group_output(out)

    def install(self, spec: PackageSpec, timeout: float | None = None) -> None:
        run_command(
            [self.frontend, "--sync", "--needed", "--noconfirm", spec.name],
            root=self._needs_root,
            interactive=True,
            timeout=timeout,
        )

    def uninstall(self, spec: PackageSpec, timeout: float | None = None) -> None:
        run_command(
            [self.frontend, "--remove", "--recursive", "--nosave", "--noconfirm", spec.name],
            root=self._needs_root,
            interactive=True,
            timeout=timeout,
        )

    def clean_cache(self, timeout: float | None = None) -> None:
        run_command(
            [self.frontend, "--sync", "--clean", "--noconfirm"],
            root=self._needs_root,
            interactive=True,
            timeout=timeout,
        )


def parse_query_output(output: str) -> list[InstalledPackage]:
    """Parse ``pacman -Q`` lines (``name version``)."""
    packages = []
    for line in output.splitlines():
        parts = line.split()
        if not parts:
            continue
        version = parts[1] if len(parts) > 1 else None
        packages.append(InstalledPackage(name=parts[0], version=version))
    return packages


def parse_group_output(output: str) -> dict[str, set[str]]:
    """Parse ``group package`` lines into ``{group: {packages}}``."""
    groups: dict[str, set[str]] = {}
    for line in output.splitlines():
        parts = line.split()
        if len(parts) != 2:
            continue
        groups.setdefault(parts[0], set()).add(parts[1])
    return groups


def complete_groups(
    installed_groups_output: str,
    sync_groups: dict[str, set[str]],
    installed_names: set[str],
) -> list[str]:
    """Groups whose every member is installed.

    When the sync database does not know a group, membership from the
    local database is used as-is.
    """
    local = parse_group_output(installed_groups_output)
    complete = []
    for group in sorted(local):
        members = sync_groups.get(group, local[group])
        if members <= installed_names:
            complete.append(group)
    return complete
