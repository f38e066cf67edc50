"""
Language backend adapter — Rust crates via ``cargo install`` or ``cargo binstall``.

Installed crates are read from cargo's own bookkeeping instead of
shelling out:

    $CARGO_HOME/.crates2.json             written by cargo install
    $CARGO_HOME/binstall/crates-v1.json   written by cargo binstall

binstall falls back to source builds it does not track itself, so in
binstall mode both files are read and merged.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
from pathlib import Path

from supac.adapters.base import BackendAdapter
from supac.adapters.shell.command import run_command
from supac.core.errors import BackendError
from supac.core.models.backend import Backend, Capability
from supac.core.models.package import LanguageOptions, PackageSpec
from supac.core.models.state import InstalledPackage

logger = logging.getLogger(__name__)


def default_cargo_home() -> Path:
    """``$CARGO_HOME``, falling back to ``~/.cargo``."""
    cargo_home = os.environ.get("CARGO_HOME")
    if cargo_home:
        return Path(cargo_home)
    logger.debug("CARGO_HOME not set, using ~/.cargo")
    return Path.home() / ".cargo"


class CargoAdapter(BackendAdapter):
    """Cargo adapter.

    Args:
        use_binstall: Install with ``cargo binstall`` instead of ``cargo install``.
        cargo_home: Override for ``$CARGO_HOME``.
    """

    capabilities = frozenset({
        Capability.QUERY,
        Capability.INSTALL,
        Capability.UNINSTALL,
        Capability.CLEAN_CACHE,
    })

    def __init__(self, use_binstall: bool = False, cargo_home: Path | None = None):
        self.use_binstall = use_binstall
        self.cargo_home = cargo_home or default_cargo_home()

    @property
    def backend(self) -> Backend:
        return Backend.LANGUAGE

    @property
    def installer(self) -> str:
        return "binstall" if self.use_binstall else "install"

    def is_available(self) -> bool:
        return shutil.which("cargo") is not None

    def list_installed(self, timeout: float | None = None) -> list[InstalledPackage]:
        if not self.is_available():
            raise BackendError.unavailable("'cargo' not found on PATH")

        packages = parse_crates2(self._read(self.cargo_home / ".crates2.json"))
        if self.use_binstall:
            seen = {p.name for p in packages}
            binstalled = parse_binstall_manifest(
                self._read(self.cargo_home / "binstall" / "crates-v1.json")
            )
            packages.extend(p for p in binstalled if p.name not in seen)
        return packages

    @staticmethod
    def _read(path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.warning("%s not found, assuming no crates installed from it", path)
            return ""
        except OSError as e:
            raise BackendError.permission_denied(f"Cannot read {path}: {e}") from e

    def install(self, spec: PackageSpec, timeout: float | None = None) -> None:
        run_command(install_args(spec, self.installer), timeout=timeout)

    def uninstall(self, spec: PackageSpec, timeout: float | None = None) -> None:
        run_command(["cargo", "uninstall", spec.name], timeout=timeout)

    def clean_cache(self, timeout: float | None = None) -> None:
        try:
            run_command(["cargo", "cache", "--help"], timeout=timeout)
        except BackendError:
            logger.warning("cargo-cache not installed, skipping cargo cache cleaning")
            return
        run_command(["cargo", "cache", "--autoclean"], timeout=timeout)


def install_args(spec: PackageSpec, installer: str = "install") -> list[str]:
    """Build the cargo command line for a spec."""
    args = ["cargo", installer]
    opts = spec.options
    if isinstance(opts, LanguageOptions):
        if opts.git_remote:
            args += ["--git", opts.git_remote]
        if opts.all_features:
            args.append("--all-features")
        if opts.no_default_features:
            args.append("--no-default-features")
        if opts.features:
            args += ["--features", ",".join(opts.features)]
    if installer == "binstall":
        args.append("--no-confirm")
    args.append(spec.name)
    return args


def parse_crates2(content: str) -> list[InstalledPackage]:
    """Parse ``.crates2.json``.

    Install keys look like ``"ripgrep 14.1.0 (registry+https://...)"``.
    """
    if not content.strip():
        return []
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise BackendError.command_failed(f"Malformed .crates2.json: {e}", exit_code=-1) from e

    installs = data.get("installs") if isinstance(data, dict) else None
    if not isinstance(installs, dict):
        raise BackendError.command_failed(
            "Malformed .crates2.json: missing 'installs' object", exit_code=-1
        )

    packages = []
    for key in installs:
        parts = key.split(" ")
        if len(parts) < 2:
            continue
        packages.append(InstalledPackage(name=parts[0], version=parts[1]))
    return packages


def parse_binstall_manifest(content: str) -> list[InstalledPackage]:
    """Parse binstall's manifest: a stream of concatenated JSON objects."""
    decoder = json.JSONDecoder()
    packages = []
    pos = 0
    content = content.strip()
    while pos < len(content):
        try:
            obj, end = decoder.raw_decode(content, pos)
        except json.JSONDecodeError as e:
            raise BackendError.command_failed(
                f"Malformed binstall manifest: {e}", exit_code=-1
            ) from e
        if isinstance(obj, dict) and obj.get("name"):
            packages.append(
                InstalledPackage(name=obj["name"], version=obj.get("current_version"))
            )
        pos = end
        while pos < len(content) and content[pos].isspace():
            pos += 1
    return packages
