"""
Configuration loader — reads config.yml and packages.yml into models.

Two files live in the config directory:

    config.yml     tool settings (package manager frontend, defaults)
    packages.yml   the desired state, one section per backend

The config directory is resolved from, in order:
    $SUPAC_HOME, $XDG_CONFIG_HOME/supac, $HOME/.config/supac,
    /home/$USER/.config/supac
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from supac.core.errors import ConfigInvalid
from supac.core.models.backend import Backend
from supac.core.models.options import ReconcileOptions
from supac.core.models.package import BackendPayload, DesiredState

logger = logging.getLogger(__name__)

SETTINGS_FILE = "config.yml"
PACKAGES_FILE = "packages.yml"

# options discriminator injected for each backend's package entries
_PACKAGE_KIND: dict[Backend, str] = {
    Backend.SYSTEM: "system",
    Backend.SANDBOXED: "sandboxed",
    Backend.LANGUAGE: "language",
}

# keys that are not backend options
_SPEC_KEYS = {"name", "package", "post_hook"}


class Settings(BaseModel):
    """Tool settings from config.yml."""

    arch_package_manager: str = "paru"
    cargo_use_binstall: bool = False
    flatpak_default_systemwide: bool = False
    strict_hooks: bool = False
    concurrency_limit: int | None = Field(default=None, ge=1)
    per_op_timeout: float | None = Field(default=None, gt=0)

    def reconcile_options(self, **overrides: Any) -> ReconcileOptions:
        """Run options from settings, with CLI overrides (None = keep setting)."""
        values = {
            "strict_hooks": self.strict_hooks,
            "concurrency_limit": self.concurrency_limit,
            "per_op_timeout": self.per_op_timeout,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return ReconcileOptions(**values)


def get_config_dir() -> Path:
    """Resolve the supac config directory from the environment.

    Raises:
        ConfigInvalid: If none of the variables are set.
    """
    env = os.environ
    if env.get("SUPAC_HOME"):
        logger.debug("$SUPAC_HOME is set, using %s", env["SUPAC_HOME"])
        return Path(env["SUPAC_HOME"])
    if env.get("XDG_CONFIG_HOME"):
        logger.debug("$XDG_CONFIG_HOME is set, using %s/supac", env["XDG_CONFIG_HOME"])
        return Path(env["XDG_CONFIG_HOME"]) / "supac"
    if env.get("HOME"):
        return Path(env["HOME"]) / ".config" / "supac"
    if env.get("USER"):
        return Path("/home") / env["USER"] / ".config" / "supac"
    raise ConfigInvalid(
        "Cannot determine the config directory: set SUPAC_HOME, XDG_CONFIG_HOME or HOME"
    )


def _read_yaml(path: Path) -> Any:
    try:
        raw = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigInvalid(f"Cannot read {path}: {e}") from e
    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigInvalid(f"Invalid YAML in {path}: {e}") from e


# ── Settings ────────────────────────────────────────────────────


def write_default_settings(path: Path) -> None:
    """Write a config.yml holding the default settings."""
    path.parent.mkdir(parents=True, exist_ok=True)
    defaults = Settings().model_dump(exclude_none=True)
    path.write_text(yaml.safe_dump(defaults, sort_keys=False), encoding="utf-8")
    logger.info("Wrote default settings to %s", path)


def load_settings(path: Path, create: bool = True) -> Settings:
    """Load config.yml, writing defaults first when it does not exist.

    Raises:
        ConfigInvalid: If the file is unreadable or invalid.
    """
    if not path.is_file():
        if not create:
            return Settings()
        write_default_settings(path)

    data = _read_yaml(path) or {}
    if not isinstance(data, dict):
        raise ConfigInvalid(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigInvalid(f"Invalid settings in {path}: {e}") from e


# ── Desired state ───────────────────────────────────────────────


def _normalize_hook(value: Any) -> Any:
    """Accept a string, an argv list, or a {command, description} mapping."""
    if value is None or isinstance(value, dict):
        return value
    if isinstance(value, list):
        return {"command": tuple(str(v) for v in value)}
    return {"command": str(value)}


def _normalize_spec(entry: Any, kind: str) -> dict:
    """Turn a bare name or mapping into PackageSpec input."""
    if isinstance(entry, str):
        return {"name": entry, "options": {"kind": kind}}
    if not isinstance(entry, dict):
        raise ConfigInvalid(f"Package entry must be a name or a mapping, got {entry!r}")

    name = entry.get("name", entry.get("package"))
    options = {k: v for k, v in entry.items() if k not in _SPEC_KEYS}
    options["kind"] = kind
    if isinstance(options.get("features"), list):
        options["features"] = tuple(options["features"])
    # `branch: 46` parses as an int
    for key in ("branch", "arch"):
        if options.get(key) is not None:
            options[key] = str(options[key])
    return {
        "name": name,
        "post_hook": _normalize_hook(entry.get("post_hook")),
        "options": options,
    }


def _parse_payload(backend: Backend, section: Any) -> BackendPayload:
    # a bare list is shorthand for {packages: [...]}
    if isinstance(section, list):
        section = {"packages": section}
    if section is None:
        section = {}
    if not isinstance(section, dict):
        raise ConfigInvalid(f"Section '{backend}' must be a mapping or a list")

    unknown = set(section) - {"packages", "pinned", "remotes"}
    if unknown:
        raise ConfigInvalid(f"Section '{backend}': unknown keys {sorted(unknown)}")

    payload = {
        "packages": [
            _normalize_spec(e, _PACKAGE_KIND[backend]) for e in section.get("packages") or []
        ],
        "pinned": [_normalize_spec(e, "pin") for e in section.get("pinned") or []],
        "remotes": section.get("remotes") or [],
    }
    try:
        return BackendPayload.model_validate(payload)
    except ValidationError as e:
        raise ConfigInvalid(f"Invalid '{backend}' section: {e}") from e


def parse_desired_state(data: Any, source: str = "<memory>") -> DesiredState:
    """Build a DesiredState from already-parsed YAML data.

    Raises:
        ConfigInvalid: On unknown backends or malformed entries.
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigInvalid(f"Expected a YAML mapping in {source}, got {type(data).__name__}")

    backends: dict[Backend, BackendPayload] = {}
    for key, section in data.items():
        try:
            backend = Backend(key)
        except ValueError:
            valid = ", ".join(b.value for b in Backend)
            raise ConfigInvalid(f"Unknown backend '{key}' in {source}. Valid: {valid}") from None
        backends[backend] = _parse_payload(backend, section)

    return DesiredState(backends=backends)


def load_desired_state(path: Path) -> DesiredState:
    """Load and parse packages.yml.

    Raises:
        ConfigInvalid: If the file is missing or invalid.
    """
    if not path.is_file():
        raise ConfigInvalid(f"Package file not found: {path}")

    logger.debug("Loading desired state from %s", path)
    desired = parse_desired_state(_read_yaml(path), source=str(path))
    logger.info(
        "Loaded %d declared packages across %d backends",
        desired.total_specs,
        len(desired.backends),
    )
    return desired
