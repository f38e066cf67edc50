"""
Desired-state models — what the user declared.

A ``DesiredState`` maps each backend to a ``BackendPayload`` holding
remotes, pinned runtimes and packages. Backend-specific fields live in
``PackageSpec.options``, a union discriminated on ``kind``.

Everything here is frozen: the desired state is built once by the
config loader and never mutated during a run.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from supac.core.models.backend import BACKEND_ORDER, Backend


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class Hook(_Frozen):
    """Opaque post-action command, run by a HookRunner.

    The core never looks inside ``command``.
    """

    command: str | tuple[str, ...]
    description: str = ""

    def __str__(self) -> str:
        if self.description:
            return self.description
        if isinstance(self.command, str):
            return self.command
        return " ".join(self.command)


# ── Backend-specific options ────────────────────────────────────


class SystemOptions(_Frozen):
    kind: Literal["system"] = "system"


class LanguageOptions(_Frozen):
    """Cargo install flags."""

    kind: Literal["language"] = "language"
    all_features: bool = False
    no_default_features: bool = False
    features: tuple[str, ...] = ()
    git_remote: str | None = None

    @property
    def over_constrained(self) -> bool:
        """All features and no default features together with explicit features."""
        return self.all_features and self.no_default_features and bool(self.features)


class SandboxedOptions(_Frozen):
    """Flatpak application options."""

    kind: Literal["sandboxed"] = "sandboxed"
    remote: str | None = None
    systemwide: bool | None = None   # None = use configured default


class PinOptions(_Frozen):
    """Flatpak runtime pin options."""

    kind: Literal["pin"] = "pin"
    branch: str | None = None
    arch: str | None = None
    systemwide: bool | None = None


PackageOptions = Annotated[
    Union[SystemOptions, LanguageOptions, SandboxedOptions, PinOptions],
    Field(discriminator="kind"),
]


class PackageSpec(_Frozen):
    """One declared package (or pinned runtime)."""

    name: str = Field(min_length=1)
    post_hook: Hook | None = None
    options: PackageOptions = Field(default_factory=SystemOptions)

    @property
    def is_pin(self) -> bool:
        return isinstance(self.options, PinOptions)


class Remote(_Frozen):
    """A named Flatpak remote."""

    name: str = Field(min_length=1)
    url: str


class BackendPayload(_Frozen):
    """Declared content for a single backend.

    Only the sandboxed backend uses ``remotes`` and ``pinned``.
    """

    remotes: tuple[Remote, ...] = ()
    pinned: tuple[PackageSpec, ...] = ()
    packages: tuple[PackageSpec, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.remotes or self.pinned or self.packages)


class DesiredState(_Frozen):
    """User-declared target package set per backend."""

    backends: Mapping[Backend, BackendPayload] = Field(default_factory=dict, validate_default=True)

    @field_validator("backends")
    @classmethod
    def _read_only(cls, value: Mapping[Backend, BackendPayload]) -> Mapping[Backend, BackendPayload]:
        return MappingProxyType(dict(value))

    @field_serializer("backends")
    def _dump_backends(self, value: Mapping[Backend, BackendPayload]) -> dict:
        return dict(value)

    def payload(self, backend: Backend) -> BackendPayload:
        """Payload for a backend (empty when not declared)."""
        return self.backends.get(backend, BackendPayload())

    @property
    def referenced_backends(self) -> list[Backend]:
        """Backends mentioned in the declaration, in declaration order."""
        return [b for b in BACKEND_ORDER if b in self.backends]

    def packages(self, backend: Backend) -> tuple[PackageSpec, ...]:
        return self.payload(backend).packages

    def pins(self, backend: Backend) -> tuple[PackageSpec, ...]:
        return self.payload(backend).pinned

    def all_specs(self, backend: Backend) -> tuple[PackageSpec, ...]:
        """Pins then packages, the order they are planned in."""
        payload = self.payload(backend)
        return payload.pinned + payload.packages

    @property
    def total_specs(self) -> int:
        return sum(len(self.all_specs(b)) for b in self.backends)
