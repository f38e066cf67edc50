"""
Backend and capability tags.

Backends form a closed set. A new package manager is supported by adding
a member here and registering one adapter under it.
"""

from __future__ import annotations

from enum import StrEnum


class Backend(StrEnum):
    """Supported package-manager families, in declaration order."""

    SYSTEM = "system"          # pacman / paru / yay
    SANDBOXED = "sandboxed"    # flatpak
    LANGUAGE = "language"      # cargo


# Plans and reports always walk backends in this order.
BACKEND_ORDER: tuple[Backend, ...] = tuple(Backend)


class Capability(StrEnum):
    """Operations an adapter may support."""

    QUERY = "query"
    INSTALL = "install"
    UNINSTALL = "uninstall"
    PIN = "pin"
    CLEAN_CACHE = "clean_cache"


def ordered(backends) -> list[Backend]:
    """Sort an iterable of backends into declaration order."""
    wanted = set(backends)
    return [b for b in BACKEND_ORDER if b in wanted]
