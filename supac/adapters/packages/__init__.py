"""Package-manager adapters — one per backend."""

from supac.adapters.packages.cargo import CargoAdapter
from supac.adapters.packages.flatpak import FlatpakAdapter
from supac.adapters.packages.pacman import PacmanAdapter

__all__ = ["CargoAdapter", "FlatpakAdapter", "PacmanAdapter"]
