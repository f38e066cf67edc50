"""supac — declarative package reconciliation across package managers."""

__version__ = "0.1.0"
