"""Shell helpers shared by the package-manager adapters."""
