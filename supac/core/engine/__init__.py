"""Reconciliation engine — query, diff, plan, execute."""
