"""Reconciliation core — models, engine, use cases."""
