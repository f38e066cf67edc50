"""Use cases — the operations front ends call."""
