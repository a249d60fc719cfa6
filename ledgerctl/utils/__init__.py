"""Shared helpers for serialization and filesystem access."""
