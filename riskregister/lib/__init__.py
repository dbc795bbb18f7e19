"""Shared helpers (logging, JSON)."""
