"""Command modules registered on the riskregister click group."""

from __future__ import annotations

__all__: list[str] = []
