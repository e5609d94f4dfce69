"""
Catalog types — zones and price tiers.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Zone:
    """A Wi-Fi location with its own ticket inventory."""

    id: str
    name: str
    router_ip: str | None = None
    is_active: bool = True


@dataclass(frozen=True, slots=True)
class Pricing:
    """A named offer: amount in minor units for a duration."""

    id: str
    zone_id: str
    name: str
    amount: int
    duration_hours: int | None = None
    is_active: bool = True


__all__ = ("Zone", "Pricing")
