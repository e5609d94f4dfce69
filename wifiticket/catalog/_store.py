"""
Catalog store — read access to zones and pricings.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

from kungfu import Result, Ok

from wifiticket.errors import StoreError
from wifiticket.catalog._types import Zone, Pricing


class Catalog(Protocol):
    """Zone / pricing lookup. Ok(None) when absent."""

    async def get_zone(self, zone_id: str) -> Result[Zone | None, StoreError]: ...

    async def get_pricing(
        self, pricing_id: str
    ) -> Result[Pricing | None, StoreError]: ...


class MemoryCatalog:
    """In-memory catalog for tests and seeding."""

    def __init__(self) -> None:
        self._zones: dict[str, Zone] = {}
        self._pricings: dict[str, Pricing] = {}
        self._lock = asyncio.Lock()

    async def add_zone(self, zone: Zone) -> Result[Zone, StoreError]:
        async with self._lock:
            self._zones[zone.id] = zone
            return Ok(zone)

    async def add_pricing(self, pricing: Pricing) -> Result[Pricing, StoreError]:
        async with self._lock:
            self._pricings[pricing.id] = pricing
            return Ok(pricing)

    async def get_zone(self, zone_id: str) -> Result[Zone | None, StoreError]:
        async with self._lock:
            return Ok(self._zones.get(zone_id))

    async def get_pricing(
        self, pricing_id: str
    ) -> Result[Pricing | None, StoreError]:
        async with self._lock:
            return Ok(self._pricings.get(pricing_id))


__all__ = ("Catalog", "MemoryCatalog")
