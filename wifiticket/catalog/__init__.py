"""
Catalog — zones and price tiers a customer can buy from.

    from wifiticket import catalog as C

    catalog = C.MemoryCatalog()
    await catalog.add_zone(C.Zone(id=zone_id, name="Cafe Central"))
    zone = (await catalog.get_zone(zone_id)).unwrap()
"""

from wifiticket.catalog._types import Zone, Pricing
from wifiticket.catalog._store import Catalog, MemoryCatalog
from wifiticket.catalog._sqlalchemy import SQLAlchemyCatalog

__all__ = (
    "Zone",
    "Pricing",
    "Catalog",
    "MemoryCatalog",
    "SQLAlchemyCatalog",
)
