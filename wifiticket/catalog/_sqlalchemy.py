"""
SQLAlchemy catalog.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kungfu import Result, Ok, Error

from wifiticket._types import utcnow
from wifiticket.db import ZoneTable, PricingTable
from wifiticket.errors import StoreError
from wifiticket.catalog._types import Zone, Pricing


def _zone(row: ZoneTable) -> Zone:
    return Zone(
        id=row.id,
        name=row.name,
        router_ip=row.router_ip,
        is_active=row.is_active,
    )


def _pricing(row: PricingTable) -> Pricing:
    return Pricing(
        id=row.id,
        zone_id=row.zone_id,
        name=row.name,
        amount=row.amount,
        duration_hours=row.duration_hours,
        is_active=row.is_active,
    )


class SQLAlchemyCatalog:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def add_zone(self, zone: Zone) -> Result[Zone, StoreError]:
        try:
            async with self._session_factory() as session:
                session.add(
                    ZoneTable(
                        id=zone.id,
                        name=zone.name,
                        router_ip=zone.router_ip,
                        is_active=zone.is_active,
                        created_at=utcnow(),
                    )
                )
                await session.commit()
                return Ok(zone)
        except Exception as e:
            return Error(StoreError(f"Failed to add zone: {e}", e))

    async def add_pricing(self, pricing: Pricing) -> Result[Pricing, StoreError]:
        try:
            async with self._session_factory() as session:
                session.add(
                    PricingTable(
                        id=pricing.id,
                        zone_id=pricing.zone_id,
                        name=pricing.name,
                        amount=pricing.amount,
                        duration_hours=pricing.duration_hours,
                        is_active=pricing.is_active,
                        created_at=utcnow(),
                    )
                )
                await session.commit()
                return Ok(pricing)
        except Exception as e:
            return Error(StoreError(f"Failed to add pricing: {e}", e))

    async def get_zone(self, zone_id: str) -> Result[Zone | None, StoreError]:
        try:
            async with self._session_factory() as session:
                row = (
                    await session.execute(
                        select(ZoneTable).where(ZoneTable.id == zone_id)
                    )
                ).scalar_one_or_none()
                return Ok(_zone(row) if row is not None else None)
        except Exception as e:
            return Error(StoreError(f"Failed to get zone: {e}", e))

    async def get_pricing(
        self, pricing_id: str
    ) -> Result[Pricing | None, StoreError]:
        try:
            async with self._session_factory() as session:
                row = (
                    await session.execute(
                        select(PricingTable).where(PricingTable.id == pricing_id)
                    )
                ).scalar_one_or_none()
                return Ok(_pricing(row) if row is not None else None)
        except Exception as e:
            return Error(StoreError(f"Failed to get pricing: {e}", e))


__all__ = ("SQLAlchemyCatalog",)
