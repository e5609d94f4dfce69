"""Pytest configuration and shared fixtures."""

import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from wifiticket import catalog as C
from wifiticket import gateway as GW
from wifiticket import ledger as L
from wifiticket import payments as P
from wifiticket import tickets as T
from wifiticket.config import Settings
from wifiticket.db import create_database
from wifiticket.service import IntentRequest, PaymentService, sqlalchemy_service

from support import WEBHOOK_SECRET, ok


# ═══════════════════════════════════════════════════════════════════════════════
# Settings
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def settings() -> Settings:
    return Settings(
        webhook_secret=WEBHOOK_SECRET,
        gateway_api_key="sk_test",
        frontend_url="https://portal.test",
        log_json=False,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Stores: memory by default, parametrize "stores" with "sqlite" for SQLAlchemy
# ═══════════════════════════════════════════════════════════════════════════════


type SessionFactory = async_sessionmaker[AsyncSession]


@pytest.fixture
async def stores(
    request: pytest.FixtureRequest, tmp_path: Any
) -> AsyncIterator[SessionFactory | None]:
    """
    Backend behind catalog, pool, ledger and payments.

    Example:
        pytestmark = pytest.mark.parametrize("stores", ["memory", "sqlite"], indirect=True)
    """
    if getattr(request, "param", "memory") == "memory":
        yield None
        return
    factory, engine = await create_database(f"sqlite+aiosqlite:///{tmp_path / 'stores.db'}")
    yield factory
    await engine.dispose()


@pytest.fixture
def catalog(stores: SessionFactory | None) -> C.Catalog:
    return C.SQLAlchemyCatalog(stores) if stores else C.MemoryCatalog()


@pytest.fixture
def pool(stores: SessionFactory | None) -> T.TicketPool:
    return T.SQLAlchemyTicketPool(stores) if stores else T.MemoryTicketPool()


@pytest.fixture
def ledger(stores: SessionFactory | None) -> L.Ledger:
    return L.SQLAlchemyLedger(stores) if stores else L.MemoryLedger()


@pytest.fixture
def payments(stores: SessionFactory | None) -> P.PaymentRepository:
    return P.SQLAlchemyPaymentRepository(stores) if stores else P.MemoryPaymentRepository()


@pytest.fixture
def gateway() -> GW.MemoryGateway:
    return GW.MemoryGateway()


@pytest.fixture
def zone() -> C.Zone:
    return C.Zone(id=str(uuid.uuid4()), name="Cafe Central", router_ip="192.168.88.1")


@pytest.fixture
def pricing(zone: C.Zone) -> C.Pricing:
    return C.Pricing(
        id=str(uuid.uuid4()),
        zone_id=zone.id,
        name="1 hour",
        amount=200,
        duration_hours=1,
    )


@pytest.fixture
async def seeded(catalog: C.Catalog, zone: C.Zone, pricing: C.Pricing) -> C.Zone:
    ok(await catalog.add_zone(zone))
    ok(await catalog.add_pricing(pricing))
    return zone


@pytest.fixture
def stock(pool: T.TicketPool, seeded: C.Zone) -> Callable[[int], Awaitable[list[T.Ticket]]]:
    """Load n free tickets into the zone."""

    async def load(n: int) -> list[T.Ticket]:
        return ok(
            await pool.add(
                seeded.id, [T.Credentials(f"user{i:02d}", f"pass{i:02d}") for i in range(n)]
            )
        )

    return load


@pytest.fixture
def service(
    settings: Settings,
    stores: SessionFactory | None,
    catalog: C.Catalog,
    payments: P.PaymentRepository,
    ledger: L.Ledger,
    pool: T.TicketPool,
    gateway: GW.MemoryGateway,
) -> PaymentService:
    if stores:
        return sqlalchemy_service(settings, stores, gateway)
    return PaymentService(
        settings=settings,
        catalog=catalog,
        payments=payments,
        ledger=ledger,
        pool=pool,
        gateway=gateway,
    )


@pytest.fixture
def open_payment(
    service: PaymentService, seeded: C.Zone, pricing: C.Pricing, payments: P.PaymentRepository
) -> Callable[[], Awaitable[P.Payment]]:
    """Create a PENDING payment with a checkout, the way a customer would."""

    async def create() -> P.Payment:
        intent = ok(
            await service.create_payment_intent(
                IntentRequest(zone_id=seeded.id, phone="22990000001", pricing_id=pricing.id)
            )
        )
        payment = ok(await payments.get(intent.payment_id))
        assert payment is not None
        return payment

    return create


# ═══════════════════════════════════════════════════════════════════════════════
# SQL
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
async def session_factory(tmp_path: Any) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """
    File-backed SQLite.

    Note: Every :memory: connection is its own database, so concurrent
    sessions need a file.
    """
    factory, engine = await create_database(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    yield factory
    await engine.dispose()


@pytest.fixture
async def sql_zone(session_factory: async_sessionmaker[AsyncSession]) -> C.Zone:
    zone = C.Zone(id=str(uuid.uuid4()), name="Library", router_ip="10.0.0.1")
    ok(await C.SQLAlchemyCatalog(session_factory).add_zone(zone))
    return zone
