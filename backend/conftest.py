"""
Shared fixtures: a fresh in-memory SQLite database per test and an HTTP
client bound to the app with get_db pointed at it.
"""
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from database import Base, get_db
from main import app
from models import Company, Customer, Product, MessagingSettings, MessagingProviderName


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def client(session_maker):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
async def company(db):
    company = Company(name="Sharma Stores", state="Karnataka", gstin="29AAAAA0000A1Z5")
    db.add(company)
    await db.commit()
    await db.refresh(company)
    return company


@pytest.fixture
async def local_customer(db, company):
    customer = Customer(company_id=company.id, name="Ravi Kumar", phone="+919811111111", state="karnataka ")
    db.add(customer)
    await db.commit()
    await db.refresh(customer)
    return customer


@pytest.fixture
async def interstate_customer(db, company):
    customer = Customer(company_id=company.id, name="Meena Traders", phone="+919822222222", state="Tamil Nadu")
    db.add(customer)
    await db.commit()
    await db.refresh(customer)
    return customer


@pytest.fixture
async def product(db, company):
    product = Product(
        company_id=company.id, sku="PCR-001", name="Toothpaste 150g",
        hsn="3306", unit_price=100.0, stock=50, tax_rate=18.0
    )
    db.add(product)
    await db.commit()
    await db.refresh(product)
    return product


@pytest.fixture
async def meta_settings(db, company):
    messaging_settings = MessagingSettings(
        company_id=company.id,
        provider=MessagingProviderName.META,
        meta_access_token="meta-token",
        meta_phone_number_id="1234567890",
        auto_reminders_enabled=True,
        reminder_frequency_days=3,
    )
    db.add(messaging_settings)
    await db.commit()
    await db.refresh(messaging_settings)
    return messaging_settings
