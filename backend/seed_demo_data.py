"""
Safe auto-seeding system for demo data.

This module provides idempotent seeding that:
- Only runs if database is empty (no companies)
- Is switched on with SEED_DEMO_DATA=true
- Safe to run multiple times (won't overwrite existing data)
"""
import logging
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from models import Company, Product, Customer

logger = logging.getLogger(__name__)

DEMO_COMPANY = {
    "name": "Demo Shop",
    "gstin": "29ABCDE1234F1Z5",
    "address": "12 MG Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "pincode": "560001",
    "phone": "+919800000000",
    "email": "billing@demoshop.in",
}

DEMO_PRODUCTS = [
    {"sku": "GRC-001", "name": "Basmati Rice 5kg", "hsn": "1006", "unit_price": 450.0, "purchase_price": 380.0, "stock": 40, "tax_rate": 5.0},
    {"sku": "GRC-002", "name": "Sunflower Oil 1L", "hsn": "1512", "unit_price": 160.0, "purchase_price": 135.0, "stock": 60, "tax_rate": 5.0},
    {"sku": "PCR-001", "name": "Toothpaste 150g", "hsn": "3306", "unit_price": 95.0, "purchase_price": 70.0, "stock": 80, "tax_rate": 18.0},
    {"sku": "PCR-002", "name": "Shampoo 340ml", "hsn": "3305", "unit_price": 240.0, "purchase_price": 190.0, "stock": 35, "tax_rate": 18.0},
    {"sku": "ELE-001", "name": "LED Bulb 9W", "hsn": "8539", "unit_price": 120.0, "purchase_price": 80.0, "stock": 100, "tax_rate": 12.0},
    {"sku": "STA-001", "name": "A4 Paper Ream", "hsn": "4802", "unit_price": 320.0, "purchase_price": 260.0, "stock": 25, "tax_rate": 12.0},
]

DEMO_CUSTOMERS = [
    {"name": "Ravi Kumar", "phone": "+919811111111", "city": "Bengaluru", "state": "Karnataka"},
    {"name": "Meena Traders", "phone": "+919822222222", "gstin": "33AAACM1234B1Z2", "city": "Chennai", "state": "Tamil Nadu"},
    {"name": "Walk-in Customer", "state": "Karnataka"},
]


async def is_database_empty(db: AsyncSession) -> bool:
    """True only when no company exists yet."""
    result = await db.execute(select(func.count(Company.id)))
    return (result.scalar() or 0) == 0


async def seed_demo_company(db: AsyncSession) -> Company:
    """
    Create the demo company with a small catalog and a few customers.

    Args:
        db: Database session

    Returns:
        The demo company
    """
    logger.info(f"🌱 Seeding demo company: {DEMO_COMPANY['name']}")

    company = Company(**DEMO_COMPANY)
    db.add(company)
    await db.flush()

    for product_data in DEMO_PRODUCTS:
        db.add(Product(company_id=company.id, **product_data))
        logger.info(f"  ✓ Created product: {product_data['name']}")

    for customer_data in DEMO_CUSTOMERS:
        db.add(Customer(company_id=company.id, **customer_data))
        logger.info(f"  ✓ Created customer: {customer_data['name']}")

    await db.commit()
    logger.info(f"✅ Demo data seeded for company #{company.id}")
    return company


async def seed_if_empty(db: AsyncSession) -> bool:
    """Seed the demo company unless real data is present. Returns True if seeded."""
    if not await is_database_empty(db):
        logger.info("✓ Database already has companies - skipping demo seed")
        return False

    await seed_demo_company(db)
    return True
