"""
Bulk import of opening balances.

Each row is an amount a customer already owed before the shop started
using the app. A row becomes a credit invoice with one "Previous Balance"
item and an open Balance. Rows are committed one at a time so a bad row
never undoes the good ones.
"""

import logging
import math
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from errors import ValidationError
from invoice_service import get_company, next_invoice_number
from models import (
    Company, Customer, Invoice, InvoiceItem, Balance,
    PaymentMode, InvoiceStatus, BalanceStatus
)
from schemas import ImportRow, ImportRowError, ImportCreated, ImportResponse
from tax import round_money, split_tax

logger = logging.getLogger(__name__)

PREVIOUS_BALANCE_ITEM = "Previous Balance"
IMPORT_NOTE = "Imported previous balance"


async def find_or_create_customer(
    db: AsyncSession,
    company_id: int,
    name: str,
    phone: Optional[str]
) -> Customer:
    """Match by phone first, then by name (case-insensitive, trimmed)"""
    if phone:
        result = await db.execute(
            select(Customer)
            .where(Customer.company_id == company_id, Customer.phone == phone)
            .limit(1)
        )
        customer = result.scalar_one_or_none()
        if customer:
            return customer

    result = await db.execute(
        select(Customer)
        .where(
            Customer.company_id == company_id,
            func.lower(func.trim(Customer.name)) == name.strip().lower()
        )
        .limit(1)
    )
    customer = result.scalar_one_or_none()
    if customer:
        return customer

    customer = Customer(company_id=company_id, name=name.strip(), phone=phone)
    db.add(customer)
    await db.flush()
    return customer


def parse_amount(value) -> float:
    """Amount cell as a positive number"""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError("Amount is required")
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValidationError("Amount must be a number")
    if not math.isfinite(amount):
        raise ValidationError("Amount must be a number")
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero")
    return round_money(amount)


async def _import_row(db: AsyncSession, company: Company, row: ImportRow) -> ImportCreated:
    name = (row.customer_name or "").strip()
    if not name:
        raise ValidationError("Customer name is required")

    amount = parse_amount(row.amount)
    customer = await find_or_create_customer(db, company.id, name, row.phone)

    # Imported amounts are tax-inclusive
    subtotal = round_money(amount / (1 + settings.IMPORT_TAX_RATE / 100))
    gst = split_tax(round_money(amount - subtotal), company.state, customer.state)

    invoice_no = await next_invoice_number(db, company.id)
    invoice = Invoice(
        company_id=company.id,
        customer_id=customer.id,
        invoice_no=invoice_no,
        subtotal=subtotal,
        tax_amount=gst.tax_amount,
        cgst_amount=gst.cgst_amount,
        sgst_amount=gst.sgst_amount,
        igst_amount=gst.igst_amount,
        total_amount=amount,
        payment_mode=PaymentMode.CREDIT.value,
        status=InvoiceStatus.PENDING,
        notes=IMPORT_NOTE,
        items=[
            InvoiceItem(
                product_name=PREVIOUS_BALANCE_ITEM,
                quantity=1,
                unit_price=subtotal,
                tax_rate=settings.IMPORT_TAX_RATE,
                tax_amount=gst.tax_amount,
                line_total=amount,
            )
        ],
    )
    db.add(invoice)
    await db.flush()

    balance = Balance(
        company_id=company.id,
        customer_id=customer.id,
        invoice_id=invoice.id,
        total_amount=amount,
        paid_amount=0.0,
        pending_amount=amount,
        status=BalanceStatus.PENDING,
    )
    db.add(balance)
    await db.flush()

    return ImportCreated(
        customer_name=customer.name,
        invoice_no=invoice_no,
        balance_id=balance.id,
        amount=amount,
    )


async def import_balances(db: AsyncSession, company_id: int, rows: List[ImportRow]) -> ImportResponse:
    """Import opening balances; returns per-row successes and failures."""
    company = await get_company(db, company_id)
    errors = []
    created = []

    for index, row in enumerate(rows, start=1):
        try:
            imported = await _import_row(db, company, row)
            await db.commit()
            created.append(imported)
        except Exception as e:
            await db.rollback()
            # rollback expires the company; reload it before the next row
            company = await get_company(db, company_id)
            message = getattr(e, "message", None) or str(e)
            logger.error(f"Import row {index} ({row.customer_name}) failed: {message}")
            errors.append(ImportRowError(row=index, customer_name=row.customer_name, error=message))

    logger.info(
        f"Imported {len(created)} balance(s) for company {company_id}, {len(errors)} failed"
    )
    return ImportResponse(
        success=len(created),
        failed=len(errors),
        errors=errors,
        created=created,
    )
