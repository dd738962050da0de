"""
Invoice issuance.

Computes line and invoice totals, applies GST, assigns the next sequential
invoice number and persists the invoice with its items. Credit sales also
open a Balance, and product stock is decremented for catalog items.

Invoice numbers are derived from the last invoice of the company, so two
concurrent issuances can pick the same number. The (company_id, invoice_no)
unique constraint rejects the second insert and the whole issuance is retried.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import select, update, func, desc
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from config import settings
from errors import NotFoundError, ValidationError, PersistenceError
from models import (
    Company, Customer, Product, Invoice, InvoiceItem, Balance,
    PaymentMode, InvoiceStatus, BalanceStatus
)
from schemas import InvoiceCreate, InvoiceItemCreate
from tax import calculate_tax, round_money

logger = logging.getLogger(__name__)

INVOICE_NO_SUFFIX = re.compile(r"(\d+)$")
MAX_ISSUE_ATTEMPTS = 3


class InvoiceNumberConflict(PersistenceError):
    """Another invoice took the same number between read and insert"""


@dataclass
class InvoiceLine:
    product_id: Optional[int]
    product_name: str
    hsn: Optional[str]
    quantity: float
    unit_price: float
    tax_rate: float
    line_subtotal: float
    tax_amount: float
    line_total: float


async def get_company(db: AsyncSession, company_id: int) -> Company:
    result = await db.execute(select(Company).where(Company.id == company_id))
    company = result.scalar_one_or_none()
    if not company:
        raise NotFoundError("Company not found")
    return company


async def get_customer(db: AsyncSession, customer_id: int, company_id: Optional[int] = None) -> Customer:
    query = select(Customer).where(Customer.id == customer_id)
    if company_id is not None:
        query = query.where(Customer.company_id == company_id)
    result = await db.execute(query)
    customer = result.scalar_one_or_none()
    if not customer:
        raise NotFoundError("Customer not found")
    return customer


def format_invoice_number(number: int) -> str:
    return f"{settings.INVOICE_NUMBER_PREFIX}-{number:0{settings.INVOICE_NUMBER_WIDTH}d}"


async def next_invoice_number(db: AsyncSession, company_id: int) -> str:
    """
    Next number after the company's most recently created invoice.

    The trailing digits of the last number are incremented; the first invoice
    of a company is INV-001. Not atomic: callers rely on the unique constraint.
    """
    result = await db.execute(
        select(Invoice.invoice_no)
        .where(Invoice.company_id == company_id)
        .order_by(desc(Invoice.created_at), desc(Invoice.id))
        .limit(1)
    )
    last_invoice_no = result.scalar_one_or_none()

    if last_invoice_no is None:
        return format_invoice_number(1)

    match = INVOICE_NO_SUFFIX.search(last_invoice_no)
    if match:
        return format_invoice_number(int(match.group(1)) + 1)

    # Hand-entered number without digits: continue from the invoice count
    count = await db.scalar(
        select(func.count(Invoice.id)).where(Invoice.company_id == company_id)
    )
    return format_invoice_number((count or 0) + 1)


def average_tax_rate(items: List[InvoiceItemCreate]) -> float:
    """
    Plain mean of the item tax rates.

    Not weighted by line value, so mixed-rate invoices get an approximate
    invoice-level tax. Line items keep their exact per-line tax.
    """
    return sum(item.tax_rate for item in items) / len(items)


async def _load_products(db: AsyncSession, company_id: int, items: List[InvoiceItemCreate]) -> dict:
    product_ids = {item.product_id for item in items if item.product_id is not None}
    if not product_ids:
        return {}

    result = await db.execute(
        select(Product).where(Product.id.in_(product_ids), Product.company_id == company_id)
    )
    products = {product.id: product for product in result.scalars().all()}

    missing = product_ids - products.keys()
    if missing:
        raise NotFoundError(f"Product {min(missing)} not found")
    return products


def build_invoice_lines(items: List[InvoiceItemCreate], products: dict) -> List[InvoiceLine]:
    lines = []
    for item in items:
        product = products.get(item.product_id) if item.product_id is not None else None
        product_name = item.product_name or (product.name if product else None)
        if not product_name:
            raise ValidationError("productName is required for items without a product")

        line_subtotal = item.quantity * item.unit_price
        line_tax = line_subtotal * item.tax_rate / 100

        lines.append(InvoiceLine(
            product_id=item.product_id,
            product_name=product_name,
            hsn=item.hsn or (product.hsn if product else None),
            quantity=item.quantity,
            unit_price=item.unit_price,
            tax_rate=item.tax_rate,
            line_subtotal=line_subtotal,
            tax_amount=round_money(line_tax),
            line_total=round_money(line_subtotal + line_tax),
        ))
    return lines


async def _decrement_stock(db: AsyncSession, company_id: int, lines: List[InvoiceLine], invoice_no: str):
    """Best-effort stock update; a failure is logged and the invoice stands."""
    for line in lines:
        if line.product_id is None:
            continue
        try:
            async with db.begin_nested():
                await db.execute(
                    update(Product)
                    .where(Product.id == line.product_id, Product.company_id == company_id)
                    .values(stock=Product.stock - line.quantity)
                )
        except SQLAlchemyError as e:
            logger.error(f"Stock update failed for product {line.product_id} on {invoice_no}: {e}")


async def _issue_invoice_once(db: AsyncSession, invoice_data: InvoiceCreate) -> Invoice:
    company = await get_company(db, invoice_data.company_id)

    customer = None
    if invoice_data.customer_id is not None:
        customer = await get_customer(db, invoice_data.customer_id, company.id)

    if not invoice_data.items:
        raise ValidationError("Invoice must contain at least one item")

    products = await _load_products(db, company.id, invoice_data.items)
    lines = build_invoice_lines(invoice_data.items, products)
    subtotal = round_money(sum(line.line_subtotal for line in lines))

    gst = calculate_tax(
        subtotal,
        average_tax_rate(invoice_data.items),
        company.state,
        customer.state if customer else None,
    )
    total_amount = round_money(subtotal + gst.tax_amount)

    payment_mode = invoice_data.payment_mode or PaymentMode.CASH
    is_credit = payment_mode == PaymentMode.CREDIT
    invoice_no = await next_invoice_number(db, company.id)

    invoice = Invoice(
        company_id=company.id,
        customer_id=customer.id if customer else None,
        invoice_no=invoice_no,
        subtotal=subtotal,
        tax_amount=gst.tax_amount,
        cgst_amount=gst.cgst_amount,
        sgst_amount=gst.sgst_amount,
        igst_amount=gst.igst_amount,
        total_amount=total_amount,
        payment_mode=payment_mode.value,
        status=InvoiceStatus.PENDING if is_credit else InvoiceStatus.PAID,
        notes=invoice_data.notes,
        items=[
            InvoiceItem(
                product_id=line.product_id,
                product_name=line.product_name,
                hsn=line.hsn,
                quantity=line.quantity,
                unit_price=line.unit_price,
                tax_rate=line.tax_rate,
                tax_amount=line.tax_amount,
                line_total=line.line_total,
            )
            for line in lines
        ],
    )
    db.add(invoice)

    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        if "invoice_no" not in str(e.orig):
            raise PersistenceError(f"Failed to save invoice: {e.orig}")
        logger.warning(f"Invoice number {invoice_no} already taken for company {company.id}")
        raise InvoiceNumberConflict(f"Invoice number {invoice_no} is already in use")

    if is_credit and customer:
        try:
            async with db.begin_nested():
                db.add(Balance(
                    company_id=company.id,
                    customer_id=customer.id,
                    invoice_id=invoice.id,
                    total_amount=total_amount,
                    paid_amount=0.0,
                    pending_amount=total_amount,
                    status=BalanceStatus.PENDING,
                ))
        except SQLAlchemyError as e:
            # Invoice stands; the balance has to be added manually
            logger.error(f"Error creating balance for invoice {invoice_no}: {e}")
    elif is_credit:
        logger.warning(f"Credit sale {invoice_no} without customer - balance not created")

    await _decrement_stock(db, company.id, lines, invoice_no)

    await db.commit()
    logger.info(
        f"Issued invoice {invoice_no} for company {company.id}: "
        f"total={total_amount:.2f} ({gst.tax_type}) mode={payment_mode.value}"
    )
    return invoice


async def issue_invoice(db: AsyncSession, invoice_data: InvoiceCreate) -> Invoice:
    """Create an invoice with its items, balance and stock updates."""
    async for attempt in AsyncRetrying(
        retry=retry_if_exception_type(InvoiceNumberConflict),
        stop=stop_after_attempt(MAX_ISSUE_ATTEMPTS),
        reraise=True,
    ):
        with attempt:
            return await _issue_invoice_once(db, invoice_data)


async def get_invoice(db: AsyncSession, invoice_id: int) -> Invoice:
    """Invoice with items, customer and company loaded"""
    result = await db.execute(
        select(Invoice)
        .options(
            selectinload(Invoice.items),
            selectinload(Invoice.customer),
            selectinload(Invoice.company),
        )
        .where(Invoice.id == invoice_id)
        .execution_options(populate_existing=True)
    )
    invoice = result.scalar_one_or_none()
    if not invoice:
        raise NotFoundError("Invoice not found")
    return invoice


async def list_invoices(db: AsyncSession, company_id: int, limit: int = 100) -> List[Invoice]:
    result = await db.execute(
        select(Invoice)
        .options(selectinload(Invoice.customer))
        .where(Invoice.company_id == company_id)
        .order_by(desc(Invoice.invoice_date), desc(Invoice.id))
        .limit(limit)
    )
    return result.scalars().all()
