from sqlalchemy import select
from sqlalchemy.orm import selectinload

import pytest

from errors import NotFoundError
from import_service import import_balances
from models import Balance, Customer, Invoice, InvoiceStatus, BalanceStatus
from schemas import ImportRow


async def test_import_creates_invoice_and_balance(db, company):
    company_id = company.id

    result = await import_balances(db, company_id, [ImportRow(customer_name="Asha", phone=9876543210, amount=1180)])

    assert result.success == 1
    assert result.failed == 0
    created = result.created[0]
    assert created.customer_name == "Asha"
    assert created.invoice_no == "INV-001"
    assert created.amount == 1180.0

    invoice = (await db.execute(
        select(Invoice).options(selectinload(Invoice.items)).where(Invoice.invoice_no == "INV-001")
    )).scalar_one()
    assert invoice.subtotal == 1000.0
    assert invoice.tax_amount == 180.0
    # New customer has no state, so the tax is inter-state
    assert invoice.igst_amount == 180.0
    assert invoice.total_amount == 1180.0
    assert invoice.status == InvoiceStatus.PENDING
    assert invoice.payment_mode == "Credit"
    assert invoice.notes == "Imported previous balance"
    assert len(invoice.items) == 1
    assert invoice.items[0].product_name == "Previous Balance"
    assert invoice.items[0].quantity == 1
    assert invoice.items[0].unit_price == 1000.0
    assert invoice.items[0].tax_rate == 18.0

    balance = (await db.execute(select(Balance).where(Balance.id == created.balance_id))).scalar_one()
    assert balance.pending_amount == 1180.0
    assert balance.status == BalanceStatus.PENDING

    customer = (await db.execute(select(Customer).where(Customer.name == "Asha"))).scalar_one()
    assert customer.phone == "9876543210"


async def test_import_matches_existing_customers(db, company, local_customer, interstate_customer):
    company_id = company.id
    local_id, interstate_id = local_customer.id, interstate_customer.id

    result = await import_balances(db, company_id, [
        ImportRow(customer_name="Someone Else", phone="+919811111111", amount=118),
        ImportRow(customer_name="  meena TRADERS ", amount=236),
    ])

    assert result.success == 2
    balances = (await db.execute(select(Balance).order_by(Balance.id))).scalars().all()
    assert [b.customer_id for b in balances] == [local_id, interstate_id]

    customer_count = len((await db.execute(select(Customer))).scalars().all())
    assert customer_count == 2

    # Local customer shares the company's state
    invoice = (await db.execute(select(Invoice).where(Invoice.customer_id == local_id))).scalar_one()
    assert invoice.cgst_amount == 9.0
    assert invoice.sgst_amount == 9.0
    assert invoice.igst_amount == 0.0


async def test_bad_rows_are_reported_and_skipped(db, company):
    company_id = company.id

    result = await import_balances(db, company_id, [
        ImportRow(customer_name="", amount=100),
        ImportRow(customer_name="Valid", amount=590),
        ImportRow(customer_name="Zero", amount=0),
        ImportRow(customer_name="Missing amount"),
    ])

    assert result.success == 1
    assert result.failed == 3
    assert [e.row for e in result.errors] == [1, 3, 4]
    assert result.created[0].customer_name == "Valid"
    assert result.created[0].invoice_no == "INV-001"

    invoices = (await db.execute(select(Invoice))).scalars().all()
    assert len(invoices) == 1


async def test_import_continues_numbering(db, company):
    company_id = company.id

    await import_balances(db, company_id, [ImportRow(customer_name="A", amount=100)])
    result = await import_balances(db, company_id, [ImportRow(customer_name="B", amount=100)])

    assert result.created[0].invoice_no == "INV-002"


async def test_import_unknown_company(db):
    with pytest.raises(NotFoundError):
        await import_balances(db, 999, [ImportRow(customer_name="A", amount=100)])


async def test_spreadsheet_cells_are_parsed_per_row(db, company):
    company_id = company.id

    result = await import_balances(db, company_id, [
        ImportRow(customer_name=12345, amount=" 590 "),
        ImportRow(customer_name="Comma", amount="1,180.00"),
        ImportRow(customer_name="Blank", amount="  "),
        ImportRow(customer_name="Infinite", amount="inf"),
    ])

    assert result.success == 1
    assert result.created[0].customer_name == "12345"
    assert result.created[0].amount == 590.0
    assert [(e.row, e.error) for e in result.errors] == [
        (2, "Amount must be a number"),
        (3, "Amount is required"),
        (4, "Amount must be a number"),
    ]
