"""
Credit balance ledger: outstanding amounts per credit invoice and the
payments recorded against them.
"""

import logging
from datetime import datetime
from typing import List, Tuple

from sqlalchemy import select, func, desc
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from errors import NotFoundError, ValidationError
from invoice_service import get_company, get_customer
from models import Balance, BalanceStatus, Invoice, PaymentHistory
from schemas import BalanceCreate, PaymentCreate
from tax import round_money

logger = logging.getLogger(__name__)


def derive_balance_status(paid_amount: float, pending_amount: float) -> BalanceStatus:
    if pending_amount <= 0:
        return BalanceStatus.CLEARED
    if paid_amount > 0:
        return BalanceStatus.PARTIALLY_PAID
    return BalanceStatus.PENDING


async def create_balance(db: AsyncSession, balance_data: BalanceCreate) -> Balance:
    """Open a balance directly (outside invoice issuance)"""
    company = await get_company(db, balance_data.company_id)
    customer = await get_customer(db, balance_data.customer_id, company.id)

    if balance_data.invoice_id is not None:
        result = await db.execute(
            select(Invoice.id).where(
                Invoice.id == balance_data.invoice_id,
                Invoice.company_id == company.id
            )
        )
        if result.scalar_one_or_none() is None:
            raise NotFoundError("Invoice not found")

    total_amount = round_money(balance_data.total_amount)
    paid_amount = round_money(balance_data.paid_amount or 0)
    if paid_amount > total_amount:
        raise ValidationError(
            f"Paid amount ({paid_amount:.2f}) exceeds total amount ({total_amount:.2f})"
        )
    pending_amount = round_money(total_amount - paid_amount)

    balance = Balance(
        company_id=company.id,
        customer_id=customer.id,
        invoice_id=balance_data.invoice_id,
        total_amount=total_amount,
        paid_amount=paid_amount,
        pending_amount=pending_amount,
        status=derive_balance_status(paid_amount, pending_amount),
    )
    db.add(balance)
    await db.commit()
    await db.refresh(balance)
    return balance


async def record_payment(db: AsyncSession, balance_id: int, payment_data: PaymentCreate) -> Tuple[Balance, PaymentHistory]:
    """
    Apply a payment to a balance.

    The balance row is locked for the read-compute-write (FOR UPDATE; SQLite
    serialises writers anyway) and the payment row is written in the same
    transaction. Payments larger than the pending amount are rejected.
    """
    result = await db.execute(
        select(Balance)
        .where(Balance.id == balance_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    balance = result.scalar_one_or_none()
    if not balance:
        raise NotFoundError("Balance not found")

    payment_amount = round_money(payment_data.payment_amount)
    pending_amount = round_money(balance.pending_amount)
    if payment_amount <= 0:
        raise ValidationError("Payment amount must be greater than zero")
    if payment_amount > pending_amount:
        raise ValidationError(
            f"Payment amount ({payment_amount:.2f}) exceeds pending amount ({pending_amount:.2f})"
        )

    new_paid_amount = round_money(balance.paid_amount + payment_amount)
    new_pending_amount = round_money(balance.total_amount - new_paid_amount)

    payment = PaymentHistory(
        balance_id=balance.id,
        payment_amount=payment_amount,
        payment_mode=payment_data.payment_mode or "Cash",
        notes=payment_data.notes,
        payment_date=datetime.utcnow(),
    )
    db.add(payment)

    balance.paid_amount = new_paid_amount
    balance.pending_amount = new_pending_amount
    balance.status = derive_balance_status(new_paid_amount, new_pending_amount)

    await db.commit()
    await db.refresh(balance)
    await db.refresh(payment)

    logger.info(
        f"Recorded payment of {payment_amount:.2f} on balance #{balance.id}: "
        f"pending {new_pending_amount:.2f} ({balance.status.value})"
    )
    return balance, payment


async def list_balances(db: AsyncSession, company_id: int) -> List[Balance]:
    result = await db.execute(
        select(Balance)
        .options(selectinload(Balance.customer), selectinload(Balance.invoice))
        .where(Balance.company_id == company_id)
        .order_by(desc(Balance.created_at), desc(Balance.id))
    )
    return result.scalars().all()


async def get_balance_detail(db: AsyncSession, balance_id: int) -> Balance:
    """Balance with customer, invoice, payment history and reminder history"""
    result = await db.execute(
        select(Balance)
        .options(
            selectinload(Balance.customer),
            selectinload(Balance.invoice),
            selectinload(Balance.payments),
            selectinload(Balance.reminders),
        )
        .where(Balance.id == balance_id)
        .execution_options(populate_existing=True)
    )
    balance = result.scalar_one_or_none()
    if not balance:
        raise NotFoundError("Balance not found")
    return balance


async def list_customer_balances(db: AsyncSession, customer_id: int) -> List[Balance]:
    result = await db.execute(
        select(Balance)
        .options(selectinload(Balance.invoice))
        .where(Balance.customer_id == customer_id)
        .order_by(desc(Balance.created_at), desc(Balance.id))
    )
    return result.scalars().all()


async def count_pending_balances(db: AsyncSession, company_id: int) -> int:
    count = await db.scalar(
        select(func.count(Balance.id)).where(
            Balance.company_id == company_id,
            Balance.pending_amount > 0
        )
    )
    return count or 0
