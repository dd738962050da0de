"""
Payment Reminder Dispatcher - WhatsApp reminders for pending credit balances

This module handles:
1. Single reminders for one balance (manual action from the balances screen)
2. Batch auto-reminders for a company, throttled by reminder_frequency_days
3. An audit row in reminder_logs for every attempt, sent or failed

Nothing here schedules itself. Batches run through
POST /balances/send-auto-reminders or from an external scheduler:

    python reminder_service.py
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, update, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from config import settings
from database import async_session_maker
from errors import NotFoundError, ValidationError, MessagingNotConfiguredError
from invoice_service import get_company
from messaging_service import (
    MessagingProvider, get_messaging_provider, get_messaging_settings, is_messaging_configured
)
from models import Balance, ReminderLog, ReminderStatus, MessagingSettings
from schemas import AutoReminderResponse, AutoReminderResult

logger = logging.getLogger(__name__)

REMINDER_TEMPLATE = """Hi {customer_name},

This is a payment reminder from {company_name}.

Invoice: {invoice_no}
Date: {invoice_date}
Total Amount: {currency}{total_amount:.2f}
Paid: {currency}{paid_amount:.2f}
Pending: {currency}{pending_amount:.2f}

Please clear the pending balance at your earliest convenience.

Thank you!"""

AUTO_REMINDER_TEMPLATE = """Hi {customer_name},

Payment Reminder from {company_name}

Invoice: {invoice_no}
Pending Amount: {currency}{pending_amount:.2f}

Please clear your payment. Thank you!"""


@dataclass
class ReminderTarget:
    """Everything needed to send and log one reminder, detached from the session"""
    balance_id: int
    customer_id: int
    phone_number: Optional[str]
    message: str


def render_reminder_message(balance: Balance, template: str = REMINDER_TEMPLATE) -> str:
    invoice = balance.invoice
    return template.format(
        customer_name=balance.customer.name,
        company_name=balance.company.name,
        invoice_no=invoice.invoice_no if invoice else "N/A",
        invoice_date=invoice.invoice_date.strftime("%d/%m/%Y") if invoice else "N/A",
        currency=settings.CURRENCY_SYMBOL,
        total_amount=balance.total_amount,
        paid_amount=balance.paid_amount,
        pending_amount=balance.pending_amount,
    )


def _reminder_target(balance: Balance, template: str) -> ReminderTarget:
    return ReminderTarget(
        balance_id=balance.id,
        customer_id=balance.customer_id,
        phone_number=balance.customer.phone,
        message=render_reminder_message(balance, template),
    )


def _with_reminder_relations(query):
    return query.options(
        selectinload(Balance.customer),
        selectinload(Balance.invoice),
        selectinload(Balance.company),
    )


async def _log_failure(db: AsyncSession, target: ReminderTarget, error_message: str) -> None:
    db.add(ReminderLog(
        balance_id=target.balance_id,
        customer_id=target.customer_id,
        phone_number=target.phone_number,
        message=target.message,
        status=ReminderStatus.FAILED,
        error_message=error_message,
    ))
    await db.commit()
    logger.error(f"❌ Reminder for balance #{target.balance_id} failed: {error_message}")


async def _deliver(db: AsyncSession, target: ReminderTarget, provider: MessagingProvider) -> ReminderLog:
    """
    Send one reminder and log the outcome.
    A failed send is logged as Failed and the error re-raised to the caller.
    """
    if not target.phone_number:
        error = ValidationError("Customer has no phone number on file")
        await _log_failure(db, target, error.message)
        raise error

    try:
        provider_message_id = await provider.send(target.phone_number, target.message)
    except Exception as e:
        await _log_failure(db, target, getattr(e, "message", None) or str(e))
        raise

    reminder = ReminderLog(
        balance_id=target.balance_id,
        customer_id=target.customer_id,
        phone_number=target.phone_number,
        message=target.message,
        status=ReminderStatus.SENT,
        provider_message_id=provider_message_id or None,
    )
    db.add(reminder)
    await db.execute(
        update(Balance)
        .where(Balance.id == target.balance_id)
        .values(last_reminder_sent=datetime.utcnow())
    )
    await db.commit()
    await db.refresh(reminder)

    logger.info(f"✅ Sent reminder to {target.phone_number} for balance #{target.balance_id} via {provider.name}")
    return reminder


async def send_reminder(
    db: AsyncSession,
    balance_id: int,
    provider: Optional[MessagingProvider] = None
) -> ReminderLog:
    """Send the full payment reminder for one balance."""
    result = await db.execute(
        _with_reminder_relations(select(Balance)).where(Balance.id == balance_id)
    )
    balance = result.scalar_one_or_none()
    if not balance:
        raise NotFoundError("Balance not found")

    messaging_settings = await get_messaging_settings(db, balance.company_id)
    if not is_messaging_configured(messaging_settings):
        raise MessagingNotConfiguredError()

    provider = provider or get_messaging_provider(messaging_settings)
    target = _reminder_target(balance, REMINDER_TEMPLATE)
    return await _deliver(db, target, provider)


async def _balances_due_for_reminder(db: AsyncSession, messaging_settings: MessagingSettings):
    cutoff = datetime.utcnow() - timedelta(days=messaging_settings.reminder_frequency_days)
    result = await db.execute(
        _with_reminder_relations(select(Balance))
        .where(
            Balance.company_id == messaging_settings.company_id,
            Balance.pending_amount > 0,
            or_(
                Balance.last_reminder_sent.is_(None),
                Balance.last_reminder_sent < cutoff
            )
        )
        .order_by(Balance.id)
    )
    return result.scalars().all()


async def send_auto_reminders(
    db: AsyncSession,
    company_id: int,
    provider: Optional[MessagingProvider] = None
) -> AutoReminderResponse:
    """
    Remind every customer with a pending balance that has not been reminded
    within the company's reminder frequency. Sends are sequential and one
    failure does not stop the batch.
    """
    await get_company(db, company_id)

    messaging_settings = await get_messaging_settings(db, company_id)
    if not messaging_settings or not messaging_settings.auto_reminders_enabled:
        return AutoReminderResponse(message="Auto reminders not enabled")
    if not is_messaging_configured(messaging_settings):
        raise MessagingNotConfiguredError()

    provider = provider or get_messaging_provider(messaging_settings)
    balances = await _balances_due_for_reminder(db, messaging_settings)
    targets = [_reminder_target(balance, AUTO_REMINDER_TEMPLATE) for balance in balances]

    logger.info(f"📊 Found {len(targets)} balance(s) due for a reminder in company {company_id}")

    results = []
    for target in targets:
        try:
            await _deliver(db, target, provider)
            results.append(AutoReminderResult(balance_id=target.balance_id, status="sent"))
        except Exception as e:
            results.append(AutoReminderResult(
                balance_id=target.balance_id,
                status="failed",
                error=getattr(e, "message", None) or str(e)
            ))

    sent = sum(1 for r in results if r.status == "sent")
    failed = len(results) - sent
    logger.info(f"Auto reminders for company {company_id}: {sent} sent, {failed} failed")

    return AutoReminderResponse(
        message=f"Processed {len(results)} reminder(s)",
        sent=sent,
        failed=failed,
        results=results
    )


async def run_auto_reminders_for_all_companies():
    """Entry point for an external scheduler: one batch per company with auto reminders on."""
    logger.info("=" * 60)
    logger.info("🚀 Starting auto reminder run...")
    logger.info("=" * 60)

    async with async_session_maker() as db:
        result = await db.execute(
            select(MessagingSettings.company_id).where(MessagingSettings.auto_reminders_enabled.is_(True))
        )
        company_ids = [row[0] for row in result.all()]

    for company_id in company_ids:
        async with async_session_maker() as db:
            try:
                summary = await send_auto_reminders(db, company_id)
                logger.info(f"Company {company_id}: {summary.sent} sent, {summary.failed} failed")
            except Exception as e:
                logger.error(f"❌ Auto reminders failed for company {company_id}: {e}", exc_info=True)

    logger.info("✅ Auto reminder run completed")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(run_auto_reminders_for_all_companies())
