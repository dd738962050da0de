"""
Credit API Endpoints
Handles credit balances, payments, WhatsApp reminders, opening-balance import
and per-company messaging settings
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from database import get_db
from dependencies import get_current_company
from errors import ValidationError
from import_service import import_balances
from invoice_service import get_company, get_customer
from ledger_service import (
    create_balance, record_payment, list_balances, get_balance_detail,
    list_customer_balances, count_pending_balances
)
from messaging_service import get_messaging_settings, save_messaging_settings, to_safe_settings
from models import Company
from reminder_service import send_reminder, send_auto_reminders
from schemas import (
    BalanceCreate, BalanceResponse, BalanceListItem, BalanceDetailResponse, CustomerBalanceItem,
    PaymentCreate, PaymentResponse, PaymentRecordedResponse, PendingCountResponse,
    ReminderLogResponse, ReminderSentResponse, AutoReminderRequest, AutoReminderResponse,
    MessagingSettingsUpdate, MessagingSettingsResponse,
    ImportRequest, ImportResponse
)

router = APIRouter(tags=["credit"])

SECRET_FIELDS = ("twilio_auth_token", "meta_access_token")


# ==================== BALANCES ====================

@router.get("/balances", response_model=List[BalanceListItem])
async def get_balances(
    current_company: Company = Depends(get_current_company),
    db: AsyncSession = Depends(get_db)
):
    """All balances of the company, newest first"""
    return await list_balances(db, current_company.id)


@router.get("/balances/pending/count", response_model=PendingCountResponse)
async def get_pending_count(
    current_company: Company = Depends(get_current_company),
    db: AsyncSession = Depends(get_db)
):
    count = await count_pending_balances(db, current_company.id)
    return PendingCountResponse(count=count)


@router.get("/balances/customer/{customer_id}", response_model=List[CustomerBalanceItem])
async def get_customer_balances(
    customer_id: int,
    db: AsyncSession = Depends(get_db)
):
    await get_customer(db, customer_id)
    return await list_customer_balances(db, customer_id)


@router.get("/balances/{balance_id}", response_model=BalanceDetailResponse)
async def get_balance(
    balance_id: int,
    db: AsyncSession = Depends(get_db)
):
    """Balance with its payment and reminder history"""
    return await get_balance_detail(db, balance_id)


@router.post("/balances", response_model=BalanceResponse)
async def create_balance_entry(
    balance_data: BalanceCreate,
    db: AsyncSession = Depends(get_db)
):
    return await create_balance(db, balance_data)


@router.post("/balances/send-auto-reminders", response_model=AutoReminderResponse)
async def trigger_auto_reminders(
    request: AutoReminderRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Send reminders for every balance due one.
    Meant to be called periodically by an external scheduler.
    """
    if request.company_id is None:
        raise ValidationError("Company ID required")
    return await send_auto_reminders(db, request.company_id)


@router.post("/balances/import", response_model=ImportResponse)
async def import_opening_balances(
    request: ImportRequest,
    db: AsyncSession = Depends(get_db)
):
    """Import previous balances from already-parsed statement rows"""
    return await import_balances(db, request.company_id, request.data)


@router.post("/balances/{balance_id}/payment", response_model=PaymentRecordedResponse)
async def add_payment(
    balance_id: int,
    payment_data: PaymentCreate,
    db: AsyncSession = Depends(get_db)
):
    balance, payment = await record_payment(db, balance_id, payment_data)
    return PaymentRecordedResponse(
        balance=BalanceResponse.model_validate(balance),
        payment=PaymentResponse.model_validate(payment)
    )


@router.post("/balances/{balance_id}/send-reminder", response_model=ReminderSentResponse)
async def send_balance_reminder(
    balance_id: int,
    db: AsyncSession = Depends(get_db)
):
    reminder = await send_reminder(db, balance_id)
    return ReminderSentResponse(
        success=True,
        message="Reminder sent successfully",
        reminder=ReminderLogResponse.model_validate(reminder)
    )


# ==================== MESSAGING SETTINGS ====================

@router.get("/messaging-settings", response_model=MessagingSettingsResponse, response_model_exclude_none=True)
async def get_settings(
    current_company: Company = Depends(get_current_company),
    db: AsyncSession = Depends(get_db)
):
    """WhatsApp settings without auth tokens; defaults when never saved"""
    messaging_settings = await get_messaging_settings(db, current_company.id)
    return to_safe_settings(messaging_settings)


@router.post("/messaging-settings", response_model=MessagingSettingsResponse, response_model_exclude_none=True)
async def save_settings(
    settings_data: MessagingSettingsUpdate,
    db: AsyncSession = Depends(get_db)
):
    await get_company(db, settings_data.company_id)

    values = settings_data.model_dump(exclude={"company_id"})
    # Blank secrets keep the stored values
    for field in SECRET_FIELDS:
        if not values.get(field):
            values.pop(field)

    messaging_settings = await save_messaging_settings(db, settings_data.company_id, values)
    return to_safe_settings(messaging_settings)
