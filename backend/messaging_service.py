"""
WhatsApp Messaging Service
Sends payment reminders through Twilio's WhatsApp API or Meta's WhatsApp Cloud API
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from errors import ProviderError, MessagingNotConfiguredError
from models import MessagingSettings, MessagingProviderName

logger = logging.getLogger(__name__)


class MessagingProvider(ABC):
    """Outbound message channel. send() returns the provider's message id."""

    name = "none"

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        # transport is injectable so tests can stub the HTTP layer
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self.transport,
            timeout=settings.MESSAGING_TIMEOUT_SECONDS
        )

    @abstractmethod
    async def send(self, phone_number: str, message: str) -> str:
        ...


class TwilioWhatsAppProvider(MessagingProvider):
    name = MessagingProviderName.TWILIO.value

    def __init__(
        self,
        account_sid: Optional[str],
        auth_token: Optional[str],
        from_number: Optional[str],
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        super().__init__(transport)
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number

    async def send(self, phone_number: str, message: str) -> str:
        if not self.account_sid or not self.auth_token or not self.from_number:
            raise ProviderError("Twilio credentials not configured")

        url = f"{settings.TWILIO_API_BASE}/2010-04-01/Accounts/{self.account_sid}/Messages.json"
        payload = {
            "From": f"whatsapp:{self.from_number}",
            "To": f"whatsapp:{phone_number}",
            "Body": message,
        }

        try:
            async with self._client() as client:
                response = await client.post(
                    url,
                    data=payload,
                    auth=(self.account_sid, self.auth_token)
                )
        except httpx.HTTPError as e:
            logger.error(f"Twilio send error: {e}")
            raise ProviderError(f"Twilio error: {e}")

        if response.status_code >= 400:
            raise ProviderError(f"Twilio error: {_error_message(response, 'message')}")

        data = response.json()
        return data.get("sid", "")


class MetaWhatsAppProvider(MessagingProvider):
    name = MessagingProviderName.META.value

    def __init__(
        self,
        access_token: Optional[str],
        phone_number_id: Optional[str],
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        super().__init__(transport)
        self.access_token = access_token
        self.phone_number_id = phone_number_id

    async def send(self, phone_number: str, message: str) -> str:
        if not self.access_token or not self.phone_number_id:
            raise ProviderError("Meta WhatsApp credentials not configured")

        url = f"{settings.META_GRAPH_API_BASE}/{self.phone_number_id}/messages"
        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": phone_number,
            "type": "text",
            "text": {"body": message},
        }
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }

        try:
            async with self._client() as client:
                response = await client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Meta WhatsApp send error: {e}")
            raise ProviderError(f"Meta WhatsApp error: {e}")

        if response.status_code >= 400:
            raise ProviderError(f"Meta WhatsApp error: {_error_message(response, 'error')}")

        data = response.json()
        messages = data.get("messages") or [{}]
        return messages[0].get("id", "")


def _error_message(response: httpx.Response, key: str) -> str:
    """Best description of a failed provider response"""
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"

    detail = body.get(key) if isinstance(body, dict) else None
    if isinstance(detail, dict):
        detail = detail.get("message")
    return detail or f"HTTP {response.status_code}"


def is_messaging_configured(messaging_settings: Optional[MessagingSettings]) -> bool:
    return bool(messaging_settings) and messaging_settings.provider != MessagingProviderName.NONE


def get_messaging_provider(
    messaging_settings: Optional[MessagingSettings],
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> MessagingProvider:
    """Provider implementation for a company's saved settings"""
    if not is_messaging_configured(messaging_settings):
        raise MessagingNotConfiguredError()

    if messaging_settings.provider == MessagingProviderName.TWILIO:
        return TwilioWhatsAppProvider(
            messaging_settings.twilio_account_sid,
            messaging_settings.twilio_auth_token,
            messaging_settings.twilio_phone_number,
            transport=transport
        )
    if messaging_settings.provider == MessagingProviderName.META:
        return MetaWhatsAppProvider(
            messaging_settings.meta_access_token,
            messaging_settings.meta_phone_number_id,
            transport=transport
        )

    raise MessagingNotConfiguredError(f"Unsupported messaging provider: {messaging_settings.provider}")


# ============================================================================
# Per-company settings
# ============================================================================

async def get_messaging_settings(db: AsyncSession, company_id: int) -> Optional[MessagingSettings]:
    result = await db.execute(
        select(MessagingSettings).where(MessagingSettings.company_id == company_id)
    )
    return result.scalar_one_or_none()


def to_safe_settings(messaging_settings: Optional[MessagingSettings]) -> dict:
    """
    Settings as returned to API clients.
    Auth tokens are never echoed back, only whether they are set.
    """
    if messaging_settings is None:
        return {
            "provider": MessagingProviderName.NONE,
            "auto_reminders_enabled": False,
            "reminder_frequency_days": settings.DEFAULT_REMINDER_FREQUENCY_DAYS,
        }

    return {
        "company_id": messaging_settings.company_id,
        "provider": messaging_settings.provider,
        "twilio_account_sid": messaging_settings.twilio_account_sid,
        "twilio_phone_number": messaging_settings.twilio_phone_number,
        "meta_phone_number_id": messaging_settings.meta_phone_number_id,
        "meta_business_account_id": messaging_settings.meta_business_account_id,
        "twilio_configured": bool(messaging_settings.twilio_auth_token),
        "meta_configured": bool(messaging_settings.meta_access_token),
        "auto_reminders_enabled": messaging_settings.auto_reminders_enabled,
        "reminder_frequency_days": messaging_settings.reminder_frequency_days,
    }


async def save_messaging_settings(db: AsyncSession, company_id: int, values: dict) -> MessagingSettings:
    """Insert or update the single settings row of a company"""
    messaging_settings = await get_messaging_settings(db, company_id)

    if messaging_settings is None:
        messaging_settings = MessagingSettings(company_id=company_id, **values)
        db.add(messaging_settings)
    else:
        for field, value in values.items():
            setattr(messaging_settings, field, value)

    await db.commit()
    await db.refresh(messaging_settings)
    logger.info(f"Saved messaging settings for company {company_id} (provider: {messaging_settings.provider.value})")
    return messaging_settings
