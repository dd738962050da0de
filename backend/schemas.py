from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List, Union
from datetime import datetime

from models import PaymentMode, InvoiceStatus, BalanceStatus, ReminderStatus, MessagingProviderName


class CamelModel(BaseModel):
    """Base schema: snake_case in Python, camelCase on the wire"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# ============================================================================
# Company Schemas
# ============================================================================

class CompanyCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    gstin: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = None
    city: Optional[str] = None
    state: str = Field(..., min_length=1, max_length=50)
    pincode: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    logo_url: Optional[str] = None


class CompanyUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    gstin: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = Field(None, min_length=1, max_length=50)
    pincode: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    logo_url: Optional[str] = None


class CompanyResponse(CamelModel):
    id: int
    name: str
    gstin: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: str
    pincode: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    logo_url: Optional[str] = None
    created_at: datetime


# ============================================================================
# Product Schemas
# ============================================================================

class ProductBase(CamelModel):
    sku: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=100)
    hsn: Optional[str] = Field(None, max_length=20)
    description: Optional[str] = None
    unit_price: float = Field(..., ge=0)
    purchase_price: Optional[float] = Field(None, ge=0)
    stock: int = 0
    tax_rate: float = Field(default=18.0, ge=0, description="GST rate in percent")
    barcode: Optional[str] = Field(None, max_length=50)


class ProductCreate(ProductBase):
    company_id: int


class ProductUpdate(CamelModel):
    sku: Optional[str] = Field(None, min_length=1, max_length=50)
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    hsn: Optional[str] = Field(None, max_length=20)
    description: Optional[str] = None
    unit_price: Optional[float] = Field(None, ge=0)
    purchase_price: Optional[float] = Field(None, ge=0)
    stock: Optional[int] = None
    tax_rate: Optional[float] = Field(None, ge=0)
    barcode: Optional[str] = Field(None, max_length=50)
    is_active: Optional[bool] = None


class ProductResponse(ProductBase):
    id: int
    company_id: int
    is_active: bool
    created_at: datetime


# ============================================================================
# Customer Schemas
# ============================================================================

class CustomerBase(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = None
    gstin: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None


class CustomerCreate(CustomerBase):
    company_id: int


class CustomerUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = None
    gstin: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None


class CustomerResponse(CustomerBase):
    id: int
    company_id: int
    created_at: datetime


class CustomerSummary(CamelModel):
    """Customer fields embedded in invoice listings"""
    name: str
    phone: Optional[str] = None
    gstin: Optional[str] = None


class BalanceCustomerSummary(CamelModel):
    """Customer fields embedded in balance listings"""
    name: str
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None


# ============================================================================
# Invoice Schemas
# ============================================================================

class InvoiceItemCreate(CamelModel):
    product_id: Optional[int] = None
    product_name: Optional[str] = Field(None, max_length=100, description="Defaults to the product's name")
    hsn: Optional[str] = None
    quantity: float = Field(..., gt=0)
    unit_price: float = Field(..., ge=0)
    tax_rate: float = Field(..., ge=0)


class InvoiceCreate(CamelModel):
    company_id: int
    customer_id: Optional[int] = None
    items: List[InvoiceItemCreate] = Field(..., min_length=1)
    payment_mode: PaymentMode = PaymentMode.CASH
    notes: Optional[str] = None


class InvoiceItemResponse(CamelModel):
    id: int
    invoice_id: int
    product_id: Optional[int] = None
    product_name: str
    hsn: Optional[str] = None
    quantity: float
    unit_price: float
    tax_rate: float
    tax_amount: float
    line_total: float


class InvoiceResponse(CamelModel):
    id: int
    company_id: int
    customer_id: Optional[int] = None
    invoice_no: str
    invoice_date: datetime
    subtotal: float
    tax_amount: float
    cgst_amount: float
    sgst_amount: float
    igst_amount: float
    total_amount: float
    payment_mode: str
    status: InvoiceStatus
    notes: Optional[str] = None
    created_at: datetime


class InvoiceListItem(InvoiceResponse):
    customer: Optional[CustomerSummary] = None


class InvoiceDetailResponse(InvoiceResponse):
    customer: Optional[CustomerResponse] = None
    company: CompanyResponse
    items: List[InvoiceItemResponse]


class InvoiceSummary(CamelModel):
    """Invoice fields embedded in balance listings"""
    invoice_no: str
    invoice_date: datetime


# ============================================================================
# Balance / Payment Schemas
# ============================================================================

class BalanceCreate(CamelModel):
    company_id: int
    customer_id: int
    invoice_id: Optional[int] = None
    total_amount: float = Field(..., ge=0)
    paid_amount: float = Field(default=0.0, ge=0)


class BalanceResponse(CamelModel):
    id: int
    company_id: int
    customer_id: int
    invoice_id: Optional[int] = None
    total_amount: float
    paid_amount: float
    pending_amount: float
    status: BalanceStatus
    last_reminder_sent: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class BalanceListItem(BalanceResponse):
    customer: Optional[BalanceCustomerSummary] = None
    invoice: Optional[InvoiceSummary] = None


class CustomerBalanceItem(BalanceResponse):
    invoice: Optional[InvoiceSummary] = None


class PaymentCreate(CamelModel):
    payment_amount: float = Field(..., gt=0)
    payment_mode: str = Field(default=PaymentMode.CASH.value, min_length=1, max_length=20)
    notes: Optional[str] = None


class PaymentResponse(CamelModel):
    id: int
    balance_id: int
    payment_amount: float
    payment_mode: str
    notes: Optional[str] = None
    payment_date: datetime


class PaymentRecordedResponse(CamelModel):
    balance: BalanceResponse
    payment: PaymentResponse


class ReminderLogResponse(CamelModel):
    id: int
    balance_id: int
    customer_id: Optional[int] = None
    phone_number: Optional[str] = None
    message: str
    status: ReminderStatus
    error_message: Optional[str] = None
    provider_message_id: Optional[str] = None
    sent_at: datetime


class BalanceDetailResponse(BalanceResponse):
    customer: CustomerResponse
    invoice: Optional[InvoiceResponse] = None
    payments: List[PaymentResponse]
    reminders: List[ReminderLogResponse]


class PendingCountResponse(CamelModel):
    count: int


# ============================================================================
# Reminder Schemas
# ============================================================================

class ReminderSentResponse(CamelModel):
    success: bool
    message: str
    reminder: ReminderLogResponse


class AutoReminderRequest(CamelModel):
    company_id: Optional[int] = None


class AutoReminderResult(CamelModel):
    balance_id: int
    status: str  # 'sent' or 'failed'
    error: Optional[str] = None


class AutoReminderResponse(CamelModel):
    message: Optional[str] = None
    sent: int = 0
    failed: int = 0
    results: List[AutoReminderResult] = []


# ============================================================================
# Messaging Settings Schemas
# ============================================================================

class MessagingSettingsUpdate(CamelModel):
    company_id: int
    provider: MessagingProviderName = MessagingProviderName.NONE
    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    twilio_phone_number: Optional[str] = None
    meta_access_token: Optional[str] = None
    meta_phone_number_id: Optional[str] = None
    meta_business_account_id: Optional[str] = None
    auto_reminders_enabled: bool = False
    reminder_frequency_days: int = Field(default=3, ge=1)


class MessagingSettingsResponse(CamelModel):
    """Settings as shown to clients: secrets replaced by 'configured' flags"""
    company_id: Optional[int] = None
    provider: MessagingProviderName
    twilio_account_sid: Optional[str] = None
    twilio_phone_number: Optional[str] = None
    meta_phone_number_id: Optional[str] = None
    meta_business_account_id: Optional[str] = None
    twilio_configured: bool = False
    meta_configured: bool = False
    auto_reminders_enabled: bool
    reminder_frequency_days: int


# ============================================================================
# Balance Import Schemas
# ============================================================================

class ImportRow(CamelModel):
    """One row extracted from a balance statement; validated per row by the importer"""
    customer_name: Optional[str] = None
    phone: Optional[str] = None
    # Raw cell value; parsed by the importer so one bad amount only fails its row
    amount: Optional[Union[float, str]] = None

    @field_validator("customer_name", "phone", mode="before")
    @classmethod
    def cell_as_text(cls, value):
        if value is None:
            return None
        value = str(value).strip()
        return value or None


class ImportRequest(CamelModel):
    company_id: int
    data: List[ImportRow]


class ImportRowError(CamelModel):
    row: int
    customer_name: Optional[str] = None
    error: str


class ImportCreated(CamelModel):
    customer_name: str
    invoice_no: str
    balance_id: int
    amount: float


class ImportResponse(CamelModel):
    success: int
    failed: int
    errors: List[ImportRowError]
    created: List[ImportCreated]


# ============================================================================
# Dashboard / Report Schemas
# ============================================================================

class DashboardStats(CamelModel):
    today_sales: str
    total_invoices: int
    total_products: int
    total_customers: int


class GstReport(CamelModel):
    cgst: float
    sgst: float
    igst: float
    total: float
