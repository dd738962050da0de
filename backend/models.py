from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Boolean, Text, Enum as SQLEnum, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from datetime import datetime
import enum
from database import Base


class PaymentMode(str, enum.Enum):
    CASH = "Cash"
    UPI = "UPI"
    CARD = "Card"
    CREDIT = "Credit"


class InvoiceStatus(str, enum.Enum):
    PAID = "Paid"
    PENDING = "Pending"


class BalanceStatus(str, enum.Enum):
    PENDING = "Pending"
    PARTIALLY_PAID = "Partially Paid"
    CLEARED = "Cleared"


class ReminderStatus(str, enum.Enum):
    SENT = "Sent"
    FAILED = "Failed"


class MessagingProviderName(str, enum.Enum):
    NONE = "none"
    TWILIO = "twilio"
    META = "meta"


class Company(Base):
    """Business issuing the invoices (tenant root)"""
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    gstin = Column(String(20), nullable=True)
    address = Column(Text)
    city = Column(String(50))
    state = Column(String(50), nullable=False)  # Jurisdiction for GST split
    pincode = Column(String(10))
    phone = Column(String(20))
    email = Column(String(100))
    logo_url = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    products = relationship("Product", back_populates="company", cascade="all, delete-orphan")
    customers = relationship("Customer", back_populates="company", cascade="all, delete-orphan")
    invoices = relationship("Invoice", back_populates="company", cascade="all, delete-orphan")
    messaging_settings = relationship("MessagingSettings", back_populates="company", uselist=False, cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Company {self.name} ({self.state})>"


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete='CASCADE'), nullable=False, index=True)

    sku = Column(String(50), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    hsn = Column(String(20), nullable=True)  # Harmonized System code printed on invoices
    description = Column(Text)
    unit_price = Column(Float, nullable=False)
    purchase_price = Column(Float, nullable=True)
    stock = Column(Integer, nullable=False, default=0)  # Not clamped at zero
    tax_rate = Column(Float, nullable=False, default=18.0)  # Percentage
    barcode = Column(String(50), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    company = relationship("Company", back_populates="products")
    invoice_items = relationship("InvoiceItem", back_populates="product")

    # Unique constraint: SKU must be unique within a company
    __table_args__ = (
        UniqueConstraint('company_id', 'sku', name='uq_company_product_sku'),
        Index('idx_products_company_active', 'company_id', 'is_active'),
    )

    def __repr__(self):
        return f"<Product {self.name} (Company: {self.company_id})>"


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete='CASCADE'), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    phone = Column(String(20), nullable=True, index=True)
    email = Column(String(100), nullable=True)
    gstin = Column(String(20), nullable=True)
    address = Column(Text)
    city = Column(String(50))
    state = Column(String(50), nullable=True)
    pincode = Column(String(10))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    company = relationship("Company", back_populates="customers")
    invoices = relationship("Invoice", back_populates="customer")
    balances = relationship("Balance", back_populates="customer")

    __table_args__ = (
        Index('idx_customers_company_name', 'company_id', 'name'),
    )

    def __repr__(self):
        return f"<Customer {self.name} (Company: {self.company_id})>"


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete='CASCADE'), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete='SET NULL'), nullable=True, index=True)

    invoice_no = Column(String(30), nullable=False)
    invoice_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    subtotal = Column(Float, nullable=False)
    tax_amount = Column(Float, nullable=False)
    cgst_amount = Column(Float, nullable=False, default=0.0)
    sgst_amount = Column(Float, nullable=False, default=0.0)
    igst_amount = Column(Float, nullable=False, default=0.0)
    total_amount = Column(Float, nullable=False)
    payment_mode = Column(String(20), nullable=False, default=PaymentMode.CASH.value)
    status = Column(SQLEnum(InvoiceStatus), default=InvoiceStatus.PAID, nullable=False)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    company = relationship("Company", back_populates="invoices")
    customer = relationship("Customer", back_populates="invoices")
    items = relationship("InvoiceItem", back_populates="invoice", cascade="all, delete-orphan", order_by="InvoiceItem.id")
    balance = relationship("Balance", back_populates="invoice", uselist=False)

    __table_args__ = (
        UniqueConstraint('company_id', 'invoice_no', name='uq_company_invoice_no'),
        Index('idx_invoices_company_date', 'company_id', 'invoice_date'),
    )

    def __repr__(self):
        return f"<Invoice {self.invoice_no} (Company: {self.company_id})>"


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete='CASCADE'), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete='SET NULL'), nullable=True)  # Nullable for ad-hoc lines
    product_name = Column(String(100), nullable=False)
    hsn = Column(String(20), nullable=True)
    quantity = Column(Float, nullable=False)
    unit_price = Column(Float, nullable=False)  # Price at time of sale, excluding tax
    tax_rate = Column(Float, nullable=False)
    tax_amount = Column(Float, nullable=False)
    line_total = Column(Float, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    invoice = relationship("Invoice", back_populates="items")
    product = relationship("Product", back_populates="invoice_items")

    def __repr__(self):
        return f"<InvoiceItem {self.id} (Invoice: {self.invoice_id}, Product: {self.product_id})>"


class Balance(Base):
    """Outstanding amount of a credit invoice"""
    __tablename__ = "balances"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete='CASCADE'), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=True, index=True)
    total_amount = Column(Float, nullable=False)
    paid_amount = Column(Float, nullable=False, default=0.0)
    pending_amount = Column(Float, nullable=False)
    status = Column(SQLEnum(BalanceStatus), default=BalanceStatus.PENDING, nullable=False)
    last_reminder_sent = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    company = relationship("Company")
    customer = relationship("Customer", back_populates="balances")
    invoice = relationship("Invoice", back_populates="balance")
    payments = relationship("PaymentHistory", back_populates="balance", order_by="desc(PaymentHistory.payment_date)")
    reminders = relationship("ReminderLog", back_populates="balance", order_by="desc(ReminderLog.sent_at)")

    __table_args__ = (
        Index('idx_balances_company_pending', 'company_id', 'pending_amount'),
        Index('idx_balances_customer', 'customer_id'),
    )

    def __repr__(self):
        return f"<Balance {self.id} Customer:{self.customer_id} Pending:{self.pending_amount}>"


class PaymentHistory(Base):
    """Payment recorded against a balance (append-only)"""
    __tablename__ = "payment_history"

    id = Column(Integer, primary_key=True, index=True)
    balance_id = Column(Integer, ForeignKey("balances.id", ondelete='CASCADE'), nullable=False, index=True)
    payment_amount = Column(Float, nullable=False)
    payment_mode = Column(String(20), nullable=False, default=PaymentMode.CASH.value)
    notes = Column(Text, nullable=True)
    payment_date = Column(DateTime, default=datetime.utcnow, nullable=False)

    balance = relationship("Balance", back_populates="payments")

    def __repr__(self):
        return f"<PaymentHistory {self.id} Amount:{self.payment_amount} Balance:{self.balance_id}>"


class ReminderLog(Base):
    """Audit log for every reminder attempt, successful or not"""
    __tablename__ = "reminder_logs"

    id = Column(Integer, primary_key=True, index=True)
    balance_id = Column(Integer, ForeignKey("balances.id", ondelete='CASCADE'), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete='SET NULL'), nullable=True)
    phone_number = Column(String(20), nullable=True)
    message = Column(Text, nullable=False)
    status = Column(SQLEnum(ReminderStatus), nullable=False)
    error_message = Column(Text, nullable=True)
    provider_message_id = Column(String(100), nullable=True)
    sent_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    balance = relationship("Balance", back_populates="reminders")

    def __repr__(self):
        return f"<ReminderLog {self.status} Balance:{self.balance_id}>"


class MessagingSettings(Base):
    """Per-company WhatsApp provider credentials and auto-reminder policy"""
    __tablename__ = "messaging_settings"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete='CASCADE'), nullable=False, unique=True)
    provider = Column(SQLEnum(MessagingProviderName), default=MessagingProviderName.NONE, nullable=False)

    # Twilio WhatsApp API
    twilio_account_sid = Column(String(100), nullable=True)
    twilio_auth_token = Column(String(255), nullable=True)
    twilio_phone_number = Column(String(20), nullable=True)

    # Meta WhatsApp Cloud API
    meta_access_token = Column(Text, nullable=True)
    meta_phone_number_id = Column(String(50), nullable=True)
    meta_business_account_id = Column(String(50), nullable=True)

    auto_reminders_enabled = Column(Boolean, default=False, nullable=False)
    reminder_frequency_days = Column(Integer, default=3, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    company = relationship("Company", back_populates="messaging_settings")

    def __repr__(self):
        return f"<MessagingSettings Company:{self.company_id} Provider:{self.provider}>"
