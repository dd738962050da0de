"""
Invoice API Endpoints
Issues GST invoices and lists or fetches them for a company
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from database import get_db
from dependencies import get_current_company
from invoice_service import issue_invoice, get_invoice, list_invoices
from models import Company
from schemas import InvoiceCreate, InvoiceListItem, InvoiceDetailResponse

router = APIRouter(prefix="/invoices", tags=["invoices"])


@router.get("", response_model=List[InvoiceListItem])
async def get_invoices(
    current_company: Company = Depends(get_current_company),
    db: AsyncSession = Depends(get_db)
):
    """Newest 100 invoices of the company with a customer summary"""
    return await list_invoices(db, current_company.id)


@router.get("/{invoice_id}", response_model=InvoiceDetailResponse)
async def get_invoice_detail(
    invoice_id: int,
    db: AsyncSession = Depends(get_db)
):
    return await get_invoice(db, invoice_id)


@router.post("", response_model=InvoiceDetailResponse)
async def create_invoice(
    invoice_data: InvoiceCreate,
    db: AsyncSession = Depends(get_db)
):
    """
    Issue an invoice.
    Credit sales with a customer also open a balance.
    """
    invoice = await issue_invoice(db, invoice_data)
    return await get_invoice(db, invoice.id)
