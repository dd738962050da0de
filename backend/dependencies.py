"""
Request-scoped dependencies shared by the API routers.
Every company-scoped endpoint takes the company from the companyId query parameter.
"""
from typing import Optional

from fastapi import Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from errors import ValidationError
from invoice_service import get_company
from models import Company


async def get_current_company(
    company_id: Optional[int] = Query(None, alias="companyId"),
    db: AsyncSession = Depends(get_db)
) -> Company:
    """
    Company named by ?companyId=.
    Missing parameter is a 400, unknown company a 404.
    """
    if company_id is None:
        raise ValidationError("Company ID required")
    return await get_company(db, company_id)
