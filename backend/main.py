from fastapi import FastAPI, Depends, Request, Query
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, desc
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from datetime import datetime
from typing import List, Optional
import logging

from config import settings
from database import get_db, init_db, async_session_maker, engine
from dependencies import get_current_company
from errors import AppError, NotFoundError, ValidationError
from invoice_service import get_company, get_customer
from models import Company, Product, Customer, Invoice, Balance
from schemas import (
    CompanyCreate, CompanyUpdate, CompanyResponse,
    ProductCreate, ProductUpdate, ProductResponse,
    CustomerCreate, CustomerUpdate, CustomerResponse,
    DashboardStats, GstReport
)
from billing_api import router as billing_router
from credit_api import router as credit_router
from seed_demo_data import seed_if_empty
from tax import round_money

app = FastAPI(title=settings.APP_NAME, version="1.0.0")

# Setup logging
logger = logging.getLogger(__name__)

# Strip whitespace from each origin to prevent configuration errors
CORS_ORIGINS = [origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
    max_age=3600,  # Cache preflight responses for 1 hour
)

# ==================== CUSTOM EXCEPTION HANDLERS ====================


def error_response(request: Request, status_code: int, message: str) -> JSONResponse:
    """
    Build the {"error": message} body every failure returns.

    Error responses are created outside the CORS middleware's normal path,
    so the headers are added here or the browser blocks the response.
    """
    response = JSONResponse(status_code=status_code, content={"error": message})

    origin = request.headers.get('origin')
    if origin and origin in CORS_ORIGINS:
        response.headers['Access-Control-Allow-Origin'] = origin
        response.headers['Access-Control-Allow-Credentials'] = 'true'
        response.headers['Access-Control-Allow-Methods'] = '*'
        response.headers['Access-Control-Allow-Headers'] = '*'

    return response


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return error_response(request, exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def custom_http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(request, exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and query parameters are 400s with the first problem named"""
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else first.get("msg")
    else:
        message = "Invalid request"
    return error_response(request, 400, message)


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error: {exc}", exc_info=True)
    return error_response(request, 500, str(getattr(exc, "orig", None) or exc))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """
    Catch-all exception handler for unexpected errors.
    Ensures CORS headers are present even on 500 errors.
    """
    logger.error(f"Unexpected error: {exc}", exc_info=True)
    return error_response(request, 500, str(exc) or "Internal server error")

# ==================== END EXCEPTION HANDLERS ====================

# Invoice routes
app.include_router(billing_router)

# Balance, reminder, import and messaging settings routes
app.include_router(credit_router)


@app.on_event("startup")
async def startup_event():
    """Initialize database on startup"""
    logger.info("=" * 60)
    logger.info("Starting application initialization...")
    logger.info("=" * 60)

    try:
        await init_db()
        logger.info("Database initialization successful!")
    except Exception as e:
        logger.error("=" * 60)
        logger.error(f"CRITICAL: Application startup failed: {e}")
        logger.error("=" * 60)
        raise

    if settings.SEED_DEMO_DATA:
        async with async_session_maker() as db:
            await seed_if_empty(db)


# ==================== COMPANIES ====================

@app.get("/companies", response_model=List[CompanyResponse])
async def get_companies(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Company).order_by(desc(Company.created_at), desc(Company.id)))
    return result.scalars().all()


@app.post("/companies", response_model=CompanyResponse)
async def create_company(
    company_data: CompanyCreate,
    db: AsyncSession = Depends(get_db)
):
    company = Company(**company_data.model_dump())
    db.add(company)
    await db.commit()
    await db.refresh(company)
    logger.info(f"Created company #{company.id}: {company.name} ({company.state})")
    return company


@app.put("/companies/{company_id}", response_model=CompanyResponse)
async def update_company(
    company_id: int,
    company_data: CompanyUpdate,
    db: AsyncSession = Depends(get_db)
):
    company = await get_company(db, company_id)

    for field, value in company_data.model_dump(exclude_unset=True).items():
        setattr(company, field, value)

    await db.commit()
    await db.refresh(company)
    return company


# ==================== PRODUCTS ====================

async def _get_product(db: AsyncSession, product_id: int) -> Product:
    result = await db.execute(select(Product).where(Product.id == product_id))
    product = result.scalar_one_or_none()
    if not product:
        raise NotFoundError("Product not found")
    return product


async def _commit_product(db: AsyncSession, product: Product) -> Product:
    sku = product.sku
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ValidationError(f"Product with SKU '{sku}' already exists")
    await db.refresh(product)
    return product


@app.get("/products", response_model=List[ProductResponse])
async def get_products(
    current_company: Company = Depends(get_current_company),
    db: AsyncSession = Depends(get_db)
):
    """Active products of the company, by name"""
    result = await db.execute(
        select(Product)
        .where(Product.company_id == current_company.id, Product.is_active == True)
        .order_by(Product.name)
    )
    return result.scalars().all()


@app.post("/products", response_model=ProductResponse)
async def create_product(
    product_data: ProductCreate,
    db: AsyncSession = Depends(get_db)
):
    await get_company(db, product_data.company_id)

    product = Product(**product_data.model_dump())
    db.add(product)
    return await _commit_product(db, product)


@app.put("/products/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: int,
    product_data: ProductUpdate,
    db: AsyncSession = Depends(get_db)
):
    product = await _get_product(db, product_id)

    for field, value in product_data.model_dump(exclude_unset=True).items():
        setattr(product, field, value)

    return await _commit_product(db, product)


@app.delete("/products/{product_id}")
async def delete_product(
    product_id: int,
    db: AsyncSession = Depends(get_db)
):
    """Soft delete: invoices keep pointing at the product"""
    product = await _get_product(db, product_id)
    product.is_active = False
    await db.commit()
    return {"success": True}


# ==================== CUSTOMERS ====================

@app.get("/customers", response_model=List[CustomerResponse])
async def get_customers(
    current_company: Company = Depends(get_current_company),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        select(Customer)
        .where(Customer.company_id == current_company.id)
        .order_by(Customer.name)
    )
    return result.scalars().all()


@app.post("/customers", response_model=CustomerResponse)
async def create_customer(
    customer_data: CustomerCreate,
    db: AsyncSession = Depends(get_db)
):
    await get_company(db, customer_data.company_id)

    customer = Customer(**customer_data.model_dump())
    db.add(customer)
    await db.commit()
    await db.refresh(customer)
    return customer


@app.put("/customers/{customer_id}", response_model=CustomerResponse)
async def update_customer(
    customer_id: int,
    customer_data: CustomerUpdate,
    db: AsyncSession = Depends(get_db)
):
    customer = await get_customer(db, customer_id)

    for field, value in customer_data.model_dump(exclude_unset=True).items():
        setattr(customer, field, value)

    await db.commit()
    await db.refresh(customer)
    return customer


@app.delete("/customers/{customer_id}")
async def delete_customer(
    customer_id: int,
    db: AsyncSession = Depends(get_db)
):
    """Hard delete. Customers with credit balances are kept."""
    customer = await get_customer(db, customer_id)

    balance_count = await db.scalar(
        select(func.count(Balance.id)).where(Balance.customer_id == customer.id)
    )
    if balance_count:
        raise ValidationError("Cannot delete customer with existing balances")

    await db.delete(customer)
    await db.commit()
    logger.info(f"Deleted customer #{customer_id}")
    return {"success": True}


# ==================== DASHBOARD & REPORTS ====================

@app.get("/dashboard/stats", response_model=DashboardStats)
async def get_dashboard_stats(
    current_company: Company = Depends(get_current_company),
    db: AsyncSession = Depends(get_db)
):
    """Today's sales with invoice, product and customer counts"""
    today_start = datetime.utcnow().replace(hour=0, minute=0, second=0, microsecond=0)

    today_sales = await db.scalar(
        select(func.coalesce(func.sum(Invoice.total_amount), 0)).where(
            Invoice.company_id == current_company.id,
            Invoice.invoice_date >= today_start
        )
    )
    invoice_count = await db.scalar(
        select(func.count(Invoice.id)).where(Invoice.company_id == current_company.id)
    )
    product_count = await db.scalar(
        select(func.count(Product.id)).where(
            Product.company_id == current_company.id,
            Product.is_active == True
        )
    )
    customer_count = await db.scalar(
        select(func.count(Customer.id)).where(Customer.company_id == current_company.id)
    )

    return DashboardStats(
        today_sales=f"{round_money(today_sales or 0):.2f}",
        total_invoices=invoice_count or 0,
        total_products=product_count or 0,
        total_customers=customer_count or 0
    )


@app.get("/reports/gst", response_model=GstReport)
async def get_gst_report(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    current_company: Company = Depends(get_current_company),
    db: AsyncSession = Depends(get_db)
):
    """CGST, SGST, IGST and invoice totals over an optional date window"""
    query = select(
        func.coalesce(func.sum(Invoice.cgst_amount), 0),
        func.coalesce(func.sum(Invoice.sgst_amount), 0),
        func.coalesce(func.sum(Invoice.igst_amount), 0),
        func.coalesce(func.sum(Invoice.total_amount), 0),
    ).where(Invoice.company_id == current_company.id)

    if start_date:
        query = query.where(Invoice.invoice_date >= start_date)
    if end_date:
        query = query.where(Invoice.invoice_date <= end_date)

    cgst, sgst, igst, total = (await db.execute(query)).one()
    return GstReport(
        cgst=round_money(cgst),
        sgst=round_money(sgst),
        igst=round_money(igst),
        total=round_money(total)
    )


# ==================== HEALTH CHECK ====================

@app.get("/health")
async def health_check():
    """Health check endpoint for Render/Cloud platforms"""
    return {"status": "ok", "database": engine.dialect.name}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
