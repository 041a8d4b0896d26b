"""
KRA Assist - Backend API
Point of sale, invoicing and KRA tax compliance for Kenyan small businesses
"""
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables before settings are read
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(env_path)

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import (
    admin,
    catalog,
    customers,
    deadlines,
    etims,
    invoices,
    kra,
    notifications,
    payments,
    pos,
    products,
    profile,
    public,
    reports,
    subscriptions,
    transactions,
)
from app.core.config import settings
from app.core.database import ping_database
from app.core.errors import setup_error_handlers
from app.core.logging_config import RequestLoggingMiddleware, configure_logging

configure_logging(settings.LOG_LEVEL)

app = FastAPI(
    title=settings.API_TITLE,
    version=settings.API_VERSION,
    description=settings.API_DESCRIPTION,
)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

setup_error_handlers(app)

# Include API routers
app.include_router(profile.router, prefix="/api/v1/profile", tags=["Profile"])
app.include_router(transactions.router, prefix="/api/v1/transactions", tags=["Transactions"])
app.include_router(invoices.router, prefix="/api/v1/invoices", tags=["Invoices"])
app.include_router(products.router, prefix="/api/v1/products", tags=["Products"])
app.include_router(catalog.router, prefix="/api/v1/catalog", tags=["Catalogue"])
app.include_router(deadlines.router, prefix="/api/v1/deadlines", tags=["Deadlines"])
app.include_router(customers.router, prefix="/api/v1/customers", tags=["Customers"])
app.include_router(pos.router, prefix="/api/v1/pos", tags=["POS"])
app.include_router(payments.router, prefix="/api/v1/payments", tags=["Payments"])
app.include_router(etims.router, prefix="/api/v1/etims", tags=["eTIMS"])
app.include_router(kra.router, prefix="/api/v1/kra", tags=["KRA"])
app.include_router(subscriptions.router, prefix="/api/v1/subscriptions", tags=["Subscriptions"])
app.include_router(notifications.router, prefix="/api/v1/notifications", tags=["Notifications"])
app.include_router(reports.router, prefix="/api/v1/reports", tags=["Reports"])
app.include_router(admin.router, prefix="/api/v1/admin", tags=["Admin"])
app.include_router(public.router, prefix="/api/v1/public", tags=["Public"])


@app.get("/")
async def root():
    """API status"""
    return {
        "message": "KRA Assist API",
        "status": "online",
        "version": settings.API_VERSION,
    }


@app.get("/health")
async def health():
    """Health check for monitoring - tests database connectivity with a single retry"""
    db_status = "connected"
    db_latency_ms = None
    db_error = None

    try:
        db_latency_ms = ping_database()
    except Exception as e:
        db_status = "disconnected"
        db_error = str(e)

    return {
        "status": "healthy" if db_status == "connected" else "degraded",
        "service": "kra-assist-api",
        "version": settings.API_VERSION,
        "database": {
            "status": db_status,
            "latency_ms": db_latency_ms,
            "error": db_error,
        },
    }
