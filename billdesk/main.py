from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
import logging

# Import database components
from billdesk.database.database import engine, Base
from billdesk.common.exceptions import BillingError

# Import routers
from billdesk.modules.clients.router import router as clients_router
from billdesk.modules.products.router import router as products_router
from billdesk.modules.staff.router import router as staff_router
from billdesk.modules.quotations.router import router as quotations_router
from billdesk.modules.invoices.router import router as invoices_router
from billdesk.modules.outgoing_payments.router import (
    router as outgoing_payments_router,
    categories_router as expense_categories_router
)
from billdesk.modules.ledger.router import router as ledger_router
from billdesk.modules.stats.router import router as stats_router

# Import models for table creation
import billdesk.modules.ledger.models
import billdesk.modules.clients.models
import billdesk.modules.products.models
import billdesk.modules.staff.models
import billdesk.modules.quotations.models
import billdesk.modules.invoices.models
import billdesk.modules.outgoing_payments.models

from billdesk import __version__
from billdesk.core.config import settings

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.ENVIRONMENT == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# FastAPI app
app = FastAPI(
    title="Billdesk API",
    description="Billing workflow API: clients, quotations, invoices and outgoing payments",
    version=__version__,
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None
)

# Add middleware
app.add_middleware(GZipMiddleware, minimum_size=1000)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Add your frontend URLs
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BillingError)
async def billing_error_handler(request: Request, exc: BillingError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({exc.code}): {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Include routers
app.include_router(clients_router)
app.include_router(products_router)
app.include_router(staff_router)
app.include_router(quotations_router)
app.include_router(invoices_router)
app.include_router(outgoing_payments_router)
app.include_router(expense_categories_router)
app.include_router(ledger_router)
app.include_router(stats_router)

# Create database tables (only for development - use migrations in production)
if settings.ENVIRONMENT == "development":
    Base.metadata.create_all(bind=engine)


@app.get("/")
async def read_root():
    return {
        "message": "Billdesk API is running",
        "version": __version__,
        "environment": settings.ENVIRONMENT
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy", "environment": settings.ENVIRONMENT}


@app.on_event("startup")
async def startup_event():
    logger.info("Billdesk API starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Billdesk API shutting down...")
