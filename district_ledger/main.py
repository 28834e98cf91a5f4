"""
District Ledger – FastAPI application entry point.

Run with:
    uvicorn district_ledger.main:app --reload --host 0.0.0.0 --port 8000
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from district_ledger.api.routes import router
from district_ledger.api.wallet_routes import wallet_router
from district_ledger.core.config import settings
from district_ledger.core.database import create_db_and_tables
from district_ledger.core.exceptions import LedgerError
from district_ledger.core.logging import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown hooks."""
    setup_logging()
    logger.info("Starting District Ledger backend …")
    create_db_and_tables()
    logger.info("Database tables ready")
    yield
    logger.info("District Ledger backend shut down")


app = FastAPI(
    title="District Ledger API",
    description="Vendor billing, GST reconciliation and admin wallet ledger",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS – allow frontend dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)
app.include_router(wallet_router)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    # Refused actions leave no trace in the ledger, only in the log
    logger.warning(f"{request.method} {request.url.path} refused ({type(exc).__name__}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.get("/")
def root():
    return {"message": "District Ledger API", "docs": "/docs"}
