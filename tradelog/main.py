"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tradelog.config import settings
from tradelog.database import create_db_and_tables
from tradelog.utils.logging import setup_logging
from tradelog.services.exceptions import StorageError, TradeNotFoundError, TradeValidationError
from tradelog.api import auth, trades, webhook, dashboard, system

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    setup_logging()
    create_db_and_tables()
    logger.info("TradeLog started")
    yield


app = FastAPI(
    title="TradeLog",
    description="Personal trading journal with webhook trade capture and performance stats",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TradeValidationError)
async def trade_validation_handler(request: Request, exc: TradeValidationError):
    return JSONResponse(status_code=422, content={"detail": exc.errors})


@app.exception_handler(TradeNotFoundError)
async def trade_not_found_handler(request: Request, exc: TradeNotFoundError):
    return JSONResponse(status_code=404, content={"detail": exc.message})


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=503, content={"detail": "Storage unavailable, try again later"})


# Mount routers
app.include_router(auth.router)
app.include_router(trades.router)
app.include_router(webhook.router)
app.include_router(dashboard.router)
app.include_router(system.router)
