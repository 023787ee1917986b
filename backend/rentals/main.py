"""Main FastAPI application."""
import os
import logging
from dotenv import load_dotenv

# Environment must be loaded before the store reads DATABASE_URL
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rentals.errors import StoreError
from rentals.routes import (
    properties_router,
    tenants_router,
    transactions_router,
    subscription_router,
)

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Rentals API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include all routers
app.include_router(properties_router)
app.include_router(tenants_router)
app.include_router(transactions_router)
app.include_router(subscription_router)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    # Never answer "not blocked" when the store could not be read
    logger.error(f"[API] Store unavailable on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content={"detail": "Data store unavailable, please try again"},
    )


@app.get("/health")
async def health():
    return {"status": "ok"}
