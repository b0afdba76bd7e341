"""Storefront FastAPI application.

Web server for checkout, promotional codes, operator actions and payment
gateway webhooks. Each request is wrapped in the storefront domain context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storefront.domain import storefront
from storefront.notification.dispatch import shutdown_dispatcher
from storefront.utils.logging import configure_logging

configure_logging()
storefront.init()


@asynccontextmanager
async def lifespan(_app: FastAPI):
    yield
    # Let queued confirmation emails go out before the worker exits.
    shutdown_dispatcher(wait=True)


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Storefront API",
    description="Checkout, pricing and payment reconciliation",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the storefront domain context for each request."""
    with storefront.domain_context():
        response = await call_next(request)
    return response


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from storefront.api import admin_router, checkout_router, payments_router, promo_router  # noqa: E402

app.include_router(checkout_router)
app.include_router(promo_router)
app.include_router(admin_router)
app.include_router(payments_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": storefront.name})
