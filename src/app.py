"""ParcelHub FastAPI application.

Back-office web server that processes commands synchronously via HTTP.
Every request under a logistics prefix runs inside the logistics domain
context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV controls which config overlay is applied:
#   - unset        → event_processing = "sync"  (projectors fire in UoW)
#   - "production" → event_processing = "async" (projectors fire via Engine)
import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from logistics.domain import logistics  # noqa: E402
from logistics.utils.logging import bind_request_context, clear_request_context

logistics.init()

logger = structlog.get_logger(__name__)

_DOMAIN_PREFIXES = ("/parcels", "/users", "/settlements")


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="ParcelHub API",
    description="Parcel delivery back office for parcels, drivers and settlements",
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
    """Push the logistics domain context for each domain request."""
    if not request.url.path.startswith(_DOMAIN_PREFIXES):
        # Health check, docs, etc.
        return await call_next(request)

    bind_request_context(method=request.method, path=request.url.path)
    try:
        with logistics.domain_context():
            response = await call_next(request)
        return response
    finally:
        clear_request_context()


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from logistics.api import (  # noqa: E402
    parcel_router,
    register_error_handlers,
    settlement_router,
    user_router,
)

app.include_router(parcel_router)
app.include_router(user_router)
app.include_router(settlement_router)
register_error_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": {"name": logistics.name}})
