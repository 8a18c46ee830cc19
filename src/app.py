"""Waitlist engine FastAPI application.

Processes commands synchronously via HTTP. Every request runs inside the
waitlist domain context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay in waitlist/domain.toml:
#   - default      → sync processing, in-memory stores
#   - "production" → async processing, PostgreSQL
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from waitlist.domain import waitlist
from waitlist.utils.logging import add_context, clear_context

waitlist.init()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Waitlist Engine API",
    description="Waiting-list offers and notification dispatch",
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
    """Push the waitlist domain context for waitlist routes."""
    clear_context()
    add_context(method=request.method, path=request.url.path)
    if request.url.path.startswith("/waitlist"):
        with waitlist.domain_context():
            return await call_next(request)
    # Health check, docs, etc.
    return await call_next(request)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from waitlist.api import router as waitlist_router  # noqa: E402

app.include_router(waitlist_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": waitlist.name})
