"""Application factory and top-level wiring for the device ledger.

Configuration, database setup, routers and error handling are brought
together here. Importing the package builds the FastAPI ``app`` and makes sure
the database schema is current, so the service is self-starting during
development and tests.
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import settings
from .core.errors import http_exception_handler, validation_exception_handler
from .db.migrate import run_migrations
from .db.session import Base, engine
from .middlewares import RequestIdMiddleware

# Importing the SQLAlchemy models registers them with the metadata. Without
# this step ``Base.metadata.create_all`` would not know about our tables.
from .models import company_profile as _company_profile  # noqa: F401
from .models import device as _device  # noqa: F401
from .models import device_file as _device_file  # noqa: F401

# ---------- App init ----------
app = FastAPI(title=settings.APP_NAME)

# ---------- DB init/migrations ----------
# ``create_all`` ensures tables exist for brand-new databases, while
# ``run_migrations`` upgrades existing installations.
Base.metadata.create_all(bind=engine)
run_migrations(engine)

# ---------- Middleware ----------
app.add_middleware(RequestIdMiddleware)
if settings.allowed_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "X-Request-ID"],
    )

# ---------- Routers ----------
# Every API router resolves the owning account through ``require_owner``.
from .routers import api_devices as api_devices_router  # type: ignore

app.include_router(api_devices_router.router, prefix="")

from .routers import api_device_files as api_device_files_router  # type: ignore

app.include_router(api_device_files_router.router, prefix="")

from .routers import api_company as api_company_router  # type: ignore

app.include_router(api_company_router.router, prefix="")

from .routers import api_reports as api_reports_router  # type: ignore

app.include_router(api_reports_router.router, prefix="")

# ---------- Exception handling ----------
# Errors leave the service as ``{"code", "message", "details"}`` envelopes.
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)


__all__ = ["app"]
