"""Application wiring for the donation portal backend.

Configuration, database bootstrap, middleware, error handlers and routers are
all attached to the FastAPI instance here; ``donation_app.main`` adds logging
and metrics on top and is what the ASGI server loads.
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import settings
from .core.errors import (
    DonationError,
    donation_error_handler,
    http_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from .db.migrate import run_migrations
from .db.session import Base, engine
from .middlewares import RequestIdMiddleware

# Importing the models registers their tables with ``Base.metadata``.
from .models import donation as _donation  # noqa: F401
from .models import item as _item  # noqa: F401
from .models import user as _user  # noqa: F401

app = FastAPI(title=settings.APP_NAME)

if settings.allowed_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
app.add_middleware(RequestIdMiddleware)


@app.on_event("startup")
def _init_db() -> None:
    # ``create_all`` builds a fresh schema; ``run_migrations`` upgrades an older SQLite file.
    Base.metadata.create_all(bind=engine)
    run_migrations(engine)


from .routers import api_donations as api_donations_router  # noqa: E402

app.include_router(api_donations_router.router)

from .routers import api_items as api_items_router  # noqa: E402

app.include_router(api_items_router.router)

app.add_exception_handler(DonationError, donation_error_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

__all__ = ["app"]
