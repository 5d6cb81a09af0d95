from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class DonationError(Exception):
    """Base class for every business rule failure raised by the donation workflow."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "donation_error"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(DonationError):
    """Malformed or out-of-range input: negative counts, zero served, bad quantities."""

    code = "validation_error"


class NotFoundError(DonationError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class AmbiguousReferenceError(DonationError):
    status_code = status.HTTP_409_CONFLICT
    code = "ambiguous_reference"


class ConcurrencyConflictError(DonationError):
    status_code = status.HTTP_409_CONFLICT
    code = "concurrency_conflict"


class InsufficientStockError(DonationError):
    """Requested consumption exceeds what the item has on hand (plus what it can get back)."""

    code = "insufficient_stock"

    def __init__(
        self,
        *,
        item_id: int,
        item_name: str,
        condition: str,
        requested: int,
        available: int,
    ) -> None:
        self.item_id = item_id
        self.item_name = item_name
        self.condition = condition
        self.requested = requested
        self.available = available
        self.shortfall = requested - available
        super().__init__(
            f"Not enough stock for the {condition} item: {item_name}. "
            f"Stock: {available}, requested: {requested}",
            details={
                "item_id": item_id,
                "item_name": item_name,
                "condition": condition,
                "requested": requested,
                "available": available,
                "shortfall": self.shortfall,
            },
        )


class ErrorEnvelope(JSONResponse):
    def __init__(
        self,
        *,
        status_code: int,
        code: str,
        message: str,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        payload: dict[str, Any] = {"code": code, "message": message}
        if details is not None:
            payload["details"] = details
        super().__init__(payload, status_code=status_code, headers=headers)


async def donation_error_handler(request: Request, exc: DonationError):
    logger.info(
        "donation.rejected",
        extra={"extra_data": {"code": exc.code, "path": request.url.path, "reason": exc.message}},
    )
    return ErrorEnvelope(
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        details=exc.details,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    message = detail if isinstance(detail, str) else "Error"
    details = detail if isinstance(detail, dict) else None
    return ErrorEnvelope(status_code=exc.status_code, code="http_error", message=message, details=details)


async def validation_exception_handler(request: Request, exc):  # type: ignore[override]
    from fastapi.exceptions import RequestValidationError

    if isinstance(exc, RequestValidationError):
        return ErrorEnvelope(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code="validation_error",
            message="Validation failed",
            details={"errors": jsonable_encoder(exc.errors())},
        )
    raise exc


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("request.failed", extra={"extra_data": {"path": request.url.path}})
    return ErrorEnvelope(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        code="internal_error",
        message="Internal server error",
    )
