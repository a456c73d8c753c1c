"""
Error taxonomy for the back-office.

Every failure that reaches a caller is one of these, so the API layer can
map it to a status code and staff see the specific reason
(e.g. "Insufficient stock for Gin Luna Piena: 3 available").
"""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class BackofficeError(Exception):
    """Base exception for all back-office errors"""

    code = "BACKOFFICE_ERROR"
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(BackofficeError):
    """Request is well-formed but not acceptable (bad quantities, stale prices, ...)."""

    code = "VALIDATION_ERROR"
    status_code = 422


class PriceMismatch(ValidationError):
    code = "PRICE_MISMATCH"

    def __init__(self, field: str, quoted, expected):
        self.field = field
        self.quoted = quoted
        self.expected = expected
        super().__init__(f"{field} mismatch: request says {quoted}, current value is {expected}")


class InvalidTransition(ValidationError):
    code = "INVALID_TRANSITION"

    def __init__(self, field: str, current: str, requested: str):
        self.field = field
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot change {field} from '{current}' to '{requested}'")


class NotFound(BackofficeError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind.capitalize()} not found: {identifier}")


class AlreadyExists(BackofficeError):
    code = "ALREADY_EXISTS"
    status_code = 409


class OutOfStock(BackofficeError):
    code = "OUT_OF_STOCK"
    status_code = 409

    def __init__(self, product_id: str, product_name: str, available: int, requested: int):
        self.product_id = product_id
        self.product_name = product_name
        self.available = available
        self.requested = requested
        super().__init__(f"Insufficient stock for {product_name}: {available} available")


class ConflictRetryExhausted(BackofficeError):
    """The store kept rejecting the commit because of concurrent writes."""

    code = "CONFLICT_RETRY_EXHAUSTED"
    status_code = 503

    def __init__(self, operation: str, attempts: int):
        self.operation = operation
        self.attempts = attempts
        super().__init__(
            f"Could not commit {operation} after {attempts} attempts due to concurrent updates; "
            "no changes were made"
        )


class StoreUnavailable(BackofficeError):
    code = "STORE_UNAVAILABLE"
    status_code = 503


_TRANSIENT = (ConflictRetryExhausted, StoreUnavailable)


async def backoffice_error_handler(request: Request, exc: BackofficeError) -> JSONResponse:
    headers = {"Retry-After": "1"} if isinstance(exc, _TRANSIENT) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": exc.code},
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BackofficeError, backoffice_error_handler)
