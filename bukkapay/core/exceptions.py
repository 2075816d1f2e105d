import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Base class for failures reported to API clients."""

    kind = "error"
    status_code = status.HTTP_400_BAD_REQUEST
    retryable = False

    def __init__(self, message: str | None = None):
        self.message = message or self.__class__.__doc__ or self.kind
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"error": self.kind, "message": self.message}
        if self.retryable:
            body["retryable"] = True
        return body


class ValidationError(LedgerError):
    """Malformed request."""

    kind = "validation_error"
    status_code = 422


class AuthenticationError(LedgerError):
    """Not authenticated."""

    kind = "authentication_error"
    status_code = status.HTTP_401_UNAUTHORIZED


class AuthorizationError(LedgerError):
    """Forbidden."""

    kind = "authorization_error"
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(LedgerError):
    """Not found."""

    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class AccountNotFound(NotFound):
    """Account not found."""

    kind = "account_not_found"


class Conflict(LedgerError):
    """Conflict."""

    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT


class InsufficientFunds(LedgerError):
    """Insufficient funds."""

    kind = "insufficient_funds"
    status_code = status.HTTP_409_CONFLICT


class AccountFrozen(LedgerError):
    """Account is frozen."""

    kind = "account_frozen"
    status_code = status.HTTP_409_CONFLICT


class TransferLimitExceeded(LedgerError):
    """Daily transfer limit exceeded."""

    kind = "transfer_limit_exceeded"
    status_code = status.HTTP_409_CONFLICT


class CurrencyMismatch(LedgerError):
    """Source and destination currencies differ."""

    kind = "currency_mismatch"
    status_code = 422


class IdempotencyKeyReused(LedgerError):
    """Idempotency key was already used for a different request."""

    kind = "idempotency_key_reused"
    status_code = 422


class StorageFailure(LedgerError):
    """Storage unavailable, retry with the same idempotency key."""

    kind = "storage_failure"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True


async def ledger_error_handler(request: Request, exc: LedgerError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info(
            "%s %s rejected (%s): %s", request.method, request.url.path, exc.kind, exc
        )
    headers = {}
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        headers["WWW-Authenticate"] = "Bearer"
    if exc.retryable:
        headers["Retry-After"] = "1"
    return JSONResponse(
        status_code=exc.status_code, content=exc.to_dict(), headers=headers or None
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    parts = []
    for err in errors:
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else err.get("msg", ""))
    return JSONResponse(
        status_code=422,
        content={
            "error": ValidationError.kind,
            "message": "; ".join(parts) or "Invalid request",
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LedgerError, ledger_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
