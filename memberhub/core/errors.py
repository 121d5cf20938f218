import logging
from decimal import Decimal
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class DomainError(Exception):
    """Business-rule failure that maps straight onto an HTTP response."""

    status_code = 400

    def __init__(self, message: str, error: Any = None):
        super().__init__(message)
        self.message = message
        self.error = error


class CouponRejected(DomainError):
    pass


class AmountMismatch(DomainError):
    def __init__(self, expected: Decimal, received: Decimal):
        super().__init__(
            f"Payment amount does not match. Expected {expected:.2f}, received {received:.2f}",
            error={"expected": float(expected), "received": float(received)},
        )
        self.expected = expected
        self.received = received


class GatewayError(DomainError):
    status_code = 502


def error_body(message: str, error: Any = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": False, "message": message}
    if error is not None:
        body["error"] = error
    return body


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError):
        return JSONResponse(
            status_code=exc.status_code,
            content=jsonable_encoder(error_body(exc.message, exc.error)),
        )

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        detail = exc.detail
        if isinstance(detail, dict):
            # gateway failures carry the upstream response as the detail
            body = error_body(detail.get("message", "Upstream request failed"), detail)
        else:
            body = error_body(str(detail))
        return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(body), headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content=jsonable_encoder(error_body("Invalid request", exc.errors())),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content=error_body("Internal server error", str(exc)))
