# cabinetry/core/errors.py
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from cabinetry.core.logging_config import logger


class CabinetryError(Exception):
    """Base class for domain errors. Mapped to a JSON response by the app."""

    status_code: int = 400
    code: str = "error"

    def __init__(self, message: str, *, code: Optional[str] = None, meta: Optional[Dict[str, Any]] = None):
        self.message = str(message)
        if code:
            self.code = code
        self.meta = meta or {}
        super().__init__(f"{self.code}: {self.message}")


class NotFoundError(CabinetryError):
    status_code = 404
    code = "not_found"


class InvalidTransitionError(CabinetryError):
    status_code = 409
    code = "invalid_transition"


class BusinessRuleError(CabinetryError):
    status_code = 422
    code = "business_rule"


class PermissionDeniedError(CabinetryError):
    status_code = 403
    code = "forbidden"


class ExternalServiceError(CabinetryError):
    status_code = 502
    code = "external_service"


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(CabinetryError)
    async def _handle_domain_error(request: Request, exc: CabinetryError):
        request_id = getattr(request.state, "request_id", None)
        logger.bind(
            request_id=request_id,
            endpoint=str(request.url.path),
            method=request.method,
            status_code=exc.status_code,
            code=exc.code,
        ).warning("request_failed", detail=exc.message)

        body: Dict[str, Any] = {"error": exc.code, "detail": exc.message}
        if exc.meta:
            body["meta"] = exc.meta
        return JSONResponse(status_code=exc.status_code, content=body)
