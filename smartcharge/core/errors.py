"""Errores de dominio y su traducción a respuestas HTTP.

Cada error lleva el código HTTP, un mensaje corto para el cliente y,
opcionalmente, la lista de problemas por campo. El detalle interno de los
fallos inesperados se registra en el log y nunca se devuelve.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from smartcharge.models.parsing import Err, FieldProblem, ParseResult, problems_from_pydantic

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[List[FieldProblem]] = None):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.details = details or []


class AuthenticationFailure(ServiceError):
    status_code = 401
    message = "Unauthorized: Invalid API key"


class ValidationFailure(ServiceError):
    status_code = 400
    message = "Validation failed"


class DeviceMismatch(ServiceError):
    status_code = 403
    message = "Device ID mismatch"


class NotFound(ServiceError):
    status_code = 404
    message = "Not found"


class Conflict(ServiceError):
    status_code = 409
    message = "Conflict"


class StationUnavailable(ServiceError):
    status_code = 400
    message = "Station is not available for reservation"


class InvalidTransition(ServiceError):
    status_code = 400
    message = "Invalid state transition"


def unwrap(result: ParseResult):
    """Devuelve el valor parseado o lanza ValidationFailure con los problemas."""
    if isinstance(result, Err):
        raise ValidationFailure(details=list(result.problems))
    return result.value


def error_body(message: str, details: Optional[List[FieldProblem]] = None) -> dict:
    body = {"success": False, "error": message}
    if details:
        body["details"] = [d.as_dict() for d in details]
    return body


async def _service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error("Fallo interno en %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(error_body(exc.message, exc.details), status_code=exc.status_code)


async def _request_validation_handler(request: Request, exc: RequestValidationError):
    problems = problems_from_pydantic(exc.errors())
    return JSONResponse(error_body(ValidationFailure.message, problems), status_code=400)


async def _unhandled_handler(request: Request, exc: Exception):
    logger.exception("Error inesperado en %s %s", request.method, request.url.path)
    return JSONResponse(error_body("Internal server error"), status_code=500)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, _service_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_handler)
