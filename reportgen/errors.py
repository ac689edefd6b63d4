"""Report error kinds and their HTTP mapping.

Every error leaves the service as ``{"error": <message>}`` with the status
code of its kind. Request bodies FastAPI cannot parse are reported the same
way (400) instead of the framework's default 422.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ReportError(Exception):
    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ReportError):
    status_code = 400
    default_message = "Report name is required"


class NotFound(ReportError):
    status_code = 404
    default_message = "Report not found"


class NotReady(ReportError):
    status_code = 400
    default_message = "Report is not ready for download"


class Expired(ReportError):
    status_code = 400
    default_message = "Report has expired"


class InvalidTransition(ReportError):
    status_code = 409
    default_message = "Report has already finished"


async def _report_error_handler(request: Request, exc: ReportError) -> JSONResponse:
    logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = "Invalid request body"
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    logger.info("%s %s -> 400: %s", request.method, request.url.path, message)
    return JSONResponse(status_code=400, content={"error": message})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ReportError, _report_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
