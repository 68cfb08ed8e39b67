"""
Application errors and their HTTP mapping
"""
from typing import List, Optional
from fastapi import Request
from fastapi.responses import JSONResponse
from .logger import logger


class VisionPolishError(Exception):
    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFound(VisionPolishError):
    status_code = 404


class PermissionDenied(VisionPolishError):
    status_code = 403


class ValidationFailed(VisionPolishError):
    status_code = 400

    def __init__(self, detail: str, errors: Optional[List[str]] = None):
        super().__init__(detail)
        self.errors = errors or []


class InvalidTransition(VisionPolishError):
    """Raised when an order event is not allowed from the current status"""
    status_code = 409


class NotEligible(VisionPolishError):
    status_code = 409


class CheckoutError(VisionPolishError):
    status_code = 500


class StorageError(VisionPolishError):
    status_code = 502


async def visionpolish_error_handler(request: Request, exc: VisionPolishError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.detail}")
    else:
        logger.info(f"{type(exc).__name__} on {request.url.path}: {exc.detail}")

    content = {"detail": exc.detail}
    if isinstance(exc, ValidationFailed) and exc.errors:
        content["errors"] = exc.errors
    return JSONResponse(status_code=exc.status_code, content=content)
