"""
    Centralized exception handling for the FastAPI application.

    API errors are rendered in the hosted-API envelope; delivery errors
    under /cdn are rendered as short plain-text bodies.
"""
from fastapi import Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
import logging

from app.envelope import error_response

log = logging.getLogger(__name__)

class APIException(Exception):
    """Base class for API exceptions."""
    def __init__(self, status_code: int, detail: str, code: int = 9500):
        self.status_code = status_code
        self.detail = detail
        self.code = code
        super().__init__(self.detail)

class BadRequestException(APIException):
    """Exception for malformed caller input."""
    def __init__(self, detail: str):
        super().__init__(status_code=400, detail=detail, code=9400)

class UnauthorizedException(APIException):
    """Exception for missing or rejected credentials."""
    def __init__(self):
        super().__init__(status_code=401, detail="Authentication required", code=9401)

class NotFoundException(APIException):
    """Exception for absent resources."""
    def __init__(self, detail: str):
        super().__init__(status_code=404, detail=detail, code=9404)

class ImageNotFoundException(NotFoundException):
    """Exception for when an image is not found."""
    def __init__(self, image_id: str):
        super().__init__(detail=f"Image with ID '{image_id}' not found.")

class VariantNotFoundException(NotFoundException):
    def __init__(self, variant_id: str):
        super().__init__(detail=f"Variant '{variant_id}' not found.")

class SigningKeyNotFoundException(NotFoundException):
    def __init__(self, name: str):
        super().__init__(detail=f"Signing key '{name}' not found.")

class DirectUploadNotFoundException(NotFoundException):
    def __init__(self, upload_id: str):
        super().__init__(detail=f"Direct upload '{upload_id}' not found.")

class ConflictException(APIException):
    """Exception for duplicate or already-consumed resources."""
    def __init__(self, detail: str):
        super().__init__(status_code=409, detail=detail, code=9409)

class StorageException(APIException):
    """Exception for S3 failures."""
    def __init__(self, detail: str):
        super().__init__(status_code=500, detail=detail, code=9500)

class DynamoDBException(APIException):
    """Exception for DynamoDB failures."""
    def __init__(self, detail: str):
        super().__init__(status_code=500, detail=detail, code=9500)

class ImageProcessingException(APIException):
    """Exception for images that cannot be sniffed, decoded or re-encoded."""
    def __init__(self, detail: str):
        super().__init__(status_code=500, detail=detail, code=9500)

class UnsupportedImageFormatException(ImageProcessingException):
    def __init__(self):
        super().__init__(detail="unsupported or unrecognized image format")

class DeliveryException(APIException):
    """Exception raised while serving /cdn requests; rendered as plain text."""
    def __init__(self, status_code: int, detail: str):
        super().__init__(status_code=status_code, detail=detail, code=status_code)

async def api_exception_handler(request: Request, exc: APIException):
    """Handles API exceptions."""
    if exc.status_code >= 500:
        log.error(f"API Exception: {exc.detail}", exc_info=exc)
    else:
        log.info(f"API Exception: {exc.status_code} {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.code, exc.detail),
    )

async def delivery_exception_handler(request: Request, exc: DeliveryException):
    """Handles delivery exceptions without leaking the failing check."""
    return PlainTextResponse(exc.detail, status_code=exc.status_code)

async def http_exception_handler(request: Request, exc: HTTPException):
    """Handles FastAPI HTTP exceptions."""
    log.info(f"HTTP Exception: {exc.status_code} {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(9000 + exc.status_code, str(exc.detail)),
    )

async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handles request body / query validation failures."""
    errors = exc.errors()
    message = errors[0].get("msg", "invalid request") if errors else "invalid request"
    log.info(f"Validation Exception: {message}")
    return JSONResponse(
        status_code=400,
        content=error_response(9400, f"invalid request: {message}"),
    )

async def generic_exception_handler(request: Request, exc: Exception):
    """Handles all other exceptions."""
    log.error(f"Unhandled Exception: {str(exc)}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content=error_response(9500, "An unexpected error occurred."),
    )

def add_exception_handlers(app):
    """Adds exception handlers to the FastAPI app."""
    app.add_exception_handler(DeliveryException, delivery_exception_handler)
    app.add_exception_handler(APIException, api_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
