# app/esign/exceptions.py

"""
Custom exceptions for the e-sign bridge.
Every failure the lifecycle can raise derives from ESignBaseException so that
routers can convert them in one place.
"""

from typing import Optional

from fastapi import HTTPException, status


class ESignBaseException(Exception):
    """Base exception for all e-sign bridge errors."""
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ESignValidationException(ESignBaseException):
    """Raised when a request fails validation."""
    code = "BAD_REQUEST"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, {"field": field} if field else {})


class MappingNotFoundException(ESignBaseException):
    """Raised when no correlation mapping is cached for a document or entry number."""
    code = "NOT_FOUND"

    def __init__(
        self,
        document_id: Optional[str] = None,
        entry_no: Optional[int] = None,
        message: Optional[str] = None,
    ):
        if message is None:
            message = (
                f"Document mapping not found for document {document_id}"
                if document_id is not None
                else f"Document mapping not found for entry no {entry_no}"
            )
        super().__init__(message, {"document_id": document_id, "entry_no": entry_no})


class DocumentNotFoundException(ESignBaseException):
    """Raised when no local file matches an invoice number."""
    code = "NOT_FOUND"

    def __init__(self, invoice_number: str, folder: str):
        super().__init__(
            f"Document not found in {folder} for invoice number: {invoice_number}",
            {"invoice_number": invoice_number, "folder": folder},
        )


class DocumentIOException(ESignBaseException):
    """Raised when a local filesystem operation on the document queue fails."""
    code = "IO_ERROR"

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message, {"path": path})


class UpstreamException(ESignBaseException):
    """Raised when the signing provider or the ERP answers with a non-2xx status."""
    code = "UPSTREAM_ERROR"

    def __init__(self, service: str, status_code: Optional[int], body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(
            f"{service} request failed: status={status_code}, body={body}",
            {"service": service, "status_code": status_code},
        )


class UnauthorizedException(ESignBaseException):
    """Raised when the provider rejects the token and a refresh is not possible."""
    code = "UNAUTHORIZED"

    def __init__(self, email: Optional[str] = None):
        super().__init__(
            "unauthorized: token refresh failed, re-authorization required",
            {"email": email},
        )


def convert_to_http_exception(exc: ESignBaseException) -> HTTPException:
    """
    Convert an ESignBaseException to an HTTPException with appropriate status code.

    Args:
        exc: The e-sign exception to convert

    Returns:
        HTTPException with appropriate status code and detail
    """
    if isinstance(exc, ESignValidationException):
        status_code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, (MappingNotFoundException, DocumentNotFoundException)):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, UnauthorizedException):
        status_code = status.HTTP_401_UNAUTHORIZED
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    return HTTPException(
        status_code=status_code,
        detail={"code": exc.code, "message": exc.message, "details": exc.details},
    )
