# app/schemas/response.py

from typing import Any, Optional

from pydantic import BaseModel


class APIError(BaseModel):
    code: str
    message: str


class APIResponse(BaseModel):
    """Envelope shared by every JSON endpoint."""

    success: bool
    message: str
    data: Optional[Any] = None
    error: Optional[APIError] = None


def success_response(data: Any, message: str) -> dict:
    return APIResponse(success=True, message=message, data=data).model_dump(exclude_none=True)


def error_response(code: str, message: str) -> dict:
    return APIResponse(
        success=False, message=message, error=APIError(code=code, message=message)
    ).model_dump(exclude_none=True)
