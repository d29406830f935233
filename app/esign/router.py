# app/esign/router.py

"""
FastAPI routers for signing requests and provider callbacks.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse

from app.esign.exceptions import (
    ESignBaseException,
    ESignValidationException,
    convert_to_http_exception,
)
from app.esign.schemas import GlobalSignRequest, WebhookPayload
from app.esign.services import (
    SignRequestService,
    WebhookService,
    get_sign_request_service,
    get_webhook_service,
)
from app.schemas.response import success_response
from app.utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter(tags=["Esign"], prefix="/api/v1/esign")
webhook_router = APIRouter(tags=["Webhook"], prefix="/webhook")


@router.get("/profile")
def get_profile(
    email: str = Query("", description="Email of the provider account"),
    service: SignRequestService = Depends(get_sign_request_service),
):
    """Profile of the authenticated provider account"""
    try:
        profile = service.get_profile(email)
        return success_response(profile, "Profile retrieved successfully")
    except ESignBaseException as e:
        logger.error("Failed to get profile", email=email, error=e.message)
        raise convert_to_http_exception(e) from e


@router.get("/documents")
def list_documents(
    email: str = Query("", description="Email of the provider account"),
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    service: SignRequestService = Depends(get_sign_request_service),
):
    try:
        documents = service.get_documents(email, page, per_page)
        return success_response(documents, "Documents retrieved successfully")
    except ESignBaseException as e:
        logger.error("Failed to get documents", email=email, error=e.message)
        raise convert_to_http_exception(e) from e


@router.post("/documents/request-sign", status_code=status.HTTP_201_CREATED)
def request_sign(
    request_data: GlobalSignRequest,
    service: SignRequestService = Depends(get_sign_request_service),
):
    """
    Upload the document queued for an invoice number for signing.

    Responds 200 with a redirect URL when the requester still has to authorize
    the application, and 201 once the provider accepted the document.
    """
    try:
        result = service.request_sign(request_data)
    except ESignBaseException as e:
        logger.error(
            "Failed to request global sign",
            invoice_number=request_data.invoice_number,
            entry_no=request_data.entry_no,
            error=e.message,
        )
        raise convert_to_http_exception(e) from e

    if result.need_auth:
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content=success_response(
                {"need_auth": True, "redirect_url": result.redirect_url}, result.message
            ),
        )

    return success_response(result.data.model_dump() if result.data else None, result.message)


@webhook_router.post("/mekari")
@webhook_router.post("/{provider}")
def receive_webhook(
    payload: WebhookPayload,
    provider: str = "mekari",
    service: WebhookService = Depends(get_webhook_service),
):
    """Provider status callback"""
    logger.info("Webhook received", provider=provider, document_id=payload.data.id)
    try:
        summary = service.process(payload)
    except ESignValidationException as e:
        logger.error("Invalid webhook payload", document_id=payload.data.id, error=e.message)
        raise convert_to_http_exception(e) from e
    except ESignBaseException as e:
        # The provider only redelivers on 5xx
        logger.error("Webhook processing failed", document_id=payload.data.id, error=e.message)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"code": "INTERNAL_ERROR", "message": e.message, "details": e.details},
        ) from e

    return success_response(summary, "Webhook processed successfully")
