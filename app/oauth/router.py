# app/oauth/router.py

"""
OAuth2 endpoints: authorization redirect, provider callback, code storage and
token management.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse

from app.esign.exceptions import ESignBaseException, convert_to_http_exception
from app.oauth.schemas import ExchangeCodeRequest, OAuthTokenResponse, SaveCodeRequest
from app.oauth.services import (
    OAuthService,
    TokenService,
    get_oauth_service,
    get_token_service,
)
from app.schemas.response import success_response
from app.utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter(tags=["OAuth"], prefix="/api/v1/oauth")
callback_router = APIRouter(tags=["OAuth"])


def _bad_request(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"code": "BAD_REQUEST", "message": message},
    )


@callback_router.get("/redirect/oauth")
def oauth_callback(
    code: str = Query(""),
    state: str = Query("", description="Email passed through the authorization request"),
    locale: str = Query(""),
    oauth_service: OAuthService = Depends(get_oauth_service),
):
    """Provider redirects here after the user authorized the application"""
    logger.info("OAuth callback received", state=state, locale=locale)
    if not code:
        raise _bad_request("Authorization code is required")
    if not state:
        raise _bad_request("State (email) is required")

    try:
        oauth_service.save_code(state, code)
    except ESignBaseException as e:
        raise convert_to_http_exception(e) from e

    return success_response(
        {"email": state, "code": code, "locale": locale}, "OAuth code saved successfully"
    )


@router.get("/check")
def check_code(
    email: str = Query(""),
    oauth_service: OAuthService = Depends(get_oauth_service),
):
    try:
        result = oauth_service.check_code(email)
    except ESignBaseException as e:
        raise convert_to_http_exception(e) from e

    message = "OAuth code exists" if result.has_code else "No OAuth code found. Please authorize."
    return success_response(result.model_dump(exclude_none=True), message)


@router.get("/authorize")
def authorize(
    email: str = Query(""),
    oauth_service: OAuthService = Depends(get_oauth_service),
):
    """Redirect to the provider consent page unless a code is already stored"""
    try:
        result = oauth_service.check_code(email)
    except ESignBaseException as e:
        raise convert_to_http_exception(e) from e

    if not result.has_code:
        logger.info("Redirecting to provider OAuth", email=email)
        return RedirectResponse(result.redirect_url, status_code=status.HTTP_302_FOUND)
    return success_response(result.model_dump(exclude_none=True), "OAuth code already exists")


@router.post("/save-code")
def save_code(
    request_data: SaveCodeRequest,
    oauth_service: OAuthService = Depends(get_oauth_service),
):
    try:
        oauth_service.save_code(request_data.email, request_data.code)
    except ESignBaseException as e:
        raise convert_to_http_exception(e) from e
    return success_response({"email": request_data.email}, "OAuth code saved successfully")


@router.post("/exchange")
def exchange_code(
    request_data: ExchangeCodeRequest,
    oauth_service: OAuthService = Depends(get_oauth_service),
    token_service: TokenService = Depends(get_token_service),
):
    if not request_data.email:
        raise _bad_request("Email is required")
    if not request_data.code:
        raise _bad_request("Code is required")

    try:
        oauth_service.save_code(request_data.email, request_data.code)
        token = token_service.exchange_code(request_data.email, request_data.code)
    except ESignBaseException as e:
        logger.error("Failed to exchange code for tokens", email=request_data.email, error=e.message)
        raise convert_to_http_exception(e) from e

    return success_response(
        {
            "email": request_data.email,
            "access_token": token.access_token,
            "token_type": token.token_type,
            "expires_in": token.expires_in,
        },
        "Code exchanged for tokens successfully",
    )


@router.post("/refresh")
def refresh_token(
    email: str = Query(""),
    token_service: TokenService = Depends(get_token_service),
):
    if not email:
        raise _bad_request("Email is required")

    try:
        token = token_service.refresh(email)
    except ESignBaseException as e:
        logger.error("Failed to refresh token", email=email, error=e.message)
        raise convert_to_http_exception(e) from e

    return success_response(
        {
            "email": email,
            "access_token": token.access_token,
            "token_type": token.token_type,
            "expires_in": token.expires_in,
        },
        "Token refreshed successfully",
    )


@router.get("/token")
def get_token(
    email: str = Query(""),
    oauth_service: OAuthService = Depends(get_oauth_service),
):
    try:
        token = oauth_service.get_token(email)
    except ESignBaseException as e:
        raise convert_to_http_exception(e) from e

    if token is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "NOT_FOUND", "message": "OAuth token not found for this email"},
        )
    return success_response(
        OAuthTokenResponse.model_validate(token).model_dump(mode="json"),
        "OAuth token retrieved successfully",
    )
