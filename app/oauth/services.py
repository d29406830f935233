# app/oauth/services.py

"""
OAuth2 authorization-code flow against the signing provider.

Authorization codes live in the relational store so they survive restarts;
access and refresh tokens live in the cache with expiries.
"""

from typing import Optional
from urllib.parse import urlencode

import requests
from fastapi import Depends
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import get_db
from app.core.redis import KeyValueCache, get_redis_db
from app.esign.cache import CorrelationRepository
from app.esign.exceptions import (
    ESignValidationException,
    UnauthorizedException,
    UpstreamException,
)
from app.oauth.models import OAuthToken
from app.oauth.repository import OAuthRepository
from app.oauth.schemas import CheckCodeResponse, TokenResponse
from app.utils.logger import get_logger

logger = get_logger(__name__)


def build_auth_url(email: str) -> str:
    """Provider authorization URL; the email round-trips in ``state``"""
    params = {
        "client_id": settings.mekari_oauth2_client_id,
        "response_type": "code",
        "scope": "esign",
        "lang": "id",
        "state": email,
    }
    return f"{settings.mekari_auth_url.rstrip('/')}/auth?{urlencode(params)}"


class OAuthService:
    """Stores and checks authorization codes"""

    def __init__(self, repo: OAuthRepository):
        self.repo = repo

    def check_code(self, email: str) -> CheckCodeResponse:
        if not email:
            raise ESignValidationException("Email is required", field="email")

        token = self.repo.find_by_email(email)
        if token is None or not token.code:
            logger.info("No OAuth code found, returning redirect URL", email=email)
            return CheckCodeResponse(has_code=False, redirect_url=build_auth_url(email))
        return CheckCodeResponse(has_code=True)

    def has_code(self, email: str) -> bool:
        token = self.repo.find_by_email(email)
        return token is not None and bool(token.code)

    def save_code(self, email: str, code: str) -> OAuthToken:
        if not email or not code:
            raise ESignValidationException("Email and code are required")
        return self.repo.save_code(email, code)

    def get_token(self, email: str) -> Optional[OAuthToken]:
        if not email:
            raise ESignValidationException("Email is required", field="email")
        return self.repo.find_by_email(email)


class TokenService:
    """
    Exchanges codes for tokens, refreshes them and hands out a valid access
    token for an email.
    """

    def __init__(
        self,
        repo: OAuthRepository,
        cache: CorrelationRepository,
        session: Optional[requests.Session] = None,
    ):
        self.repo = repo
        self.cache = cache
        self.session = session or requests.Session()
        self.token_url = f"{settings.mekari_sso_base_url.rstrip('/')}/oauth2/token"

    def _request_token(self, body: dict) -> TokenResponse:
        logger.info("Requesting OAuth2 token", url=self.token_url, grant_type=body.get("grant_type"))
        try:
            response = self.session.post(self.token_url, json=body, timeout=settings.mekari_timeout)
        except requests.RequestException as e:
            raise UpstreamException("OAuth2 token", None, str(e)) from e

        logger.info("OAuth2 token response", status_code=response.status_code)
        if response.status_code != 200:
            raise UpstreamException("OAuth2 token", response.status_code, response.text)
        try:
            return TokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.error("Malformed OAuth2 token response", error=str(e))
            raise UpstreamException("OAuth2 token", response.status_code, response.text) from e

    def _store(self, email: str, token: TokenResponse) -> None:
        self.cache.save_tokens(email, token.access_token, token.refresh_token, token.expires_in)
        self.repo.update_tokens(
            email, token.access_token, token.refresh_token, token.token_type, token.expires_in
        )

    def exchange_code(self, email: str, code: str) -> TokenResponse:
        logger.info("Exchanging authorization code for tokens", email=email)
        token = self._request_token({
            "client_id": settings.mekari_oauth2_client_id,
            "client_secret": settings.mekari_oauth2_client_secret,
            "grant_type": "authorization_code",
            "code": code,
        })
        self._store(email, token)
        return token

    def refresh(self, email: str) -> TokenResponse:
        refresh_token = self.cache.get_refresh_token(email)
        if not refresh_token:
            raise UnauthorizedException(email)

        logger.info("Refreshing access token", email=email)
        try:
            token = self._request_token({
                "client_id": settings.mekari_oauth2_client_id,
                "client_secret": settings.mekari_oauth2_client_secret,
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
            })
        except UpstreamException:
            self.invalidate(email)
            raise

        self._store(email, token)
        return token

    def get_access_token(self, email: str) -> str:
        """
        Cached access token, else a refreshed one, else one obtained by
        exchanging the stored authorization code.
        """
        access_token = self.cache.get_access_token(email)
        if access_token:
            return access_token

        logger.info("Access token not found, attempting to refresh", email=email)
        try:
            return self.refresh(email).access_token
        except (UnauthorizedException, UpstreamException) as e:
            logger.info("Refresh failed, attempting to exchange stored code", email=email, error=str(e))

        stored = self.repo.find_by_email(email)
        if stored is None or not stored.code:
            raise UnauthorizedException(email)
        return self.exchange_code(email, stored.code).access_token

    def invalidate(self, email: str) -> None:
        self.cache.delete_tokens(email)
        logger.info("Tokens invalidated", email=email)


def get_oauth_repository(db: Session = Depends(get_db)) -> OAuthRepository:
    """Get OAuth repository"""
    return OAuthRepository(db)


def get_oauth_service(repo: OAuthRepository = Depends(get_oauth_repository)) -> OAuthService:
    return OAuthService(repo)


def get_token_service(
    repo: OAuthRepository = Depends(get_oauth_repository),
    cache: KeyValueCache = Depends(get_redis_db),
) -> TokenService:
    return TokenService(repo, CorrelationRepository(cache))
