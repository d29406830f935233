# app/oauth/repository.py

from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.oauth.models import OAuthToken
from app.utils.logger import get_logger

logger = get_logger(__name__)


class OAuthRepository:
    """Data access for oauth_tokens"""

    def __init__(self, db: Session):
        self.db = db

    def find_by_email(self, email: str) -> Optional[OAuthToken]:
        stmt = select(OAuthToken).where(OAuthToken.email == email)
        return self.db.execute(stmt).scalar_one_or_none()

    def save_code(self, email: str, code: str) -> OAuthToken:
        """Insert or update the authorization code for an email"""
        token = self.find_by_email(email)
        if token is None:
            token = OAuthToken(email=email, code=code)
            self.db.add(token)
        else:
            token.code = code
            token.updated_at = datetime.now(timezone.utc)
        self.db.flush()
        logger.info("OAuth code saved", email=email)
        return token

    def update_tokens(
        self,
        email: str,
        access_token: str,
        refresh_token: str,
        token_type: str,
        expires_in: int,
    ) -> None:
        token = self.find_by_email(email)
        if token is None:
            logger.warning("No OAuth record to update tokens on", email=email)
            return
        now = datetime.now(timezone.utc)
        token.access_token = access_token
        token.refresh_token = refresh_token
        token.token_type = token_type
        token.expires_at = now + timedelta(seconds=expires_in)
        token.updated_at = now
        self.db.flush()
