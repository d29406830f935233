# app/oauth/schemas.py

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class CheckCodeResponse(BaseModel):
    has_code: bool
    redirect_url: Optional[str] = None


class SaveCodeRequest(BaseModel):
    email: str = ""
    code: str = ""


class ExchangeCodeRequest(SaveCodeRequest):
    pass


class TokenResponse(BaseModel):
    """Body returned by the provider token endpoint"""
    model_config = ConfigDict(extra="ignore")

    access_token: str
    token_type: str = "Bearer"
    expires_in: int = 0
    refresh_token: str = ""


class OAuthTokenResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    code: Optional[str] = None
    token_type: Optional[str] = None
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
