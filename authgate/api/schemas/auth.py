from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    username: str = Field(..., max_length=255)
    password: str = Field(..., max_length=256)


class GoogleLoginRequest(BaseModel):
    id_token: str = Field(..., max_length=8192)


class AuthUserResponse(BaseModel):
    id: str
    email: str
    display_name: str
    picture_url: str | None
    auth_provider: str


class AuthTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    issued_at: datetime
    expires_at: datetime
    user: AuthUserResponse
