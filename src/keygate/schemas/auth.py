"""Auth schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class AdminLoginRequest(BaseModel):
    username: str
    password: str


class UserLoginRequest(BaseModel):
    email: str
    key: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime


class AuthCheckResponse(BaseModel):
    authenticated: bool
    email: str | None = None
    plan_tier: str | None = None


class MessageResponse(BaseModel):
    message: str
