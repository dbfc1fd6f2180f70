from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshRequest(BaseModel):
    refresh_token: str


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)
    display_name: str = Field(min_length=2, max_length=50)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class FederatedLoginRequest(BaseModel):
    id_token: str = Field(min_length=1)


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetConfirm(BaseModel):
    token: str
    new_password: str


class SessionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    uid: UUID
    email: EmailStr
    display_name: str
    role: str
    application_status: str
    last_active_at: Optional[datetime] = None


class AuthResult(BaseModel):
    tokens: TokenPair
    session: SessionOut
