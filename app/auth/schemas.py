from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from app.auth.models import Gender
from app.auth.oauth import OAuthProvider
from app.common.schemas import CamelModel


class UserRegister(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=72)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    display_name: Optional[str] = Field(default=None, max_length=200)
    birth_date: Optional[date] = None
    gender: Optional[Gender] = None

    @field_validator("first_name")
    @classmethod
    def strip_first_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("First name is required")
        return v


class UserLogin(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserResponse(CamelModel):
    id: UUID
    email: str
    first_name: str
    last_name: Optional[str] = None
    display_name: Optional[str] = None
    avatar: Optional[str] = None
    birth_date: Optional[date] = None
    gender: Optional[str] = None
    auth_provider: str
    role_id: Optional[UUID] = None
    is_active: bool
    is_blocked: bool
    created_at: datetime


class TokenResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class ForgotPasswordRequest(CamelModel):
    email: EmailStr


class ResetPasswordRequest(CamelModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=72)


class ChangePasswordRequest(CamelModel):
    current_password: str
    new_password: str = Field(..., min_length=6, max_length=72)


class GeneratedPasswordResponse(CamelModel):
    password: str
    length: int


class OAuthCodeRequest(CamelModel):
    code: str = Field(..., min_length=1)
    redirect_uri: Optional[str] = None


class OAuthAccessTokenRequest(CamelModel):
    access_token: str = Field(..., min_length=1)


class UpdateFromProviderRequest(CamelModel):
    provider: OAuthProvider
    access_token: str = Field(..., min_length=1)


class ProviderStatusResponse(CamelModel):
    provider: OAuthProvider
    configured: bool
    callback_url: str
