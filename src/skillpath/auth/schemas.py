"""Request/response schemas for authentication endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator


class RegisterRequest(BaseModel):
    """Email registration request."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)
    display_name: str | None = Field(None, min_length=3, max_length=64)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return v.lower().strip()


class LoginRequest(BaseModel):
    """Login with email + password."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return v.lower().strip()


class UserResponse(BaseModel):
    """Public view of the authenticated user."""

    id: int
    email: str
    display_name: str | None = None
    preferred_model: str | None = None
    created_at: datetime | None = None
    last_login: datetime | None = None


class TokenResponse(BaseModel):
    """Token response returned after successful auth."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int = 3600
    user: UserResponse
