"""Authentication router: all /api/v1/auth/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.auth.dependencies import get_current_user
from skillpath.auth.jwt import create_access_token
from skillpath.auth.password import PasswordStrengthError
from skillpath.auth.schemas import LoginRequest, RegisterRequest, TokenResponse, UserResponse
from skillpath.auth.service import authenticate_user, register_user
from skillpath.config import get_settings
from skillpath.database import get_session
from skillpath.db.models import User

router = APIRouter(prefix="/api/v1/auth", tags=["Auth"])


def _user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        display_name=user.display_name,
        preferred_model=user.preferred_model,
        created_at=user.created_at,
        last_login=user.last_login,
    )


def _issue_token(user: User) -> TokenResponse:
    settings = get_settings()
    return TokenResponse(
        access_token=create_access_token(user.id, user.email),
        expires_in=settings.jwt_access_token_expire_minutes * 60,
        user=_user_response(user),
    )


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_session),
) -> TokenResponse:
    """Register with email + password."""
    try:
        user = await register_user(
            db,
            email=body.email,
            password=body.password,
            display_name=body.display_name,
        )
    except PasswordStrengthError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except ValueError as e:
        detail = str(e)
        if "already registered" in detail.lower():
            raise HTTPException(status_code=409, detail=detail) from e
        raise HTTPException(status_code=400, detail=detail) from e

    return _issue_token(user)


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_session),
) -> TokenResponse:
    """Login with email + password."""
    try:
        user = await authenticate_user(db, body.email, body.password)
    except ValueError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e)) from e

    return _issue_token(user)


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)) -> UserResponse:
    """Return the authenticated user."""
    return _user_response(user)
