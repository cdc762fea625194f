"""
Account business logic: registration and email/password login.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, select

from skillpath.auth.password import (
    check_needs_rehash,
    hash_password,
    validate_password_strength,
    verify_password,
)
from skillpath.config import get_settings
from skillpath.db.models import User
from skillpath.gamification.levels import LevelCurve
from skillpath.gamification.progression import get_or_create_profile

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    """Fetch a user by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Fetch a user by email (case-insensitive)."""
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
    return result.scalar_one_or_none()


async def register_user(
    db: AsyncSession,
    email: str,
    password: str,
    display_name: str | None = None,
) -> User:
    """
    Register a new user and create their gamification profile.

    Raises:
        PasswordStrengthError: If the password is weak.
        ValueError: If the email already exists.
    """
    validate_password_strength(password, email=email)

    existing = await get_user_by_email(db, email)
    if existing is not None:
        msg = "Email already registered"
        raise ValueError(msg)

    now = datetime.now(timezone.utc)
    user = User(
        email=email.lower().strip(),
        password_hash=hash_password(password),
        display_name=display_name,
        created_at=now,
        last_login=now,
    )
    db.add(user)
    await db.flush()

    # Profile rows are created with the account so leaderboard ties follow signup order
    settings = get_settings()
    await get_or_create_profile(db, user.id, LevelCurve(settings.level_base_xp, settings.level_growth))
    await db.commit()
    logger.info("user_created", user_id=user.id)
    return user


async def authenticate_user(db: AsyncSession, email: str, password: str) -> User:
    """
    Authenticate a user with email + password.

    Raises:
        ValueError: If credentials are invalid.
        PermissionError: If the account is banned.
    """
    user = await get_user_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash):
        msg = "Invalid email or password"
        raise ValueError(msg)

    if user.is_banned:
        msg = "Account is banned"
        raise PermissionError(msg)

    user.last_login = datetime.now(timezone.utc)
    if check_needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
        logger.info("password_rehashed", user_id=user.id)
    await db.commit()
    return user
