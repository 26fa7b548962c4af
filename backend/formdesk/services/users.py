"""
User Service - registration, admin approval and account settings.
"""
import json
from typing import List, Optional

from fastapi import HTTPException, UploadFile, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from formdesk.core.config import settings
from formdesk.core.logging import auth_logger, log_operation
from formdesk.core.security import get_password_hash, verify_password
from formdesk.db.models import User
from formdesk.storage.local import IMAGE_MIME_TYPES, delete_file, save_upload_file

NOTIFICATION_FIELDS = (
    "telegram_chat_id",
    "telegram_notifications_enabled",
    "email_notifications_enabled",
    "notification_preferences",
)


async def get_user(db: AsyncSession, user_id: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_account_by_email(db: AsyncSession, email: str) -> Optional[User]:
    """Accounts are users with a password; submitters share emails freely."""
    result = await db.execute(
        select(User).where(User.email == email, User.hashed_password.isnot(None))
    )
    return result.scalars().first()


@log_operation("register", auth_logger)
async def register(db: AsyncSession, email: str, password: str, name: str,
                   is_admin: bool = True) -> User:
    if await get_account_by_email(db, email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        )

    user = User(
        email=email,
        name=name.strip() or email,
        hashed_password=get_password_hash(password),
        is_admin=is_admin,
        # Admin accounts wait for a super-admin
        is_approved=not is_admin,
    )
    db.add(user)
    await db.flush()
    auth_logger.info("User registered", user_id=user.id, is_admin=is_admin, approved=user.is_approved)
    return user


async def authenticate(db: AsyncSession, email: str, password: str) -> User:
    user = await get_account_by_email(db, email)
    if not user or not verify_password(password, user.hashed_password):
        auth_logger.warning("Login failed", email=email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
        )
    if user.is_admin and not user.is_approved and not user.is_super_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is pending approval",
        )
    return user


async def change_password(db: AsyncSession, user: User, old_password: str, new_password: str) -> None:
    if not verify_password(old_password, user.hashed_password):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    if len(new_password) < 6:
        raise HTTPException(status_code=400, detail="New password must be at least 6 characters")
    user.hashed_password = get_password_hash(new_password)
    await db.flush()
    auth_logger.info("Password changed", user_id=user.id)


async def list_unapproved_admins(db: AsyncSession) -> List[User]:
    result = await db.execute(
        select(User)
        .where(User.is_admin.is_(True), User.is_approved.is_(False), User.is_super_admin.is_(False))
        .order_by(User.created_at)
    )
    return list(result.scalars().all())


async def _pending_admin(db: AsyncSession, user_id: str) -> User:
    user = await get_user(db, user_id)
    if not user or not user.is_admin:
        raise HTTPException(status_code=404, detail="Admin not found")
    return user


@log_operation("approve_admin", auth_logger)
async def approve_admin(db: AsyncSession, user_id: str) -> User:
    user = await _pending_admin(db, user_id)
    user.is_approved = True
    await db.flush()
    return user


@log_operation("reject_admin", auth_logger)
async def reject_admin(db: AsyncSession, user_id: str) -> None:
    """Rejecting deletes the pending account; approved admins stay."""
    user = await _pending_admin(db, user_id)
    if user.is_approved:
        raise HTTPException(status_code=400, detail="Admin is already approved")
    await db.delete(user)
    await db.flush()


async def seed_super_admin(db: AsyncSession) -> Optional[User]:
    """Create the configured super-admin if it does not exist yet."""
    if not settings.SUPER_ADMIN_EMAIL or not settings.SUPER_ADMIN_PASSWORD:
        return None

    user = await get_account_by_email(db, settings.SUPER_ADMIN_EMAIL)
    if user:
        if not user.is_super_admin:
            user.is_super_admin = True
            user.is_admin = True
            user.is_approved = True
            await db.flush()
        auth_logger.info("Super admin already exists", email=user.email)
        return user

    user = User(
        email=settings.SUPER_ADMIN_EMAIL,
        name=settings.SUPER_ADMIN_NAME,
        hashed_password=get_password_hash(settings.SUPER_ADMIN_PASSWORD),
        is_admin=True,
        is_super_admin=True,
        is_approved=True,
    )
    db.add(user)
    await db.flush()
    auth_logger.info("Created super admin", email=user.email)
    return user


async def update_email(db: AsyncSession, user: User, email: str) -> User:
    existing = await get_account_by_email(db, email)
    if existing and existing.id != user.id:
        raise HTTPException(status_code=400, detail="Email already registered")
    user.email = email
    await db.flush()
    return user


def notification_settings(user: User) -> dict:
    preferences = None
    if user.notification_preferences:
        try:
            preferences = json.loads(user.notification_preferences)
        except ValueError:
            auth_logger.warning("Unreadable notification preferences", user_id=user.id)
    return {
        "telegram_chat_id": user.telegram_chat_id,
        "telegram_notifications_enabled": bool(user.telegram_notifications_enabled),
        "email_notifications_enabled": bool(user.email_notifications_enabled),
        "notification_preferences": preferences,
    }


async def update_notification_settings(db: AsyncSession, user: User, changes: dict) -> dict:
    """Apply only the keys present in ``changes``."""
    for key, value in changes.items():
        if key not in NOTIFICATION_FIELDS:
            continue
        if key == "notification_preferences":
            value = json.dumps(value) if value is not None else None
        setattr(user, key, value)
    await db.flush()
    return notification_settings(user)


async def update_avatar(db: AsyncSession, user: User, file: UploadFile) -> User:
    stored = await save_upload_file(file, f"avatars/{user.id}", allowed=IMAGE_MIME_TYPES)
    old_path = user.avatar_path
    user.avatar_path = stored.storage_path
    user.avatar_url = f"{settings.API_PREFIX}/users/{user.id}/avatar"
    await db.flush()
    if old_path:
        await delete_file(old_path)
    return user
