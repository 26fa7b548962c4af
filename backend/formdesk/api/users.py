from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel, EmailStr
from typing import Any, Dict, Optional

from formdesk.db.database import get_db
from formdesk.db.models import User
from formdesk.core.security import ensure_owner, get_current_user
from formdesk.services import users as users_service
from formdesk.storage.local import StorageError, get_full_path

router = APIRouter()


class EmailUpdateRequest(BaseModel):
    email: EmailStr


class EmailResponse(BaseModel):
    email: str


class AvatarResponse(BaseModel):
    avatar_url: str


class NotificationSettings(BaseModel):
    telegram_chat_id: Optional[str] = None
    telegram_notifications_enabled: bool = False
    email_notifications_enabled: bool = False
    notification_preferences: Optional[Dict[str, Any]] = None


class NotificationSettingsUpdate(BaseModel):
    telegram_chat_id: Optional[str] = None
    telegram_notifications_enabled: Optional[bool] = None
    email_notifications_enabled: Optional[bool] = None
    notification_preferences: Optional[Dict[str, Any]] = None


async def _get_self(user_id: str, current_user: User, db: AsyncSession) -> User:
    ensure_owner(current_user, user_id)
    if user_id == current_user.id:
        return current_user
    user = await users_service.get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.put("/{user_id}", response_model=EmailResponse)
async def update_user(
    user_id: str,
    request: EmailUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await _get_self(user_id, current_user, db)
    user = await users_service.update_email(db, user, request.email)
    await db.commit()
    return EmailResponse(email=user.email)


@router.post("/{user_id}/avatar", response_model=AvatarResponse)
async def upload_avatar(
    user_id: str,
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await _get_self(user_id, current_user, db)
    try:
        user = await users_service.update_avatar(db, user, file)
    except StorageError as e:
        raise HTTPException(status_code=400, detail=str(e))
    await db.commit()
    return AvatarResponse(avatar_url=user.avatar_url)


@router.get("/{user_id}/avatar")
async def get_avatar(user_id: str, db: AsyncSession = Depends(get_db)):
    user = await users_service.get_user(db, user_id)
    if not user or not user.avatar_path:
        raise HTTPException(status_code=404, detail="Avatar not found")
    path = get_full_path(user.avatar_path)
    if not path.exists():
        raise HTTPException(status_code=404, detail="Avatar not found")
    return FileResponse(path=path)


@router.get("/{user_id}/notification-settings", response_model=NotificationSettings)
async def get_notification_settings(
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await _get_self(user_id, current_user, db)
    return users_service.notification_settings(user)


@router.put("/{user_id}/notification-settings", response_model=NotificationSettings)
async def update_notification_settings(
    user_id: str,
    request: NotificationSettingsUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await _get_self(user_id, current_user, db)
    updated = await users_service.update_notification_settings(
        db, user, request.model_dump(exclude_unset=True)
    )
    await db.commit()
    return updated
