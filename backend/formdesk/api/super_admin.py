"""
Super-admin console: review and approve (or reject) pending admin accounts.
"""
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from formdesk.api.auth import UserResponse
from formdesk.core.security import require_super_admin
from formdesk.db.database import get_db
from formdesk.db.models import User
from formdesk.services import users as users_service

router = APIRouter()


class PendingAdminsResponse(BaseModel):
    admins: List[UserResponse]


class ApprovedAdminResponse(BaseModel):
    user: UserResponse


@router.get("/unapproved-admins", response_model=PendingAdminsResponse)
async def unapproved_admins(
    current_user: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
):
    admins = await users_service.list_unapproved_admins(db)
    return PendingAdminsResponse(admins=[UserResponse.model_validate(a) for a in admins])


@router.post("/admins/{user_id}/approve", response_model=ApprovedAdminResponse)
async def approve_admin(
    user_id: str,
    current_user: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await users_service.approve_admin(db, user_id)
    await db.commit()
    return ApprovedAdminResponse(user=UserResponse.model_validate(user))


@router.post("/admins/{user_id}/reject")
async def reject_admin(
    user_id: str,
    current_user: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
):
    await users_service.reject_admin(db, user_id)
    await db.commit()
    return {"success": True}
