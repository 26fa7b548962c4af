from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel, EmailStr
from typing import Optional
from datetime import datetime

from formdesk.db.database import get_db
from formdesk.db.models import User
from formdesk.core.security import create_access_token, get_current_user
from formdesk.services import users as users_service

router = APIRouter()


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    name: str
    is_admin: bool = True


class ChangePasswordRequest(BaseModel):
    old_password: str
    new_password: str


class UserResponse(BaseModel):
    id: str
    email: Optional[str]
    name: str
    is_admin: bool
    is_super_admin: bool
    is_approved: bool
    admin_id: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    # Null while an admin account waits for approval
    access_token: Optional[str]
    token_type: str = "bearer"
    user: UserResponse


def _token_for(user: User) -> str:
    return create_access_token(data={"sub": str(user.id), "email": user.email})


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest, db: AsyncSession = Depends(get_db)):
    user = await users_service.authenticate(db, request.email, request.password)
    return TokenResponse(
        access_token=_token_for(user),
        user=UserResponse.model_validate(user),
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest, db: AsyncSession = Depends(get_db)):
    user = await users_service.register(
        db,
        email=request.email,
        password=request.password,
        name=request.name,
        is_admin=request.is_admin,
    )
    await db.commit()

    return TokenResponse(
        access_token=_token_for(user) if user.is_approved else None,
        user=UserResponse.model_validate(user),
    )


@router.get("/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_user)):
    return current_user


@router.post("/change-password")
async def change_password(
    request: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await users_service.change_password(db, current_user, request.old_password, request.new_password)
    await db.commit()
    return {"message": "Password updated"}
