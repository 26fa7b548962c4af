"""
Form Builder API

Provides:
- Admin CRUD for forms and their fields
- Public form definition fetch (used by the submission page)
- Field reordering
- Submission counts per form
"""
from datetime import datetime
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from formdesk.core.config import settings
from formdesk.core.security import ensure_owner, require_admin
from formdesk.db.database import get_db
from formdesk.db.models import Form, FormField, User
from formdesk.forms.definition import DOWN, UP
from formdesk.services import forms as forms_service


router = APIRouter(tags=["Forms"])


# ============================================================================
# Pydantic Schemas
# ============================================================================

class FormFieldPayload(BaseModel):
    id: Optional[str] = None
    field_type: Optional[str] = None
    label: Optional[str] = None
    name: Optional[str] = None
    is_required: bool = False
    order: Optional[int] = None
    # JSON array string, or a plain list of options
    options: Optional[Union[str, List[str]]] = None
    placeholder: Optional[str] = None


class FormCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    fields: List[FormFieldPayload] = Field(default_factory=list)


class FormUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    fields: Optional[List[FormFieldPayload]] = None


class FormFieldResponse(BaseModel):
    id: str
    field_type: str
    label: str
    name: str
    is_required: bool
    order: int
    options: Optional[str] = None
    placeholder: Optional[str] = None

    class Config:
        from_attributes = True


class FormResponse(BaseModel):
    id: str
    title: str
    description: Optional[str]
    creator_id: str
    created_at: Optional[datetime]
    updated_at: Optional[datetime] = None
    fields: List[FormFieldResponse] = []

    class Config:
        from_attributes = True


class CountResponse(BaseModel):
    count: int


# ============================================================================
# Helper Functions
# ============================================================================

def _field_to_response(field: FormField) -> FormFieldResponse:
    return FormFieldResponse(
        id=field.id,
        field_type=field.field_type,
        label=field.label,
        name=field.name,
        is_required=field.is_required,
        order=field.order,
        options=field.options,
        placeholder=field.placeholder,
    )


def _form_to_response(form: Form) -> FormResponse:
    return FormResponse(
        id=form.id,
        title=form.title,
        description=form.description,
        creator_id=form.creator_id,
        created_at=form.created_at,
        updated_at=form.updated_at,
        fields=[_field_to_response(f) for f in sorted(form.fields, key=lambda x: x.order)],
    )


async def get_form_or_404(db: AsyncSession, form_id: str) -> Form:
    form = await forms_service.get_form(db, form_id)
    if not form:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Form not found")
    return form


async def get_owned_form(db: AsyncSession, form_id: str, user: User) -> Form:
    form = await get_form_or_404(db, form_id)
    ensure_owner(user, form.creator_id)
    return form


# ============================================================================
# Routes
# ============================================================================

@router.post("/forms", response_model=FormResponse, status_code=status.HTTP_201_CREATED)
async def create_form(
    request: FormCreate,
    creator_id: Optional[str] = Query(None),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Create a form owned by ``creator_id`` (defaults to the caller)."""
    creator_id = creator_id or current_user.id
    ensure_owner(current_user, creator_id)

    creator = current_user
    if creator_id != current_user.id:
        creator = await db.get(User, creator_id)
        if not creator:
            raise HTTPException(status_code=404, detail="Creator not found")

    form = await forms_service.create_form(
        db,
        creator,
        request.title,
        request.description,
        [f.model_dump() for f in request.fields],
    )
    await db.commit()
    return _form_to_response(form)


@router.get("/forms/{form_id}", response_model=FormResponse)
async def get_form(form_id: str, db: AsyncSession = Depends(get_db)):
    """Public: anyone holding the link can load the form to fill it in."""
    form = await get_form_or_404(db, form_id)
    return _form_to_response(form)


@router.put("/forms/{form_id}", response_model=FormResponse)
async def update_form(
    form_id: str,
    request: FormUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    form = await get_owned_form(db, form_id, current_user)
    fields = None
    if request.fields is not None:
        fields = [f.model_dump() for f in request.fields]

    form = await forms_service.update_form(db, form, request.title, request.description, fields)
    await db.commit()
    return _form_to_response(form)


@router.delete("/forms/{form_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_form(
    form_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    form = await get_owned_form(db, form_id, current_user)
    await forms_service.delete_form(db, form)
    await db.commit()


@router.post("/forms/{form_id}/fields/{field_id}/move", response_model=FormResponse)
async def move_field(
    form_id: str,
    field_id: str,
    direction: str = Query(..., pattern=f"^({UP}|{DOWN})$"),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    form = await get_owned_form(db, form_id, current_user)
    if not any(f.id == field_id for f in form.fields):
        raise HTTPException(status_code=404, detail="Field not found")

    form = await forms_service.reorder_field(db, form, field_id, direction)
    await db.commit()
    return _form_to_response(form)


@router.get("/admin/{creator_id}/forms", response_model=List[FormResponse])
async def list_forms(
    creator_id: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    ensure_owner(current_user, creator_id)
    forms = await forms_service.list_forms(db, creator_id, skip=skip, limit=limit)
    return [_form_to_response(f) for f in forms]


@router.get("/forms/{form_id}/submissions/count", response_model=CountResponse)
async def count_submissions(
    form_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await get_owned_form(db, form_id, current_user)
    return CountResponse(count=await forms_service.count_submissions(db, form_id))
