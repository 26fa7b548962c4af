"""
Form Submissions API

Public multipart submission endpoint plus the admin views over the
submissions collected by their forms.
"""
import json
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, File, Form as FormParam, HTTPException, Query, UploadFile, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from formdesk.api.forms import FormFieldResponse, _field_to_response, get_form_or_404, get_owned_form
from formdesk.core.config import settings
from formdesk.core.security import ensure_owner, require_admin
from formdesk.db.database import get_db
from formdesk.db.models import Submission, User
from formdesk.forms.exceptions import FormValidationError
from formdesk.services import submissions as submissions_service
from formdesk.services.submissions import SubmissionFilters


router = APIRouter(tags=["Submissions"])


# ============================================================================
# Pydantic Schemas
# ============================================================================

class SubmitterResponse(BaseModel):
    id: str
    name: str
    email: Optional[str]
    is_admin: bool
    admin_id: Optional[str]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class FieldValueResponse(BaseModel):
    id: str
    field_id: str
    value: Optional[str]

    class Config:
        from_attributes = True


class SubmissionFileResponse(BaseModel):
    id: str
    field_id: Optional[str]
    original_filename: str
    blob_url: str
    file_size: int
    content_type: Optional[str]

    class Config:
        from_attributes = True


class SubmissionFormResponse(BaseModel):
    id: str
    title: str
    description: Optional[str]
    fields: List[FormFieldResponse] = []


class SubmissionResponse(BaseModel):
    id: str
    form_id: str
    user_id: Optional[str]
    submitted_at: datetime
    user: Optional[SubmitterResponse] = None
    form: Optional[SubmissionFormResponse] = None
    field_values: List[FieldValueResponse] = []
    files: List[SubmissionFileResponse] = []


class SubmissionSearch(BaseModel):
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    field_value_search: Optional[str] = None
    form_id: Optional[str] = None
    skip: int = 0
    limit: int = settings.DEFAULT_PAGE_SIZE


# ============================================================================
# Helper Functions
# ============================================================================

def _submission_to_response(submission: Submission) -> SubmissionResponse:
    form = submission.form
    return SubmissionResponse(
        id=submission.id,
        form_id=submission.form_id,
        user_id=submission.user_id,
        submitted_at=submission.submitted_at,
        user=SubmitterResponse.model_validate(submission.user) if submission.user else None,
        form=SubmissionFormResponse(
            id=form.id,
            title=form.title,
            description=form.description,
            fields=[_field_to_response(f) for f in sorted(form.fields, key=lambda x: x.order)],
        ) if form else None,
        field_values=[FieldValueResponse.model_validate(v) for v in submission.field_values],
        files=[SubmissionFileResponse.model_validate(f) for f in submission.files],
    )


def _parse_field_values(raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        values = json.loads(raw)
    except ValueError:
        raise FormValidationError({"field_values_json": "Field values must be a JSON object"},
                                  "Submission is invalid")
    if not isinstance(values, dict):
        raise FormValidationError({"field_values_json": "Field values must be a JSON object"},
                                  "Submission is invalid")
    return {str(k): v for k, v in values.items()}


def _pair_files(files: List[UploadFile], raw_mapping: Optional[str]) -> List[Tuple[UploadFile, Optional[str]]]:
    """Pair uploads with field ids.

    The mapping is either ``{"<file index>": "<field id>"}`` or a list of
    field ids in upload order.
    """
    mapping: Dict[str, str] = {}
    if raw_mapping:
        try:
            parsed = json.loads(raw_mapping)
        except ValueError:
            raise FormValidationError({"file_fields_json": "File mapping must be JSON"},
                                      "Submission is invalid")
        if isinstance(parsed, list):
            mapping = {str(i): str(v) for i, v in enumerate(parsed) if v}
        elif isinstance(parsed, dict):
            mapping = {str(k): str(v) for k, v in parsed.items() if v}
    return [(upload, mapping.get(str(index))) for index, upload in enumerate(files)]


async def _search(db: AsyncSession, admin_id: str, current_user: User,
                  filters: SubmissionFilters, skip: int, limit: int) -> List[SubmissionResponse]:
    ensure_owner(current_user, admin_id)
    limit = max(1, min(limit, settings.MAX_PAGE_SIZE))
    submissions = await submissions_service.search(db, admin_id, filters, skip=max(skip, 0), limit=limit)
    return [_submission_to_response(s) for s in submissions]


# ============================================================================
# Routes
# ============================================================================

@router.post("/forms/{form_id}/submit", response_model=SubmissionResponse,
             status_code=status.HTTP_201_CREATED)
async def submit_form(
    form_id: str,
    user_name: str = FormParam(""),
    user_email: Optional[str] = FormParam(None),
    field_values_json: Optional[str] = FormParam(None),
    file_fields_json: Optional[str] = FormParam(None),
    files: List[UploadFile] = File(default=[]),
    db: AsyncSession = Depends(get_db),
):
    """Public: submit a filled-in form. Rejected with 422 before anything is stored."""
    form = await get_form_or_404(db, form_id)
    submission = await submissions_service.submit(
        db,
        form,
        user_name=user_name,
        user_email=(user_email or "").strip() or None,
        values=_parse_field_values(field_values_json),
        uploads=_pair_files(files, file_fields_json),
    )
    await db.commit()
    return _submission_to_response(submission)


@router.get("/forms/{form_id}/submissions", response_model=List[SubmissionResponse])
async def list_form_submissions(
    form_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await get_owned_form(db, form_id, current_user)
    submissions = await submissions_service.list_for_form(db, form_id)
    return [_submission_to_response(s) for s in submissions]


@router.get("/admin/{admin_id}/submissions", response_model=List[SubmissionResponse])
async def list_admin_submissions(
    admin_id: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    user_name: Optional[str] = None,
    user_email: Optional[str] = None,
    field_value_search: Optional[str] = None,
    form_id: Optional[str] = None,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    filters = SubmissionFilters(
        date_from=date_from,
        date_to=date_to,
        user_name=user_name,
        user_email=user_email,
        field_value_search=field_value_search,
        form_id=form_id,
    )
    return await _search(db, admin_id, current_user, filters, skip, limit)


@router.post("/admin/{admin_id}/submissions", response_model=List[SubmissionResponse])
async def search_admin_submissions(
    admin_id: str,
    request: SubmissionSearch,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Same search as the GET variant with the filters in a JSON body."""
    filters = SubmissionFilters(**request.model_dump(exclude={"skip", "limit"}))
    return await _search(db, admin_id, current_user, filters, request.skip, request.limit)


@router.delete("/submissions/{submission_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_submission(
    submission_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    submission = await submissions_service.get_submission(db, submission_id)
    if not submission:
        raise HTTPException(status_code=404, detail="Submission not found")
    ensure_owner(current_user, submission.form.creator_id)

    await submissions_service.delete_submission(db, submission)
    await db.commit()
