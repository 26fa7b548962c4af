"""
Form Submission Service - validates, stores and searches submissions.

Submissions are checked against the form's fields before anything is
written: a rejected submission leaves no rows and no files behind.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from fastapi import UploadFile
from sqlalchemy import select, or_, exists
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from formdesk.core.config import settings
from formdesk.core.logging import submissions_logger, log_operation
from formdesk.db.models import FieldValue, Form, Submission, SubmissionFile, User
from formdesk.forms.exceptions import FormValidationError
from formdesk.forms.submission import serialize_values, submitter_errors, validate_submission
from formdesk.storage.local import StorageError, delete_file, read_upload, save_bytes


@dataclass
class SubmissionFilters:
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    field_value_search: Optional[str] = None
    form_id: Optional[str] = None


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _submission_query():
    return select(Submission).options(
        selectinload(Submission.user),
        selectinload(Submission.field_values),
        selectinload(Submission.files),
        selectinload(Submission.form).selectinload(Form.fields),
    )


async def _resolve_submitter(db: AsyncSession, form: Form, user_name: str,
                             user_email: Optional[str]) -> User:
    """Reuse the admin's existing submitter record for this email, or create one."""
    if user_email:
        result = await db.execute(
            select(User).where(
                User.admin_id == form.creator_id,
                User.is_admin.is_(False),
                User.email == user_email,
            )
        )
        user = result.scalars().first()
        if user:
            user.name = user_name
            return user

    user = User(
        name=user_name,
        email=user_email,
        is_admin=False,
        is_approved=True,
        admin_id=form.creator_id,
    )
    db.add(user)
    return user


@log_operation("submit_form", submissions_logger)
async def submit(
    db: AsyncSession,
    form: Form,
    user_name: str,
    user_email: Optional[str],
    values: Dict[str, object],
    uploads: Sequence[Tuple[UploadFile, Optional[str]]] = (),
) -> Submission:
    """Validate and persist one submission.

    ``uploads`` pairs each uploaded file with the id of the field it
    belongs to. Raises FormValidationError before any write.
    """
    errors = submitter_errors(user_name, user_email)

    known_ids = {f.id for f in form.fields}
    uploads = [(upload, str(field_id) if field_id in known_ids else None) for upload, field_id in uploads]

    files_by_field: Dict[str, List[UploadFile]] = {}
    for upload, field_id in uploads:
        if field_id:
            files_by_field.setdefault(str(field_id), []).append(upload)

    result = validate_submission(form.fields, values, files_by_field)
    errors.update(result.errors)

    contents = []
    for upload, field_id in uploads:
        try:
            content, mime_type = await read_upload(upload)
        except StorageError as e:
            errors.setdefault(str(field_id or "files"), str(e))
            continue
        contents.append((upload, field_id, content, mime_type))

    if errors:
        raise FormValidationError(errors, "Submission is invalid")

    submitter = await _resolve_submitter(db, form, user_name.strip(), user_email or None)
    await db.flush()

    submission = Submission(form_id=form.id, user_id=submitter.id, field_values=[], files=[])
    for field_id, value in serialize_values(form.fields, values).items():
        submission.field_values.append(FieldValue(field_id=field_id, value=value))

    written: List[str] = []
    try:
        for upload, field_id, content, mime_type in contents:
            stored = await save_bytes(content, upload.filename or "unnamed", f"forms/{form.id}", mime_type)
            written.append(stored.storage_path)
            file_id = str(uuid.uuid4())
            submission.files.append(SubmissionFile(
                id=file_id,
                field_id=str(field_id) if field_id else None,
                original_filename=upload.filename or stored.filename,
                storage_path=stored.storage_path,
                blob_url=f"{settings.API_PREFIX}/files/{file_id}",
                file_size=stored.size,
                content_type=stored.content_type,
            ))

        db.add(submission)
        await db.flush()
    except Exception:
        for path in written:
            await delete_file(path)
        raise

    submissions_logger.info(
        "Submission stored",
        form_id=form.id,
        submission_id=submission.id,
        values=len(submission.field_values),
        files=len(submission.files),
    )
    return await get_submission(db, submission.id)


async def get_submission(db: AsyncSession, submission_id: str) -> Optional[Submission]:
    result = await db.execute(
        _submission_query().where(Submission.id == submission_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_for_form(db: AsyncSession, form_id: str) -> List[Submission]:
    result = await db.execute(
        _submission_query()
        .where(Submission.form_id == form_id)
        .order_by(Submission.submitted_at.desc())
    )
    return list(result.scalars().all())


async def search(db: AsyncSession, admin_id: str, filters: SubmissionFilters,
                 skip: int = 0, limit: int = 10) -> List[Submission]:
    """Page of submissions to the admin's forms, newest first."""
    query = (
        _submission_query()
        .join(Form, Form.id == Submission.form_id)
        .where(Form.creator_id == admin_id)
    )

    if filters.form_id:
        query = query.where(Submission.form_id == filters.form_id)
    if filters.date_from:
        query = query.where(Submission.submitted_at >= _naive_utc(filters.date_from))
    if filters.date_to:
        query = query.where(Submission.submitted_at <= _naive_utc(filters.date_to))

    if filters.user_name or filters.user_email:
        query = query.join(User, User.id == Submission.user_id)
        if filters.user_name:
            query = query.where(User.name.ilike(f"%{filters.user_name}%"))
        if filters.user_email:
            query = query.where(User.email.ilike(f"%{filters.user_email}%"))

    if filters.field_value_search:
        pattern = f"%{filters.field_value_search}%"
        query = query.where(or_(
            exists().where(
                FieldValue.submission_id == Submission.id,
                FieldValue.value.ilike(pattern),
            ),
            exists().where(
                SubmissionFile.submission_id == Submission.id,
                SubmissionFile.original_filename.ilike(pattern),
            ),
        ))

    query = query.order_by(Submission.submitted_at.desc(), Submission.id).offset(skip).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


async def delete_submission(db: AsyncSession, submission: Submission) -> None:
    paths = [f.storage_path for f in submission.files]
    await db.delete(submission)
    await db.flush()
    for path in paths:
        await delete_file(path)
    submissions_logger.info("Submission deleted", submission_id=submission.id)


async def get_file(db: AsyncSession, file_id: str) -> Optional[SubmissionFile]:
    result = await db.execute(
        select(SubmissionFile)
        .options(selectinload(SubmissionFile.submission).selectinload(Submission.form))
        .where(SubmissionFile.id == file_id)
    )
    return result.scalar_one_or_none()
