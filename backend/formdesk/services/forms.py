"""
Form Definition Service - persistence of form definitions.

Validation and normalization happen in ``formdesk.forms.definition``; this
layer maps normalized definitions onto the Form/FormField tables.
"""
from dataclasses import replace
from typing import Iterable, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from formdesk.core.logging import forms_logger, log_operation
from formdesk.db.models import Form, FormField, Submission, SubmissionFile, User
from formdesk.forms.definition import (
    FieldDefinition,
    FormDefinition,
    apply_update,
    normalize_form,
    reorder,
)
from formdesk.storage.local import delete_file


def to_definition(form: Form) -> FormDefinition:
    return FormDefinition(
        title=form.title,
        description=form.description,
        fields=[
            FieldDefinition(
                id=f.id,
                field_type=f.field_type,
                label=f.label,
                name=f.name,
                is_required=f.is_required,
                order=f.order,
                options=f.options,
                placeholder=f.placeholder,
            )
            for f in sorted(form.fields, key=lambda x: x.order)
        ],
    )


def _apply_field(row: FormField, definition: FieldDefinition) -> None:
    row.field_type = definition.field_type
    row.label = definition.label
    row.name = definition.name
    row.is_required = definition.is_required
    row.order = definition.order
    row.options = definition.options
    row.placeholder = definition.placeholder


def _sync_fields(form: Form, fields: List[FieldDefinition]) -> None:
    """Replace the form's fields, updating retained rows in place."""
    existing = {f.id: f for f in form.fields}
    keep_ids = {d.id for d in fields if d.id in existing}

    for row in list(form.fields):
        if row.id not in keep_ids:
            form.fields.remove(row)

    for definition in fields:
        row = existing.pop(definition.id, None) if definition.id else None
        if row is None:
            row = FormField()
            form.fields.append(row)
        _apply_field(row, definition)

    form.fields.sort(key=lambda f: f.order)


async def get_form(db: AsyncSession, form_id: str) -> Optional[Form]:
    result = await db.execute(
        select(Form).options(selectinload(Form.fields)).where(Form.id == form_id)
    )
    return result.scalar_one_or_none()


async def list_forms(db: AsyncSession, creator_id: str, skip: int = 0, limit: int = 10) -> List[Form]:
    result = await db.execute(
        select(Form)
        .options(selectinload(Form.fields))
        .where(Form.creator_id == creator_id)
        .order_by(Form.created_at.desc(), Form.id)
        .offset(skip)
        .limit(limit)
    )
    return list(result.scalars().all())


@log_operation("create_form", forms_logger)
async def create_form(db: AsyncSession, creator: User, title: Optional[str],
                      description: Optional[str], fields: Iterable) -> Form:
    """Validate and store a new form. Raises FormValidationError."""
    definition = normalize_form(title, description, fields)

    form = Form(
        title=definition.title,
        description=definition.description,
        creator_id=creator.id,
        fields=[],
    )
    _sync_fields(form, [replace(d, id=None) for d in definition.fields])
    db.add(form)
    await db.flush()

    forms_logger.info("Form created", form_id=form.id, fields=len(form.fields))
    return form


@log_operation("update_form", forms_logger)
async def update_form(db: AsyncSession, form: Form, title: Optional[str] = None,
                      description: Optional[str] = None, fields: Optional[Iterable] = None) -> Form:
    """Replace title/description and, when given, the whole field list."""
    definition = apply_update(to_definition(form), title, description, fields)

    form.title = definition.title
    form.description = definition.description
    _sync_fields(form, definition.fields)
    await db.flush()
    return form


async def reorder_field(db: AsyncSession, form: Form, field_id: str, direction: str) -> Form:
    reordered = reorder(to_definition(form).fields, field_id, direction)
    _sync_fields(form, reordered)
    await db.flush()
    return form


@log_operation("delete_form", forms_logger)
async def delete_form(db: AsyncSession, form: Form) -> None:
    """Delete the form together with its submissions and their stored files."""
    result = await db.execute(
        select(SubmissionFile.storage_path)
        .join(Submission, Submission.id == SubmissionFile.submission_id)
        .where(Submission.form_id == form.id)
    )
    paths = [row[0] for row in result.all()]

    await db.delete(form)
    await db.flush()

    for path in paths:
        await delete_file(path)


async def count_submissions(db: AsyncSession, form_id: str) -> int:
    result = await db.execute(
        select(func.count(Submission.id)).where(Submission.form_id == form_id)
    )
    return result.scalar_one()
