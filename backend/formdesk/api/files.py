"""
Submission file downloads. Only the owner of the form (or a super-admin)
may fetch files attached to its submissions.
"""
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from formdesk.core.logging import storage_logger
from formdesk.core.security import ensure_owner, require_admin
from formdesk.db.database import get_db
from formdesk.db.models import User
from formdesk.services import submissions as submissions_service
from formdesk.storage.local import get_full_path

router = APIRouter(tags=["Files"])


@router.get("/files/{file_id}")
async def download_file(
    file_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    stored = await submissions_service.get_file(db, file_id)
    if not stored:
        raise HTTPException(status_code=404, detail="File not found")

    ensure_owner(current_user, stored.submission.form.creator_id)

    file_path = get_full_path(stored.storage_path)
    if not file_path.exists():
        storage_logger.error("File missing on disk", path=stored.storage_path, file_id=file_id)
        raise HTTPException(status_code=404, detail="File not found on disk")

    return FileResponse(
        path=file_path,
        filename=stored.original_filename,
        media_type=stored.content_type,
    )
