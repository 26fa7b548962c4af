"""
Local disk storage for submission attachments and avatars.

Files live under ``settings.UPLOAD_DIR`` at
``<folder>/<YYYYMMDD>/<safe name>_<random><ext>``. Uploads are checked
(blocked extension, content type, size) before a single byte is written,
so callers can validate a whole submission first and store afterwards.
"""
import mimetypes
import re
import unicodedata
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path, PurePath
from typing import Iterable, Optional, Tuple

import aiofiles
from fastapi import UploadFile

from formdesk.core.config import settings
from formdesk.core.logging import storage_logger


class StorageError(ValueError):
    """Upload rejected by storage policy (type, size, empty file)."""


IMAGE_MIME_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})

OFFICE_MIME_TYPES = frozenset({
    "application/msword",
    "application/vnd.ms-excel",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
})

ATTACHMENT_MIME_TYPES = IMAGE_MIME_TYPES | OFFICE_MIME_TYPES | frozenset({
    "application/pdf", "application/json", "application/zip", "application/x-zip-compressed",
    "text/plain", "text/csv", "text/markdown",
})

# Executables, scripts and anything a browser would render as active content
BLOCKED_EXTENSIONS = frozenset(
    ".exe .bat .cmd .com .msi .scr .dll .sys .drv "
    ".ps1 .vbs .js .jse .wsf .wsh .sh .bash .csh .ksh "
    ".py .pyw .rb .pl .php .app .dmg .pkg .deb .rpm "
    ".svg .html .htm".split()
)

PLAIN_TEXT_EXTENSIONS = frozenset({".txt", ".log", ".md"})

MAX_NAME_LENGTH = 200


@dataclass
class StoredFile:
    filename: str
    storage_path: str
    size: int
    content_type: str


def sanitize_filename(filename: Optional[str]) -> str:
    """Reduce a client-supplied name to a safe basename.

    Directory parts and control characters are dropped, anything outside
    ``[A-Za-z0-9_.-]`` becomes ``_`` and only the last dot survives, so
    ``../../x.tar.gz`` comes back as ``x_tar.gz``.
    """
    name = PurePath((filename or "").replace("\\", "/")).name
    name = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    name = re.sub(r"[^A-Za-z0-9_.-]", "_", name)

    stem, dot, ext = name.rpartition(".")
    if dot and stem:
        name = f"{stem.replace('.', '_')}.{ext}"

    if len(name) > MAX_NAME_LENGTH:
        suffix = Path(name).suffix
        name = name[:MAX_NAME_LENGTH - len(suffix)] + suffix

    if not name.strip("._"):
        return "unnamed_file"
    return name


def _extension(filename: str) -> str:
    return Path(filename.lower()).suffix


def check_content_type(filename: str, content_type: Optional[str],
                       allowed: Optional[Iterable[str]] = None) -> str:
    """Return the MIME type to store the file under, or raise StorageError."""
    allowed = frozenset(allowed) if allowed else ATTACHMENT_MIME_TYPES
    ext = _extension(filename)
    if ext in BLOCKED_EXTENSIONS:
        raise StorageError(f"File type '{ext}' is not allowed for security reasons")

    candidates = [content_type, mimetypes.guess_type(filename)[0]]
    if ext in PLAIN_TEXT_EXTENSIONS:
        candidates.append("text/plain")
    for candidate in candidates:
        if candidate and candidate in allowed:
            return candidate

    raise StorageError(f"File type '{content_type or ext or 'unknown'}' is not allowed")


def check_size(size: int) -> None:
    if size == 0:
        raise StorageError("Empty files are not allowed")
    if size > settings.MAX_UPLOAD_MB * 1024 * 1024:
        raise StorageError(f"File too large. Maximum size is {settings.MAX_UPLOAD_MB}MB")


def new_storage_path(original_filename: str, folder: str) -> str:
    safe = Path(sanitize_filename(original_filename))
    day = datetime.utcnow().strftime("%Y%m%d")
    return f"{folder.strip('/')}/{day}/{safe.stem}_{uuid.uuid4().hex[:12]}{safe.suffix}"


def get_full_path(storage_path: str) -> Path:
    """Absolute path for a stored file; refuses anything outside the upload root."""
    root = Path(settings.UPLOAD_DIR).resolve()
    full_path = (root / storage_path).resolve()
    if root not in full_path.parents:
        raise StorageError("Invalid storage path")
    return full_path


async def read_upload(file: UploadFile, allowed: Optional[Iterable[str]] = None) -> Tuple[bytes, str]:
    """Read and check an upload without writing anything."""
    mime_type = check_content_type(file.filename or "", file.content_type, allowed)
    content = await file.read()
    check_size(len(content))
    return content, mime_type


async def save_bytes(content: bytes, original_filename: str, folder: str, content_type: str) -> StoredFile:
    storage_path = new_storage_path(original_filename, folder)
    full_path = get_full_path(storage_path)
    full_path.parent.mkdir(parents=True, exist_ok=True)

    async with aiofiles.open(full_path, "wb") as out:
        await out.write(content)

    storage_logger.debug("Stored file", path=storage_path, size=len(content))
    return StoredFile(
        filename=sanitize_filename(original_filename),
        storage_path=storage_path,
        size=len(content),
        content_type=content_type,
    )


async def save_upload_file(file: UploadFile, folder: str,
                           allowed: Optional[Iterable[str]] = None) -> StoredFile:
    content, mime_type = await read_upload(file, allowed)
    return await save_bytes(content, file.filename or "", folder, mime_type)


async def delete_file(storage_path: str) -> bool:
    """Remove a stored file. False when it was already gone."""
    full_path = get_full_path(storage_path)
    try:
        full_path.unlink()
    except FileNotFoundError:
        storage_logger.warning("Stored file already missing", path=storage_path)
        return False
    return True
