import pytest

from formdesk.storage.local import (
    IMAGE_MIME_TYPES,
    StorageError,
    check_content_type,
    check_size,
    delete_file,
    get_full_path,
    new_storage_path,
    sanitize_filename,
    save_bytes,
)


@pytest.mark.parametrize("raw, expected", [
    ("report.pdf", "report.pdf"),
    ("../../etc/passwd", "passwd"),
    ("C:\\Users\\me\\photo.jpg", "photo.jpg"),
    ("archive.tar.gz", "archive_tar.gz"),
    ("my file (1).txt", "my_file__1_.txt"),
    ("", "unnamed_file"),
    ("...", "unnamed_file"),
])
def test_sanitize_filename(raw, expected):
    assert sanitize_filename(raw) == expected


def test_blocked_extension_wins_over_content_type():
    with pytest.raises(StorageError):
        check_content_type("invoice.pdf.exe", "application/pdf")


def test_content_type_falls_back_to_extension():
    assert check_content_type("notes.txt", "application/octet-stream") == "text/plain"
    assert check_content_type("data.csv", None) == "text/csv"


def test_images_only_policy():
    assert check_content_type("me.png", "image/png", IMAGE_MIME_TYPES) == "image/png"
    with pytest.raises(StorageError):
        check_content_type("notes.txt", "text/plain", IMAGE_MIME_TYPES)


def test_size_limits(monkeypatch):
    from formdesk.core.config import settings

    monkeypatch.setattr(settings, "MAX_UPLOAD_MB", 1)
    check_size(1024)
    with pytest.raises(StorageError):
        check_size(0)
    with pytest.raises(StorageError):
        check_size(1024 * 1024 + 1)


def test_storage_path_layout():
    path = new_storage_path("Receipt.pdf", "forms/abc")
    folder, day, name = path.split("/")[1:]
    assert path.startswith("forms/abc/")
    assert len(day) == 8 and day.isdigit()
    assert name.startswith("Receipt_") and name.endswith(".pdf")
    assert folder == "abc"


def test_paths_cannot_escape_upload_root():
    with pytest.raises(StorageError):
        get_full_path("../outside.txt")


@pytest.mark.anyio
async def test_save_and_delete(upload_dir):
    stored = await save_bytes(b"hello", "notes.txt", "forms/f1", "text/plain")
    full_path = get_full_path(stored.storage_path)
    assert full_path.read_bytes() == b"hello"
    assert upload_dir in full_path.parents
    assert stored.size == 5

    assert await delete_file(stored.storage_path) is True
    assert not full_path.exists()
    assert await delete_file(stored.storage_path) is False
