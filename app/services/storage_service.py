# Local disk storage for book covers and PDFs
import logging
import os
import shutil
import time
from typing import Optional

from fastapi import UploadFile
from slugify import slugify

from app.config import settings
from app.exceptions import ValidationError
from app.utils.file_urls import safe_filename

logger = logging.getLogger(__name__)

COVERS = "covers"
BOOKS = "books"

IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp"}
PDF_EXTENSIONS = {"pdf"}


def folder_path(folder: str) -> str:
    path = os.path.join(settings.UPLOAD_DIR, folder)
    os.makedirs(path, exist_ok=True)
    return path


def _extension(file: UploadFile) -> str:
    name = file.filename or ""
    return name.rsplit(".", 1)[-1].lower() if "." in name else ""


def _save(file: UploadFile, folder: str, title: str, allowed: set) -> str:
    ext = _extension(file)
    if ext not in allowed:
        raise ValidationError(f"Unsupported file type: .{ext or '?'}")

    filename = f"{slugify(title) or 'book'}_{int(time.time() * 1000)}.{ext}"
    target = os.path.join(folder_path(folder), filename)

    with open(target, "wb") as out:
        shutil.copyfileobj(file.file, out)

    logger.info(f"Stored upload {folder}/{filename}")
    return f"uploads/{folder}/{filename}"


def upload_book_cover(file: UploadFile, title: str) -> str:
    return _save(file, COVERS, title, IMAGE_EXTENSIONS)


def upload_book_pdf(file: UploadFile, title: str) -> str:
    return _save(file, BOOKS, title, PDF_EXTENSIONS)


def stored_filename(stored_path: Optional[str]) -> Optional[str]:
    """``uploads/books/x.pdf`` -> ``x.pdf``"""
    if not stored_path:
        return None
    return stored_path.replace("\\", "/").rsplit("/", 1)[-1]


def resolve(folder: str, filename: str) -> Optional[str]:
    """Absolute path of an uploaded file, or None if the name is unsafe or missing."""
    safe = safe_filename(filename)
    if not safe or safe != filename:
        return None
    path = os.path.join(folder_path(folder), safe)
    return path if os.path.isfile(path) else None


def delete_file(stored_path: Optional[str]) -> None:
    name = stored_filename(stored_path)
    if not name:
        return
    folder = BOOKS if name.lower().endswith(".pdf") else COVERS
    path = resolve(folder, name)
    if path:
        try:
            os.remove(path)
        except OSError:
            logger.warning(f"Could not delete {path}")
