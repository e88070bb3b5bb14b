from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse
from sqlmodel import Session, select

from app.database import get_session
from app.dependencies.roles import require_customer
from app.models.book import Book
from app.models.user import User
from app.services import storage_service
from app.services.order_service import has_purchased
from app.utils.file_urls import safe_filename

router = APIRouter()


def _checked_name(filename: str) -> str:
    safe = safe_filename(filename)
    if not safe or safe != filename:
        raise HTTPException(400, "Invalid filename")
    return safe


@router.get("/cover/{filename}")
def get_cover(filename: str):
    path = storage_service.resolve(storage_service.COVERS, _checked_name(filename))
    if not path:
        raise HTTPException(404, "File not found")

    return FileResponse(path, headers={"Cache-Control": "public, max-age=86400"})


@router.get("/book/{filename}")
def get_book_pdf(
    filename: str,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_customer),
):
    name = _checked_name(filename)
    path = storage_service.resolve(storage_service.BOOKS, name)
    if not path:
        raise HTTPException(404, "File not found")

    # Deleted books still resolve so earlier buyers keep access
    book = session.exec(
        select(Book).where(Book.pdf_file == f"uploads/{storage_service.BOOKS}/{name}")
    ).first()
    if not book:
        raise HTTPException(404, "Book not found")

    if not has_purchased(session, current_user.id, book.id):
        raise HTTPException(403, "You have not purchased this book.")

    return FileResponse(
        path,
        media_type="application/pdf",
        filename=name,
        content_disposition_type="inline",
        headers={"Cache-Control": "no-store"},
    )
