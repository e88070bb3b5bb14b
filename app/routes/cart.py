from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.database import get_session
from app.schemas.cart_schemas import CartValidateRequest
from app.services.book_service import validate_cart
from app.utils.file_urls import to_full_url

router = APIRouter()


# The cart itself lives in the browser; this only refreshes its book data
@router.post("/validate")
def validate(payload: CartValidateRequest, session: Session = Depends(get_session)):
    books = validate_cart(session, payload.book_ids)
    return [
        {
            "id": book.id,
            "title": book.title,
            "price": book.price,
            "cover_image": to_full_url(book.cover_image),
            "author": {"id": book.author_id, "name": book.author.name if book.author else None},
        }
        for book in books
    ]
