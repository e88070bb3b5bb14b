import logging
from datetime import datetime
from typing import List, Optional

from fastapi import UploadFile
from sqlalchemy import or_
from sqlmodel import Session, select

from app.constants.order_status import ADMIN_BOOK_STATUSES
from app.exceptions import AuthorizationError, NotFoundError, ValidationError
from app.models.book import Book
from app.models.user import User
from app.services import storage_service
from app.services.author_gate import (
    ensure_can_publish,
    initial_book_status,
    visible_books_query,
)
from app.utils.file_urls import to_full_url

logger = logging.getLogger(__name__)

FEATURED_LIMIT = 10

SORT_COLUMNS = {
    "popularity": Book.sales_count,
    "rating": Book.rating,
    "price": Book.price,
    "newest": Book.created_at,
    "created_at": Book.created_at,
}


def serialize_book(book: Book) -> dict:
    author = book.author
    return {
        "id": book.id,
        "title": book.title,
        "description": book.description,
        "genre": book.genre,
        "price": book.price,
        "author": {"id": author.id, "name": author.name, "email": author.email} if author else None,
        "cover_image": to_full_url(book.cover_image),
        "rating": book.rating,
        "rating_count": book.rating_count,
        "sales_count": book.sales_count,
        "status": book.status,
        "is_deleted": book.is_deleted,
        "created_at": book.created_at,
        "updated_at": book.updated_at,
    }


def serialize_owned_book(book: Book) -> dict:
    """Author and admin views also see the stored PDF path."""
    data = serialize_book(book)
    data["pdf_file"] = to_full_url(book.pdf_file)
    return data


# -------- public catalog --------

def list_catalog(
    session: Session,
    genre: Optional[str] = None,
    search: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    sort_by: str = "newest",
    order: str = "desc",
) -> List[Book]:
    query = visible_books_query()

    if genre:
        query = query.where(Book.genre == genre)

    if search:
        like = f"%{search}%"
        query = query.where(
            or_(Book.title.ilike(like), Book.description.ilike(like), Book.genre.ilike(like))
        )

    if min_price is not None:
        query = query.where(Book.price >= min_price)

    if max_price is not None:
        query = query.where(Book.price <= max_price)

    column = SORT_COLUMNS.get(sort_by, Book.created_at)
    query = query.order_by(column.asc() if order == "asc" else column.desc(), Book.id.desc())

    return session.exec(query).all()


def list_genres(session: Session) -> List[str]:
    books = session.exec(visible_books_query()).all()
    return sorted({book.genre for book in books if book.genre})


def bestsellers(session: Session, limit: int = FEATURED_LIMIT) -> List[Book]:
    return session.exec(
        visible_books_query().order_by(Book.sales_count.desc(), Book.id.desc()).limit(limit)
    ).all()


def newest(session: Session, limit: int = FEATURED_LIMIT) -> List[Book]:
    return session.exec(
        visible_books_query().order_by(Book.created_at.desc(), Book.id.desc()).limit(limit)
    ).all()


def get_public_book(session: Session, book_id: int) -> Book:
    book = session.exec(visible_books_query().where(Book.id == book_id)).first()
    if not book:
        raise NotFoundError("Book not found")
    return book


def validate_cart(session: Session, book_ids: List[int]) -> List[Book]:
    """Current data for the cart's books; unknown and deleted ids drop out."""
    if not book_ids:
        return []
    return session.exec(
        select(Book).where(Book.id.in_(book_ids), Book.is_deleted == False)  # noqa: E712
    ).all()


# -------- author uploads --------

def _check_price(price: float) -> float:
    if price is None or price < 0:
        raise ValidationError("Price must be zero or more")
    return price


def create_book(
    session: Session,
    author: User,
    *,
    title: str,
    description: str,
    genre: str,
    price: float,
    pdf_file: UploadFile,
    cover_image: UploadFile,
) -> Book:
    ensure_can_publish(author)

    if not pdf_file or not cover_image:
        raise ValidationError("PDF file and cover image are required")

    book = Book(
        title=title.strip(),
        description=description,
        genre=genre.strip(),
        price=_check_price(price),
        author_id=author.id,
        pdf_file=storage_service.upload_book_pdf(pdf_file, title),
        cover_image=storage_service.upload_book_cover(cover_image, title),
        status=initial_book_status(author),
    )

    session.add(book)
    session.commit()
    session.refresh(book)

    logger.info(f"Book {book.id} uploaded by author {author.id} ({book.status})")
    return book


def update_book(
    session: Session,
    author: User,
    book_id: int,
    *,
    title: Optional[str] = None,
    description: Optional[str] = None,
    genre: Optional[str] = None,
    price: Optional[float] = None,
    pdf_file: Optional[UploadFile] = None,
    cover_image: Optional[UploadFile] = None,
) -> Book:
    ensure_can_publish(author)

    book = session.get(Book, book_id)
    if not book or book.is_deleted:
        raise NotFoundError("Book not found")

    if book.author_id != author.id:
        raise AuthorizationError("Not authorized to edit this book")

    if title:
        book.title = title.strip()
    if description:
        book.description = description
    if genre:
        book.genre = genre.strip()
    if price is not None:
        book.price = _check_price(price)

    if pdf_file:
        old = book.pdf_file
        book.pdf_file = storage_service.upload_book_pdf(pdf_file, book.title)
        storage_service.delete_file(old)
    if cover_image:
        old = book.cover_image
        book.cover_image = storage_service.upload_book_cover(cover_image, book.title)
        storage_service.delete_file(old)

    book.updated_at = datetime.utcnow()

    session.add(book)
    session.commit()
    session.refresh(book)
    return book


def author_books(session: Session, author: User) -> List[Book]:
    # Deleted books included so authors keep their history
    return session.exec(
        select(Book).where(Book.author_id == author.id).order_by(Book.created_at.desc())
    ).all()


# -------- admin moderation --------

def admin_books_query(status: Optional[str] = None):
    query = select(Book).order_by(Book.created_at.desc(), Book.id.desc())
    if status and status != "all":
        query = query.where(Book.status == status)
    return query


def set_book_status(session: Session, book_id: int, status: str) -> Book:
    if status not in ADMIN_BOOK_STATUSES:
        raise ValidationError("Invalid status")

    book = session.get(Book, book_id)
    if not book:
        raise NotFoundError("Book not found")

    book.status = status
    book.updated_at = datetime.utcnow()
    session.add(book)
    session.commit()
    session.refresh(book)

    logger.info(f"Book {book.id} status set to {status}")
    return book


def soft_delete_book(session: Session, book_id: int) -> Book:
    """Files stay on disk so earlier buyers can still download."""
    book = session.get(Book, book_id)
    if not book:
        raise NotFoundError("Book not found")

    book.is_deleted = True
    book.updated_at = datetime.utcnow()
    session.add(book)
    session.commit()

    logger.info(f"Book {book.id} soft-deleted")
    return book
