from typing import Literal, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlmodel import Session

from app.database import get_session
from app.dependencies.roles import require_author
from app.models.user import User
from app.services import book_service

router = APIRouter()


@router.get("/")
def list_books(
    genre: Optional[str] = None,
    search: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    sort_by: Literal["newest", "price", "rating", "popularity"] = "newest",
    order: Literal["asc", "desc"] = "desc",
    session: Session = Depends(get_session),
):
    books = book_service.list_catalog(
        session,
        genre=genre,
        search=search,
        min_price=min_price,
        max_price=max_price,
        sort_by=sort_by,
        order=order,
    )
    return [book_service.serialize_book(book) for book in books]


@router.get("/genres/list")
def list_genres(session: Session = Depends(get_session)):
    return book_service.list_genres(session)


@router.get("/featured/bestsellers")
def bestsellers(session: Session = Depends(get_session)):
    return [book_service.serialize_book(b) for b in book_service.bestsellers(session)]


@router.get("/featured/new")
def new_arrivals(session: Session = Depends(get_session)):
    return [book_service.serialize_book(b) for b in book_service.newest(session)]


@router.get("/{book_id}")
def get_book(book_id: int, session: Session = Depends(get_session)):
    return book_service.serialize_book(book_service.get_public_book(session, book_id))


@router.post("/", status_code=status.HTTP_201_CREATED)
def upload_book(
    title: str = Form(...),
    description: str = Form(...),
    genre: str = Form(...),
    price: float = Form(...),
    pdf_file: UploadFile = File(...),
    cover_image: UploadFile = File(...),
    session: Session = Depends(get_session),
    current_user: User = Depends(require_author),
):
    book = book_service.create_book(
        session,
        current_user,
        title=title,
        description=description,
        genre=genre,
        price=price,
        pdf_file=pdf_file,
        cover_image=cover_image,
    )
    return book_service.serialize_owned_book(book)


@router.put("/{book_id}")
def edit_book(
    book_id: int,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    genre: Optional[str] = Form(None),
    price: Optional[float] = Form(None),
    pdf_file: Optional[UploadFile] = File(None),
    cover_image: Optional[UploadFile] = File(None),
    session: Session = Depends(get_session),
    current_user: User = Depends(require_author),
):
    book = book_service.update_book(
        session,
        current_user,
        book_id,
        title=title,
        description=description,
        genre=genre,
        price=price,
        pdf_file=pdf_file,
        cover_image=cover_image,
    )
    return book_service.serialize_owned_book(book)
