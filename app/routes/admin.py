from typing import Optional

from fastapi import APIRouter, Depends
from sqlmodel import Session, select

from app.config import settings
from app.constants.order_status import ROLE_AUTHOR
from app.database import get_session
from app.dependencies.roles import require_admin
from app.dependencies.services import get_order_ledger
from app.models.user import User
from app.schemas.admin_schemas import BlockAuthorRequest, BookStatusUpdate
from app.services import book_service, report_service
from app.services.author_gate import block_author, get_author, serialize_author, unblock_author
from app.services.order_service import OrderLedger, serialize_order
from app.services.payout_service import platform_earnings_total
from app.utils.pagination import paginate

router = APIRouter()


# -------- books --------

@router.get("/books")
def list_books(
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_admin),
):
    return paginate(
        session=session,
        query=book_service.admin_books_query(status),
        page=page,
        limit=limit,
        serialize=book_service.serialize_owned_book,
    )


@router.patch("/books/{book_id}/status")
def update_book_status(
    book_id: int,
    payload: BookStatusUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_admin),
):
    book = book_service.set_book_status(session, book_id, payload.status)
    return book_service.serialize_owned_book(book)


@router.delete("/books/{book_id}")
def delete_book(
    book_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_admin),
):
    book_service.soft_delete_book(session, book_id)
    return {"message": "Book deleted successfully"}


# -------- authors --------

@router.get("/authors")
def list_authors(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_admin),
):
    authors = session.exec(
        select(User).where(User.role == ROLE_AUTHOR).order_by(User.created_at.desc())
    ).all()
    return [serialize_author(a) for a in authors]


@router.patch("/authors/{author_id}/block")
def block(
    author_id: int,
    payload: Optional[BlockAuthorRequest] = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_admin),
):
    author = get_author(session, author_id)
    reason = payload.reason if payload else None
    return serialize_author(block_author(session, author, reason))


@router.patch("/authors/{author_id}/unblock")
def unblock(
    author_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_admin),
):
    author = get_author(session, author_id)
    return serialize_author(unblock_author(session, author))


# -------- orders & earnings --------

@router.get("/orders")
def list_orders(
    ledger: OrderLedger = Depends(get_order_ledger),
    current_user: User = Depends(require_admin),
):
    return [serialize_order(o) for o in ledger.list_all_orders()]


@router.get("/earnings")
def earnings(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_admin),
):
    return platform_earnings_total(session)


# -------- reports --------

@router.get("/reports/authors/{author_id}/{year}/{month}")
def author_report(
    author_id: int,
    year: int,
    month: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_admin),
):
    author = get_author(session, author_id)
    pdf, filename = report_service.author_report(
        session, author, year, month, settings.PLATFORM_FEE_PERCENTAGE
    )
    return report_service.pdf_response(pdf, filename)


@router.get("/reports/monthly/{year}/{month}")
def platform_report(
    year: int,
    month: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_admin),
):
    pdf, filename = report_service.platform_report(
        session, year, month, settings.PLATFORM_FEE_PERCENTAGE
    )
    return report_service.pdf_response(pdf, filename)
