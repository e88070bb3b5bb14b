"""Monthly earnings reports rendered as PDF with reportlab."""
import io
import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import Response
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas
from sqlmodel import Session, select

from app.config import settings
from app.constants.order_status import PAYMENT_COMPLETED
from app.exceptions import ValidationError
from app.models.book import Book
from app.models.order import Order
from app.models.order_item import OrderItem
from app.models.user import User
from app.services.billing_service import MAX_PERIOD_YEAR, shift_month
from app.utils.money import to_decimal

HUNDRED = Decimal("100")
MARGIN = 40
ROW_HEIGHT = 16


@dataclass
class SaleLine:
    sale_date: datetime
    book_title: str
    author_id: int
    price_paid: Decimal
    platform_fee: Decimal
    author_net: Decimal


def month_range(year: int, month: int):
    if month < 1 or month > 12 or year < 1 or year > MAX_PERIOD_YEAR:
        raise ValidationError("Invalid year or month")
    next_year, next_month = shift_month(year, month, 1)
    return datetime(year, month, 1), datetime(next_year, next_month, 1)


def collect_sales(
    session: Session,
    year: int,
    month: int,
    fee_percentage: float,
    author_id: Optional[int] = None,
) -> List[SaleLine]:
    start, end = month_range(year, month)
    fee_rate = to_decimal(fee_percentage) / HUNDRED

    query = (
        select(Order, OrderItem, Book)
        .join(OrderItem, OrderItem.order_id == Order.id)
        .join(Book, Book.id == OrderItem.book_id)
        .where(
            Order.payment_status == PAYMENT_COMPLETED,
            Order.created_at >= start,
            Order.created_at < end,
        )
        .order_by(Order.created_at, OrderItem.id)
    )
    if author_id is not None:
        query = query.where(Book.author_id == author_id)

    sales = []
    for order, item, book in session.exec(query).all():
        paid = to_decimal(item.price_paid)
        fee = paid * fee_rate
        sales.append(
            SaleLine(
                sale_date=order.created_at,
                book_title=item.book_title,
                author_id=book.author_id,
                price_paid=paid,
                platform_fee=fee,
                author_net=paid - fee,
            )
        )
    return sales


def _money(value: Decimal) -> str:
    return f"${value:.2f}"


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[: limit - 1] + "…"


def render_earnings_pdf(
    title: str,
    period_label: str,
    sales: List[SaleLine],
    fee_percentage: float,
    author: Optional[User] = None,
    author_names: Optional[dict] = None,
) -> bytes:
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=letter)
    width, height = letter
    show_author = author_names is not None

    columns = [("Date", MARGIN), ("Book", MARGIN + 90)]
    if show_author:
        columns.append(("Author", MARGIN + 270))
    columns += [
        ("Price", width - MARGIN - 170),
        ("Fee", width - MARGIN - 95),
        ("Net", width - MARGIN - 20),
    ]

    def header_row(y):
        c.setFont("Helvetica-Bold", 10)
        for label, x in columns:
            if label in ("Price", "Fee", "Net"):
                c.drawRightString(x + 20, y, label)
            else:
                c.drawString(x, y, label)
        c.line(MARGIN, y - 4, width - MARGIN, y - 4)
        c.setFont("Helvetica", 9)
        return y - ROW_HEIGHT

    y = height - 50
    c.setFont("Helvetica-Bold", 18)
    c.drawCentredString(width / 2, y, f"{settings.STORE_NAME} – {title}")
    y -= 35

    c.setFont("Helvetica", 12)
    if author:
        c.drawString(MARGIN, y, f"Author: {author.name} ({author.email})")
        y -= 18
    c.drawString(MARGIN, y, f"Period: {period_label}")
    y -= 18
    c.drawString(MARGIN, y, f"Platform Fee: {fee_percentage:.2f}%")
    y -= 30

    c.setFont("Helvetica-Bold", 12)
    c.drawString(MARGIN, y, "Sales breakdown:")
    y -= 22

    total_paid = total_fee = total_net = Decimal("0")

    if not sales:
        c.setFont("Helvetica", 11)
        c.drawString(MARGIN, y, "No sales for this period.")
        y -= 20
    else:
        y = header_row(y)
        for sale in sales:
            if y < MARGIN + 80:
                c.showPage()
                y = header_row(height - MARGIN)

            c.drawString(MARGIN, y, sale.sale_date.strftime("%B %d, %Y"))
            c.drawString(MARGIN + 90, y, _truncate(sale.book_title, 32 if show_author else 55))
            if show_author:
                c.drawString(MARGIN + 270, y, _truncate(author_names.get(sale.author_id, "Unknown"), 20))
            c.drawRightString(width - MARGIN - 150, y, _money(sale.price_paid))
            c.drawRightString(width - MARGIN - 75, y, _money(sale.platform_fee))
            c.drawRightString(width - MARGIN, y, _money(sale.author_net))
            y -= ROW_HEIGHT

            total_paid += sale.price_paid
            total_fee += sale.platform_fee
            total_net += sale.author_net

    y -= 10
    c.line(MARGIN, y, width - MARGIN, y)
    y -= 20
    c.setFont("Helvetica-Bold", 12)
    if show_author:
        c.drawString(MARGIN, y, f"Total Gross Sales: {_money(total_paid)}")
        y -= 18
        c.drawString(MARGIN, y, f"Total Platform Fees: {_money(total_fee)}")
        y -= 18
        c.drawString(MARGIN, y, f"Total Net to Authors: {_money(total_net)}")
    else:
        c.drawString(MARGIN, y, f"Total Net Earnings: {_money(total_net)}")

    c.setFont("Helvetica", 8)
    c.drawString(MARGIN, MARGIN, f"{settings.STORE_NAME} is not responsible for your taxes.")
    c.drawString(
        MARGIN,
        MARGIN - 10,
        "Authors are fully responsible for reporting and paying their own taxes.",
    )

    c.save()
    return buffer.getvalue()


def author_report(session: Session, author: User, year: int, month: int, fee_percentage: float):
    sales = collect_sales(session, year, month, fee_percentage, author_id=author.id)
    label = datetime(year, month, 1).strftime("%B %Y")
    pdf = render_earnings_pdf("Monthly Earnings Report", label, sales, fee_percentage, author=author)
    slug = re.sub(r"[^a-z0-9]", "_", author.name.lower())
    return pdf, f"earnings-{slug}-{year}-{month:02d}.pdf"


def platform_report(session: Session, year: int, month: int, fee_percentage: float):
    sales = collect_sales(session, year, month, fee_percentage)
    author_ids = {sale.author_id for sale in sales}
    names = {}
    if author_ids:
        names = {
            u.id: u.name
            for u in session.exec(select(User).where(User.id.in_(author_ids))).all()
        }
    label = datetime(year, month, 1).strftime("%B %Y")
    pdf = render_earnings_pdf(
        "Monthly Platform Earnings", label, sales, fee_percentage, author_names=names
    )
    return pdf, f"platform-earnings-{year}-{month:02d}.pdf"


def pdf_response(pdf: bytes, filename: str) -> Response:
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
