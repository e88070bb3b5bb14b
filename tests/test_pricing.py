from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from app.exceptions import CouponNotApplicableError, ExpiredCouponError, NotFoundError
from app.services.pricing_service import price_cart
from tests.factories import make_author, make_book, make_coupon


def test_no_coupon_total_equals_original(session):
    author = make_author(session)
    a = make_book(session, author, price=10)
    b = make_book(session, author, price=5.5)

    pricing = price_cart(session, [a.id, b.id])

    assert pricing.original_total == Decimal("15.5")
    assert pricing.total == pricing.original_total
    assert pricing.discount_amount == 0
    assert not any(item.is_discounted for item in pricing.items)
    assert pricing.coupon is None


def test_twenty_percent_off_ten_dollar_book(session):
    author = make_author(session)
    book = make_book(session, author, price=10)
    make_coupon(session, code="SAVE20", pct=20)

    result = price_cart(session, [book.id], "save20").as_response()

    assert result["original_total"] == 10.0
    assert result["new_total"] == 8.0
    assert result["discount_amount"] == 2.0
    assert result["discount_code"] == "SAVE20"
    assert result["discounted_items"][0]["discounted_price"] == 8.0


def test_duplicate_ids_are_priced_per_line(session):
    author = make_author(session)
    book = make_book(session, author, price=7)

    pricing = price_cart(session, [book.id, book.id])

    assert len(pricing.items) == 2
    assert pricing.original_total == Decimal("14")


def test_unknown_and_deleted_books_reported_missing(session):
    author = make_author(session)
    live = make_book(session, author, price=4)
    gone = make_book(session, author, price=6, is_deleted=True)

    pricing = price_cart(session, [live.id, gone.id, 999])

    assert [item.book_id for item in pricing.items] == [live.id]
    assert pricing.missing_book_ids == [gone.id, 999]
    assert pricing.total == Decimal("4")


def test_author_scoped_coupon_discounts_only_that_authors_books(session):
    alice = make_author(session, name="Alice")
    bob = make_author(session, name="Bob")
    mine = make_book(session, alice, price=10)
    theirs = make_book(session, bob, price=20)
    make_coupon(session, code="ALICE50", pct=50, scope="author", author=alice)

    pricing = price_cart(session, [mine.id, theirs.id], "ALICE50")

    by_book = {item.book_id: item for item in pricing.items}
    assert by_book[mine.id].discounted_price == Decimal("5")
    assert by_book[mine.id].is_discounted
    assert by_book[theirs.id].discounted_price == Decimal("20")
    assert not by_book[theirs.id].is_discounted
    assert pricing.total == Decimal("25")
    assert pricing.discount_amount == Decimal("5")


def test_author_scoped_coupon_without_that_author_fails(session):
    alice = make_author(session, name="Alice")
    bob = make_author(session, name="Bob")
    theirs = make_book(session, bob, price=20)
    make_coupon(session, code="ALICE50", pct=50, scope="author", author=alice)

    with pytest.raises(CouponNotApplicableError) as exc:
        price_cart(session, [theirs.id], "ALICE50")

    assert "Alice" in exc.value.message
    assert exc.value.to_dict()["reason"] == "author_scope_mismatch"


def test_unknown_coupon_is_not_found(session):
    author = make_author(session)
    book = make_book(session, author)

    with pytest.raises(NotFoundError):
        price_cart(session, [book.id], "NOPE")


def test_expired_coupon_is_rejected(session):
    author = make_author(session)
    book = make_book(session, author)
    make_coupon(session, code="OLD", valid_to=datetime.utcnow() - timedelta(days=1))

    with pytest.raises(ExpiredCouponError):
        price_cart(session, [book.id], "OLD")


def test_full_discount_never_goes_negative(session):
    author = make_author(session)
    book = make_book(session, author, price=12.34)
    make_coupon(session, code="FREE", pct=100)

    pricing = price_cart(session, [book.id], "FREE")

    assert pricing.total == 0
    assert pricing.discount_amount == Decimal("12.34")


def test_rounding_happens_once_at_the_boundary(session):
    author = make_author(session)
    ids = [make_book(session, author, price=0.99).id for _ in range(3)]
    make_coupon(session, code="THIRD", pct=33)

    pricing = price_cart(session, ids, "THIRD")
    result = pricing.as_response()

    # 3 * 0.6633 = 1.9899 -> 1.99; per-item rounding would give 3 * 0.66 = 1.98
    assert result["new_total"] == 1.99
    assert result["original_total"] == 2.97
    assert result["discount_amount"] == 0.98


def test_pricing_does_not_write(session):
    author = make_author(session)
    book = make_book(session, author, price=10)
    make_coupon(session, code="SAVE20")

    price_cart(session, [book.id], "SAVE20")
    session.refresh(book)

    assert book.sales_count == 0
    assert book.price == 10
