from decimal import Decimal

import pytest
from sqlmodel import Session, SQLModel, create_engine, select

from app.exceptions import (
    AmountMismatchError,
    AuthorizationError,
    GatewayTimeoutError,
    NotFoundError,
    ValidationError,
)
from app.models.author_earning import AuthorEarning
from app.models.order import Order
from app.models.user import User
from app.services.order_service import OrderLedger, has_purchased
from app.services.pricing_service import price_cart
from tests.factories import (
    FakeGateway,
    auth_headers,
    make_author,
    make_book,
    make_coupon,
    make_user,
)


@pytest.fixture
def ledger(session, gateway):
    return OrderLedger(session, gateway, fee_percentage=10)


def cents(value):
    return Decimal(str(value)).quantize(Decimal("0.01"))


def assert_balanced(order):
    breakdown = sum(cents(row.amount) for row in order.earnings)
    assert cents(order.platform_earnings) + cents(order.author_earnings) == cents(order.total_amount)
    assert breakdown == cents(order.author_earnings)


def test_split_is_proportional_to_original_prices(session, ledger):
    customer = make_user(session)
    alice = make_author(session, name="Alice")
    bob = make_author(session, name="Bob")
    a = make_book(session, alice, price=10)
    b = make_book(session, bob, price=30)
    make_coupon(session, code="SAVE20", pct=20)

    order = ledger.create_order(customer, [a.id, b.id], "PAY-1", coupon_code="save20")

    assert order.total_amount == 32.0
    amounts = {row.author_id: row.amount for row in order.earnings}
    # Alice: 10/40 * 32 = 8 -> net 7.20; Bob: 30/40 * 32 = 24 -> net 21.60
    assert amounts == {alice.id: 7.2, bob.id: 21.6}
    assert order.author_earnings == 28.8
    assert order.platform_earnings == 3.2
    assert order.discount_code == "SAVE20"
    assert order.discount_amount == 8.0
    assert_balanced(order)


def test_awkward_amounts_still_balance_to_the_cent(session, ledger):
    customer = make_user(session)
    authors = [make_author(session) for _ in range(3)]
    books = [
        make_book(session, authors[0], price=9.99),
        make_book(session, authors[1], price=4.99),
        make_book(session, authors[2], price=0.01),
    ]
    make_coupon(session, code="ODD", pct=15)

    order = ledger.create_order(customer, [b.id for b in books], "PAY-ODD", coupon_code="ODD")

    assert_balanced(order)
    assert len(order.earnings) == 3


def test_items_record_price_paid(session, ledger):
    customer = make_user(session)
    author = make_author(session)
    a = make_book(session, author, price=10)
    b = make_book(session, author, price=30)
    make_coupon(session, code="SAVE20", pct=20)

    order = ledger.create_order(customer, [a.id, b.id], "PAY-2", coupon_code="SAVE20")

    paid = {item.book_id: item.price_paid for item in order.items}
    assert paid == {a.id: 8.0, b.id: 24.0}
    assert {item.book_id: item.price for item in order.items} == {a.id: 10.0, b.id: 30.0}
    # One author, one breakdown row
    assert len(order.earnings) == 1


def test_verified_amount_matches_preview(session, ledger, gateway):
    customer = make_user(session)
    author = make_author(session)
    ids = [make_book(session, author, price=0.99).id for _ in range(3)]
    make_coupon(session, code="THIRD", pct=33)

    preview = price_cart(session, ids, "THIRD").as_response()
    order = ledger.create_order(customer, ids, "PAY-3", coupon_code="THIRD")

    assert gateway.verified == [("PAY-3", Decimal("1.99"))]
    assert order.total_amount == preview["new_total"]


def test_sales_count_increments_per_line(session, ledger):
    customer = make_user(session)
    author = make_author(session)
    book = make_book(session, author, price=5)

    ledger.create_order(customer, [book.id, book.id], "PAY-4")
    session.refresh(book)

    assert book.sales_count == 2


def test_amount_mismatch_writes_nothing(session, ledger, gateway):
    customer = make_user(session)
    author = make_author(session)
    book = make_book(session, author, price=10)
    gateway.paid_amount = Decimal("1.00")

    with pytest.raises(AmountMismatchError):
        ledger.create_order(customer, [book.id], "PAY-5")

    session.refresh(book)
    assert book.sales_count == 0
    assert session.exec(select(Order)).all() == []
    assert session.exec(select(AuthorEarning)).all() == []


def test_gateway_timeout_writes_nothing(session, ledger, gateway):
    customer = make_user(session)
    author = make_author(session)
    book = make_book(session, author, price=10)
    gateway.error = GatewayTimeoutError("Payment processor did not respond in time")

    with pytest.raises(GatewayTimeoutError):
        ledger.create_order(customer, [book.id], "PAY-6")

    assert session.exec(select(Order)).all() == []


def test_missing_or_deleted_books_are_rejected(session, ledger, gateway):
    customer = make_user(session)
    author = make_author(session)
    live = make_book(session, author, price=10)
    gone = make_book(session, author, price=10, is_deleted=True)

    with pytest.raises(ValidationError) as exc:
        ledger.create_order(customer, [live.id, gone.id], "PAY-7")

    assert exc.value.to_dict()["missing_book_ids"] == [gone.id]
    assert gateway.verified == []


def test_empty_cart_and_zero_total(session, ledger):
    customer = make_user(session)
    author = make_author(session)
    free = make_book(session, author, price=0)

    with pytest.raises(ValidationError):
        ledger.create_order(customer, [], "PAY-8")
    with pytest.raises(ValidationError):
        ledger.create_order(customer, [free.id], "PAY-8")


def test_same_payment_retry_is_idempotent(session, ledger, gateway):
    customer = make_user(session)
    author = make_author(session)
    book = make_book(session, author, price=10)

    first = ledger.create_order(customer, [book.id], "PAY-9")
    second = ledger.create_order(customer, [book.id], "PAY-9")

    assert first.id == second.id
    assert len(gateway.verified) == 1
    session.refresh(book)
    assert book.sales_count == 1


def test_payment_reuse_by_another_customer_fails(session, ledger):
    author = make_author(session)
    book = make_book(session, author, price=10)
    ledger.create_order(make_user(session), [book.id], "PAY-10")

    with pytest.raises(ValidationError):
        ledger.create_order(make_user(session), [book.id], "PAY-10")


def test_retry_after_coupon_and_book_withdrawn_returns_recorded_order(session, ledger, gateway):
    customer = make_user(session)
    author = make_author(session)
    book = make_book(session, author, price=10)
    coupon = make_coupon(session, code="LAUNCH", pct=50)

    first = ledger.create_order(customer, [book.id], "PAY-20", coupon_code="LAUNCH")

    coupon.is_active = False
    session.add(coupon)
    book.is_deleted = True
    session.add(book)
    session.commit()

    second = ledger.create_order(customer, [book.id], "PAY-20", coupon_code="LAUNCH")

    assert second.id == first.id
    assert second.total_amount == 5.0
    assert len(gateway.verified) == 1


class RacingGateway(FakeGateway):
    """Records the same payment from a second session while the first one is verifying."""

    def __init__(self, engine, customer_id, book_ids):
        super().__init__()
        self.engine = engine
        self.customer_id = customer_id
        self.book_ids = book_ids
        self.raced = None

    def verify_order(self, external_order_id, expected_amount):
        result = super().verify_order(external_order_id, expected_amount)
        if self.raced is None:
            with Session(self.engine) as other:
                customer = other.get(User, self.customer_id)
                order = OrderLedger(other, FakeGateway(), fee_percentage=10).create_order(
                    customer, self.book_ids, external_order_id
                )
                self.raced = order.id
        return result


@pytest.fixture
def file_engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'orders.db'}")
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


def test_concurrent_same_payment_records_one_order(file_engine):
    with Session(file_engine) as session:
        customer = make_user(session)
        book = make_book(session, make_author(session), price=10)
        gateway = RacingGateway(file_engine, customer.id, [book.id])

        order = OrderLedger(session, gateway, fee_percentage=10).create_order(
            customer, [book.id], "PAY-21"
        )

        assert order.id == gateway.raced
        orders = session.exec(select(Order).where(Order.payment_id == "PAY-21")).all()
        assert len(orders) == 1
        session.refresh(book)
        assert book.sales_count == 1


def test_concurrent_payment_by_another_customer_fails(file_engine):
    with Session(file_engine) as session:
        first = make_user(session)
        second = make_user(session)
        book = make_book(session, make_author(session), price=10)
        gateway = RacingGateway(file_engine, first.id, [book.id])

        with pytest.raises(ValidationError):
            OrderLedger(session, gateway, fee_percentage=10).create_order(
                second, [book.id], "PAY-22"
            )

        orders = session.exec(select(Order).where(Order.payment_id == "PAY-22")).all()
        assert [o.customer_id for o in orders] == [first.id]


def test_paid_out_follows_payout_model(session, gateway):
    customer = make_user(session)
    author = make_author(session)
    book = make_book(session, author, price=10)

    held = OrderLedger(session, gateway, fee_percentage=10).create_order(customer, [book.id], "PAY-11")
    direct = OrderLedger(
        session, gateway, fee_percentage=10, payouts_direct_to_authors=True
    ).create_order(customer, [book.id], "PAY-12")

    assert [row.paid_out for row in held.earnings] == [False]
    assert [row.paid_out for row in direct.earnings] == [True]
    assert direct.earnings[0].paid_out_at is not None


def test_order_access_rules(session, ledger):
    owner = make_user(session)
    stranger = make_user(session)
    admin = make_user(session, role="admin")
    author = make_author(session)
    book = make_book(session, author, price=10)
    order = ledger.create_order(owner, [book.id], "PAY-13")

    assert ledger.get_order_for_user(order.id, owner).id == order.id
    assert ledger.get_order_for_user(order.id, admin).id == order.id
    with pytest.raises(AuthorizationError):
        ledger.get_order_for_user(order.id, stranger)
    with pytest.raises(NotFoundError):
        ledger.get_order_for_user(9999, owner)


def test_has_purchased_survives_soft_delete(session, ledger):
    customer = make_user(session)
    author = make_author(session)
    book = make_book(session, author, price=10)
    ledger.create_order(customer, [book.id], "PAY-14")

    book.is_deleted = True
    session.add(book)
    session.commit()

    assert has_purchased(session, customer.id, book.id)
    assert not has_purchased(session, make_user(session).id, book.id)


# -------- HTTP --------

def test_create_order_endpoint(client, session, gateway):
    customer = make_user(session)
    author = make_author(session)
    book = make_book(session, author, price=12.5)

    res = client.post(
        "/orders/",
        json={"items": [{"book_id": book.id}], "payment_id": "PAY-HTTP"},
        headers=auth_headers(customer),
    )

    assert res.status_code == 201
    body = res.json()
    assert body["total_amount"] == 12.5
    assert body["customer"]["id"] == customer.id
    assert body["items"][0]["book"]["cover_image"].startswith("http")
    assert body["author_earnings_breakdown"][0]["amount"] == 11.25

    mine = client.get("/orders/my-orders", headers=auth_headers(customer)).json()
    assert [o["id"] for o in mine] == [body["id"]]


def test_create_order_endpoint_amount_mismatch(client, session, gateway):
    customer = make_user(session)
    author = make_author(session)
    book = make_book(session, author, price=10)
    gateway.paid_amount = Decimal("9.00")

    res = client.post(
        "/orders/",
        json={"items": [{"book_id": book.id}], "payment_id": "PAY-BAD"},
        headers=auth_headers(customer),
    )

    assert res.status_code == 400
    assert res.json()["expected"] == "10.00"
    assert res.json()["actual"] == "9.00"
    assert client.get("/orders/my-orders", headers=auth_headers(customer)).json() == []


def test_orders_endpoint_is_customer_only(client, session):
    author = make_author(session)
    res = client.post(
        "/orders/",
        json={"items": [{"book_id": 1}], "payment_id": "PAY-X"},
        headers=auth_headers(author),
    )
    assert res.status_code == 403


def test_paypal_create_order_uses_server_total(client, session, gateway):
    customer = make_user(session)
    author = make_author(session)
    book = make_book(session, author, price=10)
    make_coupon(session, code="SAVE20")

    res = client.post(
        "/paypal/create-order",
        json={"book_ids": [book.id], "discount_code": "SAVE20"},
        headers=auth_headers(customer),
    )

    assert res.status_code == 200
    assert res.json()["order_id"] == "PAYPAL-1"
    assert gateway.created == [Decimal("8.00")]
