from datetime import datetime
from decimal import Decimal

import pytest
from sqlmodel import select

from app.exceptions import ValidationError
from app.models.platform_fee_status import PlatformFeeStatus
from app.services.billing_service import (
    AnniversaryCycleStrategy,
    BillingCycleEngine,
    BillingState,
    CalendarMonthStrategy,
    calc_fee_from_net,
    get_period_strategy,
)
from app.services.order_service import OrderLedger
from app.utils.money import quantize
from tests.factories import make_author, make_book, make_user


def engine_for(session, strategy=None, trial_days=30):
    return BillingCycleEngine(
        session,
        fee_percentage=10,
        trial_days=trial_days,
        strategy=strategy or CalendarMonthStrategy(10),
    )


def sell(session, gateway, author, when, price=10, payment_id=None):
    customer = make_user(session)
    book = make_book(session, author, price=price)
    ledger = OrderLedger(session, gateway, fee_percentage=10)
    return ledger.create_order(
        customer, [book.id], payment_id or f"PAY-{when.isoformat()}", now=when
    )


def test_fee_is_grossed_up_from_net():
    assert quantize(calc_fee_from_net(9, 10)) == Decimal("1.00")
    assert quantize(calc_fee_from_net(Decimal("21.60"), 10)) == Decimal("2.40")


@pytest.mark.parametrize("pct", [0, 100, 150])
def test_degenerate_fee_rates_yield_no_fee(pct):
    assert calc_fee_from_net(9, pct) == 0


def test_unknown_period_mode():
    with pytest.raises(ValueError):
        get_period_strategy("weekly")


# -------- calendar periods --------

def test_calendar_period():
    period = CalendarMonthStrategy(10).period_for_month(None, 2026, 3)

    assert period.key == "2026-03"
    assert period.start == datetime(2026, 3, 1)
    assert period.end == datetime(2026, 4, 1)
    assert period.due_date == datetime(2026, 4, 10)


def test_december_rolls_into_next_year():
    period = CalendarMonthStrategy(10).period_for_month(None, 2025, 12)

    assert period.end == datetime(2026, 1, 1)
    assert period.due_date == datetime(2026, 1, 10)


def test_calendar_previous_period_in_january():
    strategy = CalendarMonthStrategy(10)
    assert strategy.previous_period(None, datetime(2026, 1, 5)).key == "2025-12"


@pytest.mark.parametrize("key", ["2026-13", "2026-3", "march", "", "2026-00", "0000-05", "9999-12"])
def test_calendar_rejects_bad_keys(key):
    with pytest.raises(ValidationError):
        CalendarMonthStrategy(10).period_from_key(None, key)


# -------- anniversary cycles --------

def test_anniversary_cycle_caps_billing_day(session):
    author = make_author(session, created_at=datetime(2025, 1, 29))
    strategy = AnniversaryCycleStrategy(10)

    period = strategy.period_for_month(author, 2026, 3)

    assert strategy.billing_day(author) == 28
    assert period.key == "2026-03-28_2026-04-28"
    assert period.start == datetime(2026, 3, 28)
    assert period.end == datetime(2026, 4, 28)
    assert period.due_date == datetime(2026, 5, 10)


def test_anniversary_current_period_before_billing_day(session):
    author = make_author(session, created_at=datetime(2025, 1, 15))
    strategy = AnniversaryCycleStrategy(10)

    assert strategy.current_period(author, datetime(2026, 3, 10)).key == "2026-02-15_2026-03-15"
    assert strategy.current_period(author, datetime(2026, 3, 15)).key == "2026-03-15_2026-04-15"
    assert strategy.previous_period(author, datetime(2026, 3, 10)).key == "2026-01-15_2026-02-15"


def test_anniversary_key_must_match_author_cycle(session):
    author = make_author(session, created_at=datetime(2025, 1, 15))
    strategy = AnniversaryCycleStrategy(10)

    assert strategy.period_from_key(author, "2026-03-15_2026-04-15").start == datetime(2026, 3, 15)
    assert strategy.period_from_key(author, "2026-03").key == "2026-03-15_2026-04-15"
    with pytest.raises(ValidationError):
        strategy.period_from_key(author, "2026-03-01_2026-04-01")
    with pytest.raises(ValidationError):
        strategy.period_from_key(author, "2026-02-30_2026-03-30")
    with pytest.raises(ValidationError):
        strategy.period_from_key(author, "9999-11-15_9999-12-15")
    with pytest.raises(ValidationError):
        strategy.period_from_key(author, "9999-11")


# -------- fee computation --------

def test_fee_for_a_period(session, gateway):
    author = make_author(session)
    sell(session, gateway, author, datetime(2026, 3, 5), price=10)
    sell(session, gateway, author, datetime(2026, 3, 20), price=30)
    sell(session, gateway, author, datetime(2026, 4, 1), price=50)

    engine = engine_for(session)
    result = engine.compute_fee_status(author, engine.strategy.period_for_month(author, 2026, 3))

    assert result.sales_count == 2
    assert quantize(result.author_net) == Decimal("36.00")
    assert quantize(result.fee_due) == Decimal("4.00")
    assert quantize(result.gross_sales) == Decimal("40.00")


def test_trial_sales_never_accrue(session, gateway):
    author = make_author(session, created_at=datetime(2026, 3, 10))
    sell(session, gateway, author, datetime(2026, 3, 20))
    sell(session, gateway, author, datetime(2026, 4, 15))

    engine = engine_for(session)
    march = engine.strategy.period_for_month(author, 2026, 3)
    april = engine.strategy.period_for_month(author, 2026, 4)

    march_fee = engine.compute_fee_status(author, march)
    assert march_fee.fee_due == 0
    assert march_fee.effective_start == datetime(2026, 4, 9)

    april_fee = engine.compute_fee_status(author, april)
    assert april_fee.sales_count == 1
    assert quantize(april_fee.fee_due) == Decimal("1.00")

    state, overdue = engine.period_state(author, march, now=datetime(2026, 5, 1))
    assert state == BillingState.UNBILLED
    assert overdue is False


def test_trial_also_applies_to_anniversary_cycles(session, gateway):
    author = make_author(session, created_at=datetime(2026, 3, 10))
    sell(session, gateway, author, datetime(2026, 3, 20))

    engine = engine_for(session, AnniversaryCycleStrategy(10))
    cycle = engine.strategy.period_for_month(author, 2026, 3)

    assert cycle.key == "2026-03-10_2026-04-10"
    assert engine.compute_fee_status(author, cycle).fee_due == 0


def test_trial_info(session):
    author = make_author(session, created_at=datetime(2026, 3, 1))
    engine = engine_for(session)

    info = engine.trial_info(author, now=datetime(2026, 3, 21))
    assert info.is_in_trial
    assert info.days_remaining == 10
    assert info.trial_ends_at == datetime(2026, 3, 31)

    assert not engine.trial_info(author, now=datetime(2026, 4, 1)).is_in_trial


# -------- states --------

@pytest.mark.parametrize(
    "now, expected",
    [
        (datetime(2026, 2, 15), BillingState.UNBILLED),
        (datetime(2026, 3, 25), BillingState.ACCRUING),
        (datetime(2026, 4, 5), BillingState.DUE),
        (datetime(2026, 4, 10), BillingState.OVERDUE),
        (datetime(2026, 6, 1), BillingState.OVERDUE),
    ],
)
def test_period_states(session, gateway, now, expected):
    author = make_author(session)
    sell(session, gateway, author, datetime(2026, 3, 5))
    engine = engine_for(session)
    period = engine.strategy.period_for_month(author, 2026, 3)

    state, overdue = engine.period_state(author, period, now=now)

    assert state == expected
    assert overdue is (expected == BillingState.OVERDUE)


def test_period_without_sales_is_never_overdue(session):
    author = make_author(session)
    engine = engine_for(session)
    period = engine.strategy.period_for_month(author, 2026, 3)

    state, overdue = engine.period_state(author, period, now=datetime(2026, 6, 1))

    assert state == BillingState.UNBILLED
    assert not overdue


def test_mark_paid_then_unpaid_keeps_one_record(session, gateway):
    author = make_author(session)
    sell(session, gateway, author, datetime(2026, 3, 5))
    engine = engine_for(session)
    period = engine.strategy.period_for_month(author, 2026, 3)
    later = datetime(2026, 5, 1)

    engine.mark_paid(author, period.key, note="bank transfer", now=later)
    assert engine.period_state(author, period, now=later) == (BillingState.PAID, False)

    engine.mark_unpaid(author, period.key, now=later)
    assert engine.period_state(author, period, now=later) == (BillingState.OVERDUE, True)

    record = engine.mark_paid(author, period.key, now=later)
    rows = session.exec(select(PlatformFeeStatus)).all()
    assert len(rows) == 1
    assert record.is_paid
    assert record.paid_at == later


def test_fee_rows_cover_every_author(session, gateway):
    paying = make_author(session, name="Paying")
    make_author(session, name="Quiet")
    sell(session, gateway, paying, datetime(2026, 3, 5), price=20)

    rows = engine_for(session).fee_rows(2026, 3, now=datetime(2026, 4, 20))

    by_name = {row["name"]: row for row in rows}
    assert set(by_name) == {"Paying", "Quiet"}
    assert by_name["Paying"]["platform_fee_due"] == 2.0
    assert by_name["Paying"]["state"] == "overdue"
    assert by_name["Paying"]["period"] == "2026-03"
    assert by_name["Quiet"]["platform_fee_due"] == 0.0
    assert by_name["Quiet"]["state"] == "unbilled"


def test_previous_fee_rows_follow_each_authors_cycle(session, gateway):
    early = make_author(session, name="Early", created_at=datetime(2025, 1, 5))
    late = make_author(session, name="Late", created_at=datetime(2025, 1, 25))
    sell(session, gateway, late, datetime(2026, 2, 26), price=20)
    engine = engine_for(session, AnniversaryCycleStrategy(10))

    rows = engine.previous_fee_rows(now=datetime(2026, 4, 20))

    by_name = {row["name"]: row for row in rows}
    assert by_name["Early"]["period"] == "2026-03-05_2026-04-05"
    assert by_name["Late"]["period"] == "2026-02-25_2026-03-25"
    assert by_name["Late"]["platform_fee_due"] == 2.0


def test_dashboard_during_trial_shows_nothing_due(session, gateway):
    author = make_author(session, created_at=datetime(2026, 3, 10))
    sell(session, gateway, author, datetime(2026, 3, 12))

    summary = engine_for(session).dashboard_summary(author, now=datetime(2026, 3, 20))

    assert summary["is_in_trial"] is True
    assert summary["days_until_fee"] == 20
    assert summary["platform_fee"] == 0.0
    assert summary["current_period"]["period"] == "2026-03"


def test_dashboard_after_trial(session, gateway):
    author = make_author(session)
    sell(session, gateway, author, datetime(2026, 3, 5), price=10)
    sell(session, gateway, author, datetime(2026, 4, 2), price=20)

    summary = engine_for(session).dashboard_summary(author, now=datetime(2026, 4, 12))

    assert summary["is_in_trial"] is False
    assert summary["platform_fee"] == 1.0
    assert summary["last_period"]["period"] == "2026-03"
    assert summary["last_period"]["state"] == "overdue"
    assert summary["last_period"]["overdue"] is True
    assert summary["current_period"]["platform_fee_due"] == 2.0
    assert summary["current_period"]["state"] == "accruing"
