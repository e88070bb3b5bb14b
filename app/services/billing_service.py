"""
Platform fee billing.

Authors pay the platform fee out-of-band. Sales are grouped into billing
periods, fees are derived from the author's net earnings on each order, and
an admin records payment per (author, period). Two period models exist:

* calendar months, keyed ``YYYY-MM``
* anniversary cycles anchored to the author's join day, keyed
  ``YYYY-MM-DD_YYYY-MM-DD``

Sales made during an author's trial window never accrue a fee, in either
model.
"""
import enum
import logging
import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlmodel import Session, select

from app.constants.order_status import PAYMENT_COMPLETED, ROLE_AUTHOR
from app.exceptions import ValidationError
from app.models.author_earning import AuthorEarning
from app.models.order import Order
from app.models.platform_fee_status import PlatformFeeStatus
from app.models.user import User
from app.utils.money import to_decimal, to_money

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
MAX_BILLING_DAY = 28
# Anniversary dues fall two months after the start, which must stay within datetime range
MAX_PERIOD_YEAR = 9998

MONTH_KEY = re.compile(r"^(\d{4})-(\d{2})$")
CYCLE_KEY = re.compile(r"^(\d{4}-\d{2}-\d{2})_(\d{4}-\d{2}-\d{2})$")


class BillingState(str, enum.Enum):
    UNBILLED = "unbilled"
    ACCRUING = "accruing"
    DUE = "due"
    OVERDUE = "overdue"
    PAID = "paid"


def calc_fee_from_net(net, fee_percentage) -> Decimal:
    """Gross up: the fee implied by a net amount that already had the fee taken out."""
    rate = to_decimal(fee_percentage) / HUNDRED
    if rate <= 0 or rate >= 1:
        return ZERO
    return to_decimal(net) * (rate / (1 - rate))


def shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


@dataclass
class BillingPeriod:
    key: str
    start: datetime
    end: datetime
    due_date: datetime

    def as_dict(self) -> dict:
        return {
            "period": self.key,
            "start": self.start,
            "end": self.end,
            "due_date": self.due_date,
        }


class PeriodStrategy(ABC):
    name = ""

    def __init__(self, due_day: int = 10):
        self.due_day = due_day

    @abstractmethod
    def period_for_month(self, author: User, year: int, month: int) -> BillingPeriod:
        """The period belonging to a calendar month (the one that starts in it)."""

    @abstractmethod
    def period_from_key(self, author: User, key: str) -> BillingPeriod:
        ...

    def period_key(self, period: BillingPeriod) -> str:
        return period.key

    def current_period(self, author: User, now: datetime) -> BillingPeriod:
        return self.period_for_month(author, now.year, now.month)

    def previous_period(self, author: User, now: datetime) -> BillingPeriod:
        current = self.current_period(author, now)
        year, month = shift_month(current.start.year, current.start.month, -1)
        return self.period_for_month(author, year, month)

    def _due_date(self, year: int, month: int) -> datetime:
        return datetime(year, month, self.due_day)

    @staticmethod
    def parse_month(key: str) -> Tuple[int, int]:
        match = MONTH_KEY.match((key or "").strip())
        if not match:
            raise ValidationError("Invalid period. Use YYYY-MM.")
        year, month = int(match.group(1)), int(match.group(2))
        if year < 1 or year > MAX_PERIOD_YEAR or month < 1 or month > 12:
            raise ValidationError("Invalid period. Use YYYY-MM.")
        return year, month


class CalendarMonthStrategy(PeriodStrategy):
    """[1st of month, 1st of next month), due on the 10th of the next month."""

    name = "calendar"

    def period_for_month(self, author, year, month):
        next_year, next_month = shift_month(year, month, 1)
        return BillingPeriod(
            key=f"{year:04d}-{month:02d}",
            start=datetime(year, month, 1),
            end=datetime(next_year, next_month, 1),
            due_date=self._due_date(next_year, next_month),
        )

    def period_from_key(self, author, key):
        year, month = self.parse_month(key)
        return self.period_for_month(author, year, month)


class AnniversaryCycleStrategy(PeriodStrategy):
    """
    Cycles anchored to the author's join day of month, capped at the 28th so
    every month has one. Due on the 10th of the month after the cycle ends.
    """

    name = "anniversary"

    @staticmethod
    def billing_day(author: User) -> int:
        return min(MAX_BILLING_DAY, author.created_at.day)

    def period_for_month(self, author, year, month):
        day = self.billing_day(author)
        start = datetime(year, month, day)
        end_year, end_month = shift_month(year, month, 1)
        end = datetime(end_year, end_month, day)
        due_year, due_month = shift_month(end_year, end_month, 1)
        return BillingPeriod(
            key=f"{start.date().isoformat()}_{end.date().isoformat()}",
            start=start,
            end=end,
            due_date=self._due_date(due_year, due_month),
        )

    def current_period(self, author, now):
        if now.day >= self.billing_day(author):
            return self.period_for_month(author, now.year, now.month)
        year, month = shift_month(now.year, now.month, -1)
        return self.period_for_month(author, year, month)

    def period_from_key(self, author, key):
        key = (key or "").strip()
        if MONTH_KEY.match(key):
            year, month = self.parse_month(key)
            return self.period_for_month(author, year, month)

        match = CYCLE_KEY.match(key)
        if not match:
            raise ValidationError("Invalid period. Use YYYY-MM or YYYY-MM-DD_YYYY-MM-DD.")
        try:
            start = datetime.strptime(match.group(1), "%Y-%m-%d")
        except ValueError:
            raise ValidationError("Invalid period start date")
        if start.year > MAX_PERIOD_YEAR:
            raise ValidationError("Invalid period start date")

        period = self.period_for_month(author, start.year, start.month)
        if period.key != key:
            raise ValidationError("Period does not match this author's billing cycle")
        return period


def get_period_strategy(mode: str, due_day: int = 10) -> PeriodStrategy:
    mode = (mode or "calendar").lower()
    if mode == AnniversaryCycleStrategy.name:
        return AnniversaryCycleStrategy(due_day)
    if mode == CalendarMonthStrategy.name:
        return CalendarMonthStrategy(due_day)
    raise ValueError(f"Unknown billing period mode: {mode}")


@dataclass
class TrialInfo:
    trial_ends_at: datetime
    is_in_trial: bool
    days_remaining: int


@dataclass
class FeeComputation:
    period: BillingPeriod
    effective_start: datetime
    gross_sales: Decimal = ZERO
    author_net: Decimal = ZERO
    fee_due: Decimal = ZERO
    sales_count: int = 0

    def as_dict(self) -> dict:
        return {
            **self.period.as_dict(),
            "effective_start": self.effective_start,
            "gross_sales": to_money(self.gross_sales),
            "author_net": to_money(self.author_net),
            "platform_fee_due": to_money(self.fee_due),
            "sales_count": self.sales_count,
        }


class BillingCycleEngine:
    def __init__(
        self,
        session: Session,
        fee_percentage: float,
        trial_days: int,
        strategy: PeriodStrategy,
    ):
        self.session = session
        self.fee_percentage = fee_percentage
        self.trial_days = trial_days
        self.strategy = strategy

    # -------- trial --------

    def trial_ends_at(self, author: User) -> datetime:
        return author.created_at + timedelta(days=self.trial_days)

    def trial_info(self, author: User, now: Optional[datetime] = None) -> TrialInfo:
        now = now or datetime.utcnow()
        ends = self.trial_ends_at(author)
        in_trial = now < ends
        remaining = math.ceil((ends - now).total_seconds() / 86400) if in_trial else 0
        return TrialInfo(trial_ends_at=ends, is_in_trial=in_trial, days_remaining=remaining)

    def effective_start(self, author: User, period: BillingPeriod) -> datetime:
        return max(period.start, self.trial_ends_at(author))

    # -------- fees --------

    def compute_fee_status(self, author: User, period: BillingPeriod) -> FeeComputation:
        start = self.effective_start(author, period)
        result = FeeComputation(period=period, effective_start=start)
        if start >= period.end:
            return result

        nets = self.session.exec(
            select(AuthorEarning.amount)
            .join(Order, Order.id == AuthorEarning.order_id)
            .where(
                AuthorEarning.author_id == author.id,
                Order.payment_status == PAYMENT_COMPLETED,
                Order.created_at >= start,
                Order.created_at < period.end,
            )
        ).all()

        for amount in nets:
            net = to_decimal(amount)
            if net <= 0:
                continue
            fee = calc_fee_from_net(net, self.fee_percentage)
            result.author_net += net
            result.fee_due += fee
            result.gross_sales += net + fee
            result.sales_count += 1
        return result

    def get_status_record(self, author: User, period_key: str) -> Optional[PlatformFeeStatus]:
        return self.session.exec(
            select(PlatformFeeStatus).where(
                PlatformFeeStatus.author_id == author.id,
                PlatformFeeStatus.period == period_key,
            )
        ).first()

    def period_state(
        self,
        author: User,
        period: BillingPeriod,
        now: Optional[datetime] = None,
        computation: Optional[FeeComputation] = None,
        record: Optional[PlatformFeeStatus] = None,
    ) -> Tuple[BillingState, bool]:
        """Return (state, is_overdue) for one author-period."""
        now = now or datetime.utcnow()
        computation = computation or self.compute_fee_status(author, period)
        if record is None:
            record = self.get_status_record(author, period.key)

        is_paid = bool(record and record.is_paid)
        has_fee = computation.fee_due > 0
        is_overdue = not is_paid and now >= period.due_date and has_fee

        if is_paid:
            return BillingState.PAID, False
        if now < period.start or computation.effective_start >= period.end:
            return BillingState.UNBILLED, False
        if now < period.end:
            return BillingState.ACCRUING, False
        if not has_fee:
            return BillingState.UNBILLED, False
        if is_overdue:
            return BillingState.OVERDUE, True
        return BillingState.DUE, False

    # -------- manual payment tracking --------

    def _upsert_status(self, author: User, period_key: str, **values) -> PlatformFeeStatus:
        record = self.get_status_record(author, period_key)
        if record is None:
            record = PlatformFeeStatus(author_id=author.id, period=period_key)

        for name, value in values.items():
            setattr(record, name, value)

        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        return record

    def mark_paid(
        self,
        author: User,
        period_key: str,
        note: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> PlatformFeeStatus:
        now = now or datetime.utcnow()
        record = self._upsert_status(
            author, period_key, is_paid=True, paid_at=now, note=note or "", updated_at=now
        )
        logger.info(f"Platform fee {period_key} marked paid for author {author.id}")
        return record

    def mark_unpaid(
        self,
        author: User,
        period_key: str,
        note: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> PlatformFeeStatus:
        now = now or datetime.utcnow()
        record = self._upsert_status(
            author, period_key, is_paid=False, paid_at=None, note=note or "", updated_at=now
        )
        logger.info(f"Platform fee {period_key} marked unpaid for author {author.id}")
        return record

    # -------- views --------

    def fee_row(self, author: User, period: BillingPeriod, now: datetime) -> dict:
        computation = self.compute_fee_status(author, period)
        record = self.get_status_record(author, period.key)
        state, is_overdue = self.period_state(author, period, now, computation, record)
        return {
            "author_id": author.id,
            "name": author.name,
            "email": author.email,
            "payout_paypal_email": author.payout_paypal_email,
            "is_blocked": author.is_blocked,
            "blocked_reason": author.blocked_reason,
            "blocked_at": author.blocked_at,
            **computation.as_dict(),
            "is_paid": bool(record and record.is_paid),
            "paid_at": record.paid_at if record else None,
            "note": record.note if record else "",
            "is_overdue": is_overdue,
            "state": state.value,
        }

    def _authors(self) -> List[User]:
        return self.session.exec(
            select(User).where(User.role == ROLE_AUTHOR).order_by(User.created_at.desc())
        ).all()

    def fee_rows(self, year: int, month: int, now: Optional[datetime] = None) -> List[dict]:
        now = now or datetime.utcnow()
        return [
            self.fee_row(author, self.strategy.period_for_month(author, year, month), now)
            for author in self._authors()
        ]

    def previous_fee_rows(self, now: Optional[datetime] = None) -> List[dict]:
        """Each author's last completed period, the same one mark-paid defaults to."""
        now = now or datetime.utcnow()
        return [
            self.fee_row(author, self.strategy.previous_period(author, now), now)
            for author in self._authors()
        ]

    def dashboard_summary(self, author: User, now: Optional[datetime] = None) -> dict:
        now = now or datetime.utcnow()
        trial = self.trial_info(author, now)

        previous = self.strategy.previous_period(author, now)
        current = self.strategy.current_period(author, now)

        last = self.compute_fee_status(author, previous)
        record = self.get_status_record(author, previous.key)
        last_state, last_overdue = self.period_state(author, previous, now, last, record)

        accruing = self.compute_fee_status(author, current)
        current_state, _ = self.period_state(author, current, now, accruing)

        return {
            "billing_mode": self.strategy.name,
            "fee_percentage": self.fee_percentage,
            "is_in_trial": trial.is_in_trial,
            "trial_ends_at": trial.trial_ends_at,
            "days_until_fee": trial.days_remaining,
            # Nothing is due while the author is still in trial
            "platform_fee": 0.0 if trial.is_in_trial else to_money(last.fee_due),
            "gross_sales": 0.0 if trial.is_in_trial else to_money(last.gross_sales),
            "last_period": {
                **last.as_dict(),
                "status": {
                    "is_paid": bool(record and record.is_paid),
                    "paid_at": record.paid_at if record else None,
                    "note": record.note if record else "",
                },
                "state": last_state.value,
                "overdue": last_overdue,
            },
            "current_period": {
                **accruing.as_dict(),
                "state": current_state.value,
            },
        }
