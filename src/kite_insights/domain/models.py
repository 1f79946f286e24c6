from dataclasses import dataclass
from decimal import Decimal
from datetime import date, timedelta
from typing import Optional

from kite_insights.domain import dates
from kite_insights.domain.enums import PeriodKind


class InvalidPeriodError(ValueError):
    """Raised when a period is inverted or its kind is unknown."""
    pass


@dataclass(frozen=True)
class Transaction:
    """
    Core ledger record, read-only to the engines.

    `amount` is signed: positive is an inflow, negative an outflow.
    The engines never change date or amount; categorization only proposes
    a new `category_id`.
    """
    id: str
    date: date
    amount: Decimal
    description: str
    merchant: Optional[str] = None
    category_id: Optional[str] = None

    @property
    def is_income(self) -> bool:
        return self.amount > 0

    @property
    def is_expense(self) -> bool:
        return self.amount < 0

    @property
    def magnitude(self) -> float:
        """Absolute amount as a float for statistics"""
        return abs(float(self.amount))

    @property
    def day(self) -> date:
        return dates.as_day(self.date)

    def __repr__(self):
        sign = "+" if self.amount >= 0 else "-"
        return f"Transaction({self.id}, {self.day}, {self.description[:30]}, {sign}${abs(self.amount)})"


@dataclass(frozen=True)
class Category:
    """Opaque lookup key for the engines; may have a single parent."""
    id: str
    name: str
    parent_id: Optional[str] = None


@dataclass(frozen=True)
class InsightPeriod:
    """
    Reporting window. Both bounds are inclusive calendar days.

    Build one with `for_kind` (calendar week/month/quarter/year around a
    date) or `custom`.
    """
    start: date
    end: date
    label: str = ""

    def __post_init__(self):
        if self.start > self.end:
            raise InvalidPeriodError(
                f"Period start {self.start} is after end {self.end}"
            )

    @classmethod
    def for_kind(cls, kind: PeriodKind | str, as_of: date) -> "InsightPeriod":
        """
        Calendar window of the given kind containing `as_of`.

        Raises:
            InvalidPeriodError: If kind is not week/month/quarter/year
        """
        try:
            kind = PeriodKind(kind)
        except ValueError:
            raise InvalidPeriodError(f"Invalid period: {kind}") from None

        day = dates.as_day(as_of)
        if kind == PeriodKind.WEEK:
            start = dates.start_of_week(day)
            return cls(start, dates.end_of_week(day), f"Week of {start:%b %d, %Y}")
        if kind == PeriodKind.MONTH:
            return cls(dates.start_of_month(day), dates.end_of_month(day), f"{day:%B %Y}")
        if kind == PeriodKind.QUARTER:
            quarter = (day.month - 1) // 3 + 1
            return cls(dates.start_of_quarter(day), dates.end_of_quarter(day), f"Q{quarter} {day.year}")
        return cls(dates.start_of_year(day), dates.end_of_year(day), str(day.year))

    @classmethod
    def custom(cls, start: date, end: date) -> "InsightPeriod":
        start, end = dates.as_day(start), dates.as_day(end)
        return cls(start, end, f"{start:%b %d} - {end:%b %d, %Y}")

    @property
    def days(self) -> int:
        return dates.days_inclusive(self.start, self.end)

    def contains(self, value: date) -> bool:
        return self.start <= dates.as_day(value) <= self.end

    def shift_months(self, months: int, label: str = "") -> "InsightPeriod":
        """Same window moved by whole months, keeping month ends on month ends."""
        start = dates.add_months(self.start, months)
        if dates.is_month_end(self.end):
            end = dates.end_of_month(dates.add_months(self.end, months))
        else:
            end = dates.add_months(self.end, months)
        return InsightPeriod(start, max(start, end), label)

    def previous(self) -> "InsightPeriod":
        """
        The immediately preceding window of the same semantic length:
        a week for periods up to 7 days, a month up to 31, a quarter up to
        93, otherwise a year.
        """
        length = self.days
        if length <= 7:
            shift = timedelta(days=7)
            return InsightPeriod(self.start - shift, self.end - shift, "Previous Week")
        if length <= 31:
            return self.shift_months(-1, "Previous Month")
        if length <= 93:
            return self.shift_months(-3, "Previous Quarter")
        return self.shift_months(-12, "Previous Year")
