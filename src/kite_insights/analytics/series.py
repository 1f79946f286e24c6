"""
Calendar bucketing of expense time series.

Expenses are outflows (negative amounts); every bucket holds the sum of
their absolute values. Buckets are calendar-aligned pandas periods, so
months have their real lengths and weeks run Sunday to Saturday.
"""
from datetime import date
from typing import Iterable, List, Tuple

import pandas as pd

from kite_insights.domain.enums import Granularity
from kite_insights.domain.models import Transaction

PERIOD_FREQ = {
    Granularity.DAILY: "D",
    Granularity.WEEKLY: "W-SAT",
    Granularity.MONTHLY: "M",
    Granularity.YEARLY: "Y",
}


def _period_index(start: date, end: date, granularity: Granularity) -> pd.PeriodIndex:
    freq = PERIOD_FREQ[granularity]
    return pd.period_range(
        start=pd.Period(pd.Timestamp(start), freq=freq),
        end=pd.Period(pd.Timestamp(end), freq=freq),
        freq=freq,
    )


def period_buckets(
    start: date,
    end: date,
    granularity: Granularity,
) -> List[Tuple[date, date]]:
    """Calendar buckets covering [start, end] as (first day, last day) pairs."""
    return [
        (p.start_time.date(), p.end_time.date())
        for p in _period_index(start, end, granularity)
    ]


def amount_frame(transactions: Iterable[Transaction], income: bool = False) -> pd.DataFrame:
    """One row per expense (or income) with its day and absolute amount."""
    rows = [t for t in transactions if (t.is_income if income else t.is_expense)]
    return pd.DataFrame(
        {
            "date": pd.to_datetime([t.day for t in rows]),
            "amount": [t.magnitude for t in rows],
        }
    )


def bucket_totals(
    transactions: Iterable[Transaction],
    start: date,
    end: date,
    granularity: Granularity = Granularity.MONTHLY,
    income: bool = False,
) -> List[float]:
    """
    Expense totals for every calendar bucket from `start` to `end`.

    Empty buckets are 0.0 and transactions outside the range are ignored,
    so the series length only depends on the dates. With `income` set,
    inflows are summed instead of expenses.

    Example:
        bucket_totals(txns, date(2025, 1, 1), date(2025, 3, 31))
        # -> [January total, February total, March total]
    """
    index = _period_index(start, end, granularity)
    frame = amount_frame(transactions, income=income)
    if frame.empty:
        return [0.0] * len(index)

    buckets = frame["date"].dt.to_period(PERIOD_FREQ[granularity])
    totals = frame.groupby(buckets)["amount"].sum().reindex(index, fill_value=0.0)
    return [float(v) for v in totals]
