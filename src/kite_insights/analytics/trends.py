"""
Spending trends over transaction history.

Only expenses (negative amounts) count as spending; their absolute values
are summed. "Current" windows are anchored at an explicit `as_of` day,
which defaults to today.
"""
import math
from collections import Counter, defaultdict
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional

from kite_insights.analytics import statistics
from kite_insights.analytics.models import (
    CategoryTrend,
    DayOfWeekSpend,
    MerchantAnalysis,
    PeriodChange,
    PeriodComparison,
    PeriodWindow,
    SpendingPatterns,
    TrendDataPoint,
)
from kite_insights.analytics.series import bucket_totals, period_buckets
from kite_insights.analytics.thresholds import AnalyticsThresholds
from kite_insights.domain import dates
from kite_insights.domain.enums import Granularity, MerchantFrequency, PeriodKind, TrendDirection
from kite_insights.domain.models import Category, InsightPeriod, Transaction

UNCATEGORIZED = "Uncategorized"

# Upper bounds (days) on the average gap between visits
DAILY_MAX_GAP_DAYS = 2
WEEKLY_MAX_GAP_DAYS = 10
MONTHLY_MAX_GAP_DAYS = 35

WEEKS_PER_MONTH = 4

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


def trend_direction(change_percent: float, band: float) -> TrendDirection:
    """Stable inside +/- band percent, otherwise by the sign of the change."""
    if abs(change_percent) < band:
        return TrendDirection.STABLE
    if change_percent > 0:
        return TrendDirection.INCREASING
    return TrendDirection.DECREASING


def classify_frequency(average_gap_days: Optional[float]) -> MerchantFrequency:
    if average_gap_days is None:
        return MerchantFrequency.OCCASIONAL
    if average_gap_days <= DAILY_MAX_GAP_DAYS:
        return MerchantFrequency.DAILY
    if average_gap_days <= WEEKLY_MAX_GAP_DAYS:
        return MerchantFrequency.WEEKLY
    if average_gap_days <= MONTHLY_MAX_GAP_DAYS:
        return MerchantFrequency.MONTHLY
    return MerchantFrequency.OCCASIONAL


def spend(transactions: Iterable[Transaction]) -> float:
    """Sum of absolute expense amounts."""
    return math.fsum(t.magnitude for t in transactions if t.is_expense)


def expenses_between(
    transactions: Iterable[Transaction],
    start: date,
    end: date,
) -> List[Transaction]:
    return [t for t in transactions if t.is_expense and start <= t.day <= end]


class TrendAnalyzer:
    """
    Period-over-period, category and merchant trend computation.

    Usage:
        analyzer = TrendAnalyzer()
        trends = analyzer.category_trends(transactions, categories, months_back=3)
        comparison = analyzer.compare_periods(transactions, PeriodKind.MONTH)
    """

    def __init__(self, thresholds: Optional[AnalyticsThresholds] = None):
        self.thresholds = thresholds or AnalyticsThresholds()

    @staticmethod
    def _window_start(as_of: date, months_back: int) -> date:
        # Whole calendar months, so the previous month is always covered
        return dates.start_of_month(dates.add_months(as_of, -max(months_back, 1)))

    def category_trends(
        self,
        transactions: Iterable[Transaction],
        categories: Iterable[Category],
        months_back: int = 3,
        as_of: Optional[date] = None,
    ) -> List[CategoryTrend]:
        """
        Current calendar month vs the previous one, per category.

        Args:
            transactions: Transaction history
            categories: Categories to report on; others are ignored
            months_back: How many months of history feed totals and sparkline
            as_of: Day that defines the current month (default: today)

        Returns:
            Trends for categories with spending in the window, highest
            current-month spend first
        """
        as_of = dates.as_day(as_of or date.today())
        window = expenses_between(transactions, self._window_start(as_of, months_back), as_of)

        current_start = dates.start_of_month(as_of)
        previous_start = dates.add_months(current_start, -1)
        previous_end = current_start - timedelta(days=1)

        weeks = max(months_back, 1) * WEEKS_PER_MONTH
        sparkline_start = dates.start_of_week(as_of) - timedelta(weeks=weeks - 1)

        by_category: Dict[str, List[Transaction]] = defaultdict(list)
        for txn in window:
            if txn.category_id:
                by_category[txn.category_id].append(txn)

        trends = []
        for category in categories:
            category_txns = by_category.get(category.id)
            if not category_txns:
                continue

            current = spend(t for t in category_txns if current_start <= t.day <= as_of)
            previous = spend(t for t in category_txns if previous_start <= t.day <= previous_end)
            change_percent = statistics.change_percent(current, previous)
            total = spend(category_txns)

            trends.append(CategoryTrend(
                category_id=category.id,
                category_name=category.name,
                current_month=current,
                previous_month=previous,
                change=current - previous,
                change_percent=change_percent,
                trend=trend_direction(change_percent, self.thresholds.category_stability_band),
                average=total / len(category_txns),
                total=total,
                count=len(category_txns),
                sparkline=bucket_totals(category_txns, sparkline_start, as_of, Granularity.WEEKLY),
            ))

        return sorted(trends, key=lambda t: t.current_month, reverse=True)

    def merchant_analysis(
        self,
        transactions: Iterable[Transaction],
        months_back: int = 6,
        as_of: Optional[date] = None,
        categories: Optional[Iterable[Category]] = None,
    ) -> List[MerchantAnalysis]:
        """
        Spending profile per merchant.

        Frequency comes from the average gap between visits. Trend splits
        the merchant's transactions in half chronologically and compares the
        two totals.

        Returns:
            One entry per merchant with expenses in the window, highest
            total first
        """
        as_of = dates.as_day(as_of or date.today())
        window = expenses_between(transactions, self._window_start(as_of, months_back), as_of)
        names = {c.id: c.name for c in categories or []}

        by_merchant: Dict[str, List[Transaction]] = defaultdict(list)
        for txn in sorted(window, key=lambda t: t.day):
            if txn.merchant:
                by_merchant[txn.merchant].append(txn)

        analyses = []
        for merchant, txns in by_merchant.items():
            count = len(txns)
            total = spend(txns)
            first, last = txns[0].day, txns[-1].day

            average_gap = (last - first).days / (count - 1) if count > 1 else None

            if count > 1:
                midpoint = count // 2
                older = spend(txns[:midpoint])
                recent = spend(txns[midpoint:])
                trend = trend_direction(
                    statistics.change_percent(recent, older),
                    self.thresholds.merchant_stability_band,
                )
            else:
                trend = TrendDirection.STABLE

            category_counts = Counter(t.category_id for t in txns if t.category_id)
            category = UNCATEGORIZED
            if category_counts:
                top_category_id = category_counts.most_common(1)[0][0]
                category = names.get(top_category_id, UNCATEGORIZED)

            analyses.append(MerchantAnalysis(
                merchant=merchant,
                total_spent=total,
                transaction_count=count,
                average_amount=total / count,
                first_transaction=first,
                last_transaction=last,
                frequency=classify_frequency(average_gap),
                category=category,
                trend=trend,
            ))

        return sorted(analyses, key=lambda a: a.total_spent, reverse=True)

    def compare_periods(
        self,
        transactions: Iterable[Transaction],
        period_kind: PeriodKind | str,
        anchor_date: Optional[date] = None,
    ) -> PeriodComparison:
        """
        Calendar window containing `anchor_date` vs the one right before it.

        Months, quarters and years keep their calendar lengths, so daily
        averages are the fair comparison when lengths differ.
        """
        transactions = list(transactions)
        current = InsightPeriod.for_kind(period_kind, anchor_date or date.today())
        previous = InsightPeriod.for_kind(period_kind, current.start - timedelta(days=1))

        current_window = self._window(transactions, current)
        previous_window = self._window(transactions, previous)

        return PeriodComparison(
            current=current_window,
            previous=previous_window,
            change=PeriodChange(
                amount=current_window.total - previous_window.total,
                percent=statistics.change_percent(current_window.total, previous_window.total),
                daily_amount=current_window.daily - previous_window.daily,
                daily_percent=statistics.change_percent(current_window.daily, previous_window.daily),
                transactions=current_window.transactions - previous_window.transactions,
                transactions_percent=statistics.change_percent(
                    current_window.transactions, previous_window.transactions
                ),
            ),
        )

    @staticmethod
    def _window(transactions: List[Transaction], period: InsightPeriod) -> PeriodWindow:
        expenses = expenses_between(transactions, period.start, period.end)
        total = spend(expenses)
        return PeriodWindow(
            start=period.start,
            end=period.end,
            total=total,
            daily=total / period.days,
            transactions=len(expenses),
        )

    def spending_points(
        self,
        transactions: Iterable[Transaction],
        start: date,
        end: date,
        granularity: Granularity = Granularity.DAILY,
    ) -> List[TrendDataPoint]:
        """Expense activity per calendar bucket, clipped to [start, end]."""
        start, end = dates.as_day(start), dates.as_day(end)
        expenses = expenses_between(transactions, start, end)

        points = []
        for bucket_start, bucket_end in period_buckets(start, end, granularity):
            bucket_start, bucket_end = max(bucket_start, start), min(bucket_end, end)
            bucket = [t for t in expenses if bucket_start <= t.day <= bucket_end]

            categories: Dict[str, float] = defaultdict(float)
            merchants: Dict[str, float] = defaultdict(float)
            for txn in bucket:
                if txn.category_id:
                    categories[txn.category_id] += txn.magnitude
                if txn.merchant:
                    merchants[txn.merchant] += txn.magnitude

            amount = spend(bucket)
            points.append(TrendDataPoint(
                start=bucket_start,
                end=bucket_end,
                amount=amount,
                count=len(bucket),
                average=amount / len(bucket) if bucket else 0.0,
                categories=dict(categories),
                merchants=dict(merchants),
            ))

        return points

    def spending_patterns(
        self,
        transactions: Iterable[Transaction],
        months_back: int = 6,
        as_of: Optional[date] = None,
    ) -> SpendingPatterns:
        """Spending by weekday, part of the month and season."""
        as_of = dates.as_day(as_of or date.today())
        expenses = expenses_between(transactions, dates.add_months(as_of, -months_back), as_of)

        weekday_totals: Dict[str, List[float]] = {name: [] for name in DAY_NAMES}
        time_of_month = {"beginning": 0.0, "middle": 0.0, "end": 0.0}
        seasonal = {"spring": 0.0, "summer": 0.0, "fall": 0.0, "winter": 0.0}

        for txn in expenses:
            day = txn.day
            amount = txn.magnitude
            # date.weekday(): Monday == 0, DAY_NAMES starts on Sunday
            weekday_totals[DAY_NAMES[(day.weekday() + 1) % 7]].append(amount)

            if day.day <= 10:
                time_of_month["beginning"] += amount
            elif day.day <= 20:
                time_of_month["middle"] += amount
            else:
                time_of_month["end"] += amount

            if 3 <= day.month <= 5:
                seasonal["spring"] += amount
            elif 6 <= day.month <= 8:
                seasonal["summer"] += amount
            elif 9 <= day.month <= 11:
                seasonal["fall"] += amount
            else:
                seasonal["winter"] += amount

        day_of_week = {
            name: DayOfWeekSpend(
                total=math.fsum(amounts),
                average=statistics.mean(amounts),
                count=len(amounts),
            )
            for name, amounts in weekday_totals.items()
        }

        return SpendingPatterns(
            day_of_week=day_of_week,
            time_of_month=time_of_month,
            seasonal=seasonal,
        )
