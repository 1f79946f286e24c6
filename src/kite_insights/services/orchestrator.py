"""
Composition of the analytics components into one insight summary.

No new algorithms live here: the orchestrator picks the right transaction
subsets, calls the anomaly detector, trend helpers and forecast engine, and
aggregates cash flow. Each section is isolated so one failure leaves only
that section empty.
"""
from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, TypeVar

from kite_insights.analytics import statistics
from kite_insights.analytics.anomalies import AnomalyDetector
from kite_insights.analytics.forecast import ForecastEngine
from kite_insights.analytics.series import bucket_totals, period_buckets
from kite_insights.analytics.thresholds import AnalyticsThresholds
from kite_insights.analytics.trends import expenses_between, spend, trend_direction
from kite_insights.domain import dates
from kite_insights.domain.enums import Granularity, PredictionType, TrendDirection
from kite_insights.domain.models import Category, InsightPeriod, Transaction
from kite_insights.logging_setup import get_logger
from kite_insights.services.models import (
    CashFlowSummary,
    CategoryInsight,
    InsightSummary,
    MerchantSpending,
    PredictiveInsight,
    SpendingTrend,
)

logger = get_logger(__name__)

T = TypeVar("T")

TOP_MERCHANTS = 5
HISTORY_INTERVALS = 12
MIN_HISTORY_INTERVALS = 3
UNKNOWN_MERCHANT = "Unknown"

SPENDING_RECOMMENDATIONS = {
    TrendDirection.INCREASING: [
        "Your spending is trending upward",
        "Consider reviewing discretionary expenses",
        "Set spending alerts for categories",
    ],
    TrendDirection.DECREASING: [
        "Great job reducing expenses!",
        "Consider saving the difference",
        "Keep up the good spending habits",
    ],
    TrendDirection.STABLE: [
        "Your spending is stable",
        "Look for optimization opportunities",
        "Consider setting savings goals",
    ],
}


class InsightOrchestrator:
    """
    Builds an `InsightSummary` for a reporting period.

    Transactions passed in may extend before the period. Cash flow,
    category insights and anomalies use the in-period subset; trend
    comparisons look at the previous window; predictions use all history
    up to the end of the period.

    Usage:
        orchestrator = InsightOrchestrator()
        period = InsightPeriod.for_kind("month", date.today())
        summary = orchestrator.summarize(transactions, categories, period)
        print(summary)
    """

    def __init__(
        self,
        thresholds: Optional[AnalyticsThresholds] = None,
        detector: Optional[AnomalyDetector] = None,
        forecast_engine: Optional[ForecastEngine] = None,
    ):
        self.thresholds = thresholds or AnalyticsThresholds()
        self.detector = detector or AnomalyDetector(self.thresholds)
        self.forecast_engine = forecast_engine or ForecastEngine(self.thresholds)

    def summarize(
        self,
        transactions: Iterable[Transaction],
        categories: Iterable[Category],
        period: InsightPeriod,
        detected_at: Optional[datetime] = None,
    ) -> InsightSummary:
        """
        Compute every section of the summary.

        Args:
            transactions: Transactions, possibly including earlier history
            categories: Known categories
            period: Reporting window
            detected_at: Timestamp for anomalies (default: now)

        Returns:
            InsightSummary; zeroed and empty for a period with no activity
        """
        history = sorted((t for t in transactions if t.day <= period.end), key=lambda t: t.day)
        categories = list(categories)
        in_period = [t for t in history if period.contains(t.day)]

        logger.debug(
            "Summarizing %s: %d transactions in period, %d in history",
            period.label or period.start, len(in_period), len(history),
        )

        return InsightSummary(
            period=period,
            cash_flow=self._section(
                "cash flow", lambda: self.cash_flow(in_period), CashFlowSummary()
            ),
            trends=self._section(
                "spending trends", lambda: self.spending_trends(history, period), []
            ),
            categories=self._section(
                "categories", lambda: self.category_insights(history, categories, period), []
            ),
            predictions=self._section(
                "predictions", lambda: self.predictions(history), []
            ),
            anomalies=self._section(
                "anomalies", lambda: self.detector.detect(history, period, detected_at), []
            ),
        )

    @staticmethod
    def _section(name: str, compute: Callable[[], T], default: T) -> T:
        try:
            return compute()
        except Exception:
            logger.exception("Failed to compute %s, leaving it empty", name)
            return default

    @staticmethod
    def cash_flow(transactions: Iterable[Transaction]) -> CashFlowSummary:
        """Income, expenses, net flow and savings rate."""
        income = Decimal(0)
        outflow = Decimal(0)
        for txn in transactions:
            if txn.is_income:
                income += txn.amount
            elif txn.is_expense:
                outflow += txn.amount

        income, expenses = float(income), abs(float(outflow))
        net_flow = income - expenses
        return CashFlowSummary(
            income=income,
            expenses=expenses,
            net_flow=net_flow,
            savings_rate=net_flow / income * 100 if income > 0 else 0.0,
        )

    def spending_trends(
        self,
        history: List[Transaction],
        period: InsightPeriod,
    ) -> List[SpendingTrend]:
        """
        Spending per sub-interval of the period: days for a week or less,
        weeks up to a month, months beyond that.
        """
        if not any(period.contains(t.day) for t in history):
            return []

        if period.days <= 7:
            granularity, label_format = Granularity.DAILY, "%a %b %d"
        elif period.days <= 31:
            granularity, label_format = Granularity.WEEKLY, "%b %d"
        else:
            granularity, label_format = Granularity.MONTHLY, "%b %Y"

        previous = period.previous()
        earliest = history[0].day

        trends = []
        for bucket_start, bucket_end in period_buckets(period.start, period.end, granularity):
            start, end = max(bucket_start, period.start), min(bucket_end, period.end)
            expenses = expenses_between(history, start, end)
            total = spend(expenses)

            # Matching window inside the previous period; a shorter previous
            # period has nothing to match the trailing buckets.
            previous_start = previous.start + (start - period.start)
            previous_end = min(previous_start + (end - start), previous.end)
            previous_total = 0.0
            if previous_start <= previous.end:
                previous_total = spend(expenses_between(history, previous_start, previous_end))

            trends.append(SpendingTrend(
                start=start,
                end=end,
                label=f"{start:{label_format}}",
                total_spent=total,
                transaction_count=len(expenses),
                average_transaction=total / len(expenses) if expenses else 0.0,
                percentage_change=statistics.change_percent(total, previous_total),
                is_anomaly=self._is_interval_anomaly(history, start, end, total, earliest),
            ))

        return trends

    def _is_interval_anomaly(
        self,
        history: List[Transaction],
        start: date,
        end: date,
        total: float,
        earliest: date,
    ) -> bool:
        """Compare against the same interval in each of the last 12 months."""
        past_totals = []
        for months in range(1, HISTORY_INTERVALS + 1):
            past_start = dates.add_months(start, -months)
            if past_start < earliest:
                break
            past_totals.append(spend(expenses_between(history, past_start, dates.add_months(end, -months))))

        if len(past_totals) < MIN_HISTORY_INTERVALS:
            return False

        z = statistics.z_score(total, statistics.mean(past_totals), statistics.stddev(past_totals))
        return abs(z) > self.thresholds.interval_anomaly_threshold

    def category_insights(
        self,
        history: List[Transaction],
        categories: List[Category],
        period: InsightPeriod,
    ) -> List[CategoryInsight]:
        """Per-category spending in the period, highest first."""
        expenses = expenses_between(history, period.start, period.end)
        total_expenses = spend(expenses)
        previous = period.previous()
        previous_expenses = expenses_between(history, previous.start, previous.end)

        insights = []
        for category in categories:
            category_txns = [t for t in expenses if t.category_id == category.id]
            if not category_txns:
                continue

            total = spend(category_txns)
            previous_total = spend(t for t in previous_expenses if t.category_id == category.id)
            trend_percentage = statistics.change_percent(total, previous_total)

            insights.append(CategoryInsight(
                category_id=category.id,
                category_name=category.name,
                total_spent=total,
                percentage=total / total_expenses * 100 if total_expenses > 0 else 0.0,
                transaction_count=len(category_txns),
                average_transaction=total / len(category_txns),
                trend=trend_direction(trend_percentage, self.thresholds.merchant_stability_band),
                trend_percentage=trend_percentage,
                top_merchants=self._top_merchants(category_txns),
            ))

        return sorted(insights, key=lambda i: i.total_spent, reverse=True)

    @staticmethod
    def _top_merchants(transactions: List[Transaction]) -> List[MerchantSpending]:
        amounts: Dict[str, float] = defaultdict(float)
        counts: Dict[str, int] = defaultdict(int)
        last_seen: Dict[str, date] = {}

        for txn in transactions:
            merchant = txn.merchant or UNKNOWN_MERCHANT
            amounts[merchant] += txn.magnitude
            counts[merchant] += 1
            last_seen[merchant] = max(last_seen.get(merchant, txn.day), txn.day)

        ranked = sorted(amounts, key=lambda m: amounts[m], reverse=True)[:TOP_MERCHANTS]
        return [
            MerchantSpending(
                merchant=merchant,
                amount=amounts[merchant],
                count=counts[merchant],
                last_transaction=last_seen[merchant],
            )
            for merchant in ranked
        ]

    def predictions(self, history: List[Transaction]) -> List[PredictiveInsight]:
        """
        Next-month spending and monthly savings potential.

        Empty until there are enough transactions to be meaningful.
        """
        if len(history) < self.thresholds.min_transactions_for_prediction:
            return []

        first, last = history[0].day, history[-1].day
        monthly_expenses = bucket_totals(history, first, last, Granularity.MONTHLY)
        forecast = self.forecast_engine.forecast_next_period(monthly_expenses)
        slope = statistics.linear_regression(monthly_expenses).slope
        direction = (
            TrendDirection.INCREASING if slope > 0
            else TrendDirection.DECREASING if slope < 0
            else TrendDirection.STABLE
        )

        predictions = [PredictiveInsight(
            type=PredictionType.SPENDING,
            prediction=forecast.predicted,
            confidence=forecast.confidence,
            basis=f"Based on {len(monthly_expenses)} months of data with {direction.value} trend",
            recommendations=list(SPENDING_RECOMMENDATIONS[direction]),
        )]

        if any(t.is_income for t in history) and any(t.is_expense for t in history):
            monthly_income = bucket_totals(history, first, last, Granularity.MONTHLY, income=True)
            potential = statistics.mean(monthly_income) - statistics.mean(monthly_expenses)
            confidence = statistics.clamp(
                100 - statistics.coefficient_of_variation(monthly_income), 0.0, 100.0
            )
            if potential > 0:
                advice = [
                    f"You could save {potential:.2f} per month",
                    "Consider setting up automatic transfers",
                ]
            else:
                advice = ["Focus on reducing expenses", "Look for additional income sources"]

            predictions.append(PredictiveInsight(
                type=PredictionType.SAVING,
                prediction=potential,
                confidence=confidence,
                basis="Average monthly income minus average monthly expenses",
                recommendations=advice,
            ))

        return predictions
