"""
Spending forecasts from historical expense totals.

A least-squares line through the series predicts the next point;
confidence falls as the series gets noisier (coefficient of variation).
"""
from datetime import date, timedelta
from typing import Iterable, List, Optional, Sequence

from kite_insights.analytics import statistics
from kite_insights.analytics.models import ForecastRange, ForecastReport, SpendingForecast
from kite_insights.analytics.series import bucket_totals
from kite_insights.analytics.thresholds import AnalyticsThresholds
from kite_insights.analytics.trends import DAY_NAMES, TrendAnalyzer
from kite_insights.domain import dates
from kite_insights.domain.enums import Granularity
from kite_insights.domain.models import Category, Transaction
from kite_insights.logging_setup import get_logger

logger = get_logger(__name__)

WEEKS_OF_HISTORY = 4
PATTERN_MONTHS = 3

# Recommendation triggers
UPWARD_SLOPE_SHARE = 0.05
HIGH_PREDICTION_MULTIPLE = 1.2
TOP_CATEGORY_SHARE = 0.3
WEEKEND_TO_WEEKDAY_SHARE = 0.5
MONTH_END_SHARE = 0.4


class ForecastEngine:
    """
    Usage:
        engine = ForecastEngine()
        forecast = engine.forecast_next_period([100, 120, 140])
        forecast.predicted  # 160.0
    """

    def __init__(self, thresholds: Optional[AnalyticsThresholds] = None):
        self.thresholds = thresholds or AnalyticsThresholds()

    def forecast_next_period(self, totals: Sequence[float]) -> SpendingForecast:
        """
        Predict the point after `totals`.

        Args:
            totals: Non-negative per-period totals, oldest first

        Returns:
            Forecast with a non-negative prediction. With fewer than two
            points the last known value (or 0) is returned with confidence 0
            and `insufficient_history` set.
        """
        totals = [float(t) for t in totals]
        if len(totals) < 2:
            last = max(0.0, totals[-1]) if totals else 0.0
            return SpendingForecast(
                predicted=last,
                confidence=0.0,
                range=ForecastRange(low=last, high=last),
                insufficient_history=True,
            )

        fit = statistics.linear_regression(totals)
        predicted = max(0.0, fit.predict(len(totals)))
        sigma = statistics.stddev(totals)

        if statistics.mean(totals) == 0:
            confidence = 0.0
        else:
            confidence = statistics.clamp(
                100 - statistics.coefficient_of_variation(totals), 0.0, 100.0
            )

        return SpendingForecast(
            predicted=predicted,
            confidence=confidence,
            range=ForecastRange(low=max(0.0, predicted - sigma), high=predicted + sigma),
        )

    def forecast_next_week(self, weekly_totals: Sequence[float]) -> SpendingForecast:
        """Same as `forecast_next_period`, less confident at weekly granularity."""
        forecast = self.forecast_next_period(weekly_totals)
        return SpendingForecast(
            predicted=forecast.predicted,
            confidence=max(0.0, forecast.confidence - self.thresholds.weekly_confidence_discount),
            range=forecast.range,
            insufficient_history=forecast.insufficient_history,
        )

    def generate_forecast(
        self,
        transactions: Iterable[Transaction],
        categories: Iterable[Category],
        months_back: int = 6,
        as_of: Optional[date] = None,
    ) -> ForecastReport:
        """
        Next-month and next-week forecasts with supporting detail.

        Args:
            transactions: Transaction history
            categories: Categories to forecast individually
            months_back: Calendar months of history, the current one included
            as_of: Last day of history (default: today)
        """
        as_of = dates.as_day(as_of or date.today())
        months_back = max(months_back, 1)
        transactions = [t for t in transactions if t.day <= as_of]

        month_start = dates.start_of_month(dates.add_months(as_of, -(months_back - 1)))
        monthly = bucket_totals(transactions, month_start, as_of, Granularity.MONTHLY)
        next_month = self.forecast_next_period(monthly)

        by_category = {}
        for category in categories:
            category_txns = [t for t in transactions if t.category_id == category.id]
            series = bucket_totals(category_txns, month_start, as_of, Granularity.MONTHLY)
            if not any(series):
                continue
            fit = statistics.linear_regression(series)
            by_category[category.name] = max(0.0, fit.predict(len(series)))

        week_start = dates.start_of_week(as_of) - timedelta(weeks=WEEKS_OF_HISTORY - 1)
        weekly = bucket_totals(transactions, week_start, as_of, Granularity.WEEKLY)
        next_week = self.forecast_next_week(weekly)

        patterns = TrendAnalyzer(self.thresholds).spending_patterns(
            transactions, months_back=PATTERN_MONTHS, as_of=as_of
        )
        weights = [patterns.day_of_week[name].total for name in DAY_NAMES]

        logger.debug(
            "Forecast from %d months: next month %.2f, next week %.2f",
            len(monthly), next_month.predicted, next_week.predicted,
        )

        return ForecastReport(
            next_month=next_month,
            next_week=next_week,
            by_category=by_category,
            daily_breakdown=daily_breakdown(next_week.predicted, weights),
            recommendations=recommendations(monthly, next_month.predicted, by_category, patterns),
        )


def daily_breakdown(week_total: float, weights: List[float]) -> List[float]:
    """Split a weekly total over Sunday..Saturday in proportion to `weights`."""
    total_weight = sum(weights)
    if total_weight == 0:
        return [week_total / 7] * 7
    return [weight / total_weight * week_total for weight in weights]


def recommendations(monthly_totals, predicted, by_category, patterns) -> List[str]:
    """Plain-language hints derived from the forecast inputs."""
    hints = []
    average = statistics.mean(monthly_totals)

    if average > 0:
        fit = statistics.linear_regression(monthly_totals)
        if fit.slope > average * UPWARD_SLOPE_SHARE:
            hints.append("Your spending is trending upward. Consider reviewing your budget.")

        if predicted > average * HIGH_PREDICTION_MULTIPLE:
            hints.append(
                f"Next month's spending is predicted to be "
                f"{round((predicted / average - 1) * 100)}% higher than average."
            )

        if by_category and predicted > 0:
            name, amount = max(by_category.items(), key=lambda item: item[1])
            if amount > average * TOP_CATEGORY_SHARE:
                hints.append(
                    f"{name} is your highest spending category at "
                    f"{round(amount / predicted * 100)}% of predicted spending."
                )

    weekdays = patterns.day_of_week
    weekend = weekdays["Saturday"].total + weekdays["Sunday"].total
    weekday = sum(weekdays[name].total for name in DAY_NAMES[1:6])
    if weekend > 0 and weekend > weekday * WEEKEND_TO_WEEKDAY_SHARE:
        hints.append(
            "You spend significantly more on weekends. Consider planning weekend activities in advance."
        )

    month_total = sum(patterns.time_of_month.values())
    if month_total > 0 and patterns.time_of_month["end"] > month_total * MONTH_END_SHARE:
        hints.append(
            "You tend to spend more at the end of the month. Try to distribute spending more evenly."
        )

    return hints
