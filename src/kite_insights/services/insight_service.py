from datetime import date, timedelta
from typing import List, Optional

from kite_insights.analytics.anomalies import AnomalyDetector
from kite_insights.analytics.forecast import ForecastEngine
from kite_insights.analytics.models import (
    AnomalyInsight,
    CategoryTrend,
    ForecastReport,
    MerchantAnalysis,
    PeriodComparison,
)
from kite_insights.analytics.thresholds import AnalyticsThresholds
from kite_insights.analytics.trends import TrendAnalyzer
from kite_insights.categorization.engine import RuleEngine
from kite_insights.domain.enums import PeriodKind
from kite_insights.domain.models import InsightPeriod, Transaction
from kite_insights.repositories.base import TransactionStore
from kite_insights.services.models import InsightSummary
from kite_insights.services.orchestrator import InsightOrchestrator


class InsightService:
    """
    Entry point for callers holding a store.

    Each operation reads the store once and hands plain values to the
    stateless engines, so concurrent calls never interfere.
    """

    def __init__(
        self,
        store: TransactionStore,
        thresholds: Optional[AnalyticsThresholds] = None,
        rule_engine: Optional[RuleEngine] = None,
    ):
        self.store = store
        self._thresholds: Optional[AnalyticsThresholds] = thresholds
        self.rule_engine = rule_engine or RuleEngine()

    @property
    def thresholds(self) -> AnalyticsThresholds:
        """Lazy-load thresholds from config"""
        if self._thresholds is None:
            self._thresholds = AnalyticsThresholds.from_config()
        return self._thresholds

    def categorize_all(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        overwrite: bool = False,
    ) -> List[Transaction]:
        """
        Propose categories for stored transactions using the stored rules.

        Args:
            start_date: Only categorize transactions on or after this date
            end_date: Only categorize transactions on or before this date
            overwrite: If True, re-categorize already categorized transactions

        Returns:
            Categorized copies; the caller decides whether to persist them

        Example:
            ```
            # Fill in categories for January
            txns = service.categorize_all(
                start_date=date(2025, 1, 1),
                end_date=date(2025, 1, 31),
            )
            ```
        """
        transactions = self.store.list_transactions(start_date, end_date)
        if not transactions:
            return []
        return self.rule_engine.categorize_many(
            transactions, self.store.list_rules(), overwrite=overwrite
        )

    def summarize(self, period: InsightPeriod) -> InsightSummary:
        """Full insight summary for a period, using all earlier history."""
        transactions = self.store.list_transactions(end=period.end)
        categories = self.store.list_categories()
        return InsightOrchestrator(self.thresholds).summarize(transactions, categories, period)

    def detect_anomalies(self, period: InsightPeriod) -> List[AnomalyInsight]:
        transactions = self.store.list_transactions(end=period.end)
        return AnomalyDetector(self.thresholds).detect(transactions, period)

    def forecast(self, months_back: int = 6, as_of: Optional[date] = None) -> ForecastReport:
        as_of = as_of or date.today()
        transactions = self.store.list_transactions(end=as_of)
        return ForecastEngine(self.thresholds).generate_forecast(
            transactions, self.store.list_categories(), months_back=months_back, as_of=as_of
        )

    def category_trends(self, months_back: int = 3, as_of: Optional[date] = None) -> List[CategoryTrend]:
        as_of = as_of or date.today()
        return TrendAnalyzer(self.thresholds).category_trends(
            self.store.list_transactions(end=as_of),
            self.store.list_categories(),
            months_back=months_back,
            as_of=as_of,
        )

    def merchant_analysis(self, months_back: int = 6, as_of: Optional[date] = None) -> List[MerchantAnalysis]:
        as_of = as_of or date.today()
        return TrendAnalyzer(self.thresholds).merchant_analysis(
            self.store.list_transactions(end=as_of),
            months_back=months_back,
            as_of=as_of,
            categories=self.store.list_categories(),
        )

    def compare_periods(
        self,
        period_kind: PeriodKind | str,
        anchor_date: Optional[date] = None,
    ) -> PeriodComparison:
        """
        Compare the calendar window around `anchor_date` with the one before.

        Only the two windows are read from the store.
        """
        anchor_date = anchor_date or date.today()
        current = InsightPeriod.for_kind(period_kind, anchor_date)
        previous = InsightPeriod.for_kind(period_kind, current.start - timedelta(days=1))
        transactions = self.store.list_transactions(previous.start, current.end)
        return TrendAnalyzer(self.thresholds).compare_periods(
            transactions, period_kind, anchor_date
        )
