"""
Service layer models - DTOs for insight summaries.

These are presentation-ready results, not domain entities. Every one
serializes with `to_dict()`.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import List

from kite_insights.analytics.models import AnomalyInsight
from kite_insights.domain.enums import PredictionType, TrendDirection
from kite_insights.domain.models import InsightPeriod
from kite_insights.serialization import JsonMixin


@dataclass(frozen=True)
class CashFlowSummary(JsonMixin):
    """
    Money in vs money out for a period.

    `savings_rate` is the share of income kept, 0 when there is no income.
    """
    income: float = 0.0
    expenses: float = 0.0
    net_flow: float = 0.0
    savings_rate: float = 0.0


@dataclass(frozen=True)
class MerchantSpending(JsonMixin):
    merchant: str
    amount: float
    count: int
    last_transaction: date


@dataclass(frozen=True)
class CategoryInsight(JsonMixin):
    """Spending in one category, with its trend against the previous window"""
    category_id: str
    category_name: str
    total_spent: float
    percentage: float
    transaction_count: int
    average_transaction: float
    trend: TrendDirection
    trend_percentage: float
    top_merchants: List[MerchantSpending] = field(default_factory=list)


@dataclass(frozen=True)
class SpendingTrend(JsonMixin):
    """Spending inside one sub-interval of the reporting period"""
    start: date
    end: date
    label: str
    total_spent: float
    transaction_count: int
    average_transaction: float
    percentage_change: float
    is_anomaly: bool = False


@dataclass(frozen=True)
class PredictiveInsight(JsonMixin):
    type: PredictionType
    prediction: float
    confidence: float
    basis: str
    recommendations: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class InsightSummary(JsonMixin):
    period: InsightPeriod
    cash_flow: CashFlowSummary
    trends: List[SpendingTrend] = field(default_factory=list)
    categories: List[CategoryInsight] = field(default_factory=list)
    predictions: List[PredictiveInsight] = field(default_factory=list)
    anomalies: List[AnomalyInsight] = field(default_factory=list)

    def __str__(self) -> str:
        """Human-readable summary"""
        flow = self.cash_flow
        lines = [
            f"📊 Insights - {self.period.label or self.period.start}",
            f"  💰 Income:   ${flow.income:,.2f}",
            f"  💸 Expenses: ${flow.expenses:,.2f}",
            f"  {'📈' if flow.net_flow >= 0 else '📉'} Net:      ${flow.net_flow:,.2f} "
            f"({flow.savings_rate:.1f}% saved)",
        ]

        if self.categories:
            lines.append("\nTop Spending Categories:")
            for insight in self.categories[:5]:
                lines.append(f"  • {insight.category_name}: ${insight.total_spent:,.2f}")

        if self.anomalies:
            lines.append(f"\n⚠️  {len(self.anomalies)} anomalies detected")

        return "\n".join(lines)
