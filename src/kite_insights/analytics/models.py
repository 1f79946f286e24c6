"""
Derived, stateless analytics results.

All are recomputed on demand. Only `AnomalyInsight` carries an id: a
content hash of its type and transaction ids, so callers can dismiss
or dedupe alerts across runs.
"""
import hashlib
import json
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Dict, List, Optional

from kite_insights.domain.enums import (
    AnomalyType,
    MerchantFrequency,
    Severity,
    TrendDirection,
)
from kite_insights.serialization import JsonMixin


@dataclass(frozen=True)
class CategoryTrend(JsonMixin):
    category_id: str
    category_name: str
    current_month: float
    previous_month: float
    change: float
    change_percent: float
    trend: TrendDirection
    average: float
    total: float
    count: int
    sparkline: List[float] = field(default_factory=list)


@dataclass(frozen=True)
class MerchantAnalysis(JsonMixin):
    merchant: str
    total_spent: float
    transaction_count: int
    average_amount: float
    first_transaction: date
    last_transaction: date
    frequency: MerchantFrequency
    category: str
    trend: TrendDirection


@dataclass(frozen=True)
class PeriodWindow(JsonMixin):
    start: date
    end: date
    total: float
    daily: float
    transactions: int


@dataclass(frozen=True)
class PeriodChange(JsonMixin):
    amount: float
    percent: float
    daily_amount: float
    daily_percent: float
    transactions: int
    transactions_percent: float


@dataclass(frozen=True)
class PeriodComparison(JsonMixin):
    current: PeriodWindow
    previous: PeriodWindow
    change: PeriodChange


@dataclass(frozen=True)
class TrendDataPoint(JsonMixin):
    """Expense activity inside one calendar bucket."""
    start: date
    end: date
    amount: float
    count: int
    average: float
    categories: Dict[str, float] = field(default_factory=dict)
    merchants: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class DayOfWeekSpend(JsonMixin):
    total: float
    average: float
    count: int


@dataclass(frozen=True)
class SpendingPatterns(JsonMixin):
    """When money goes out: weekday, part of month, season."""
    day_of_week: Dict[str, DayOfWeekSpend]
    time_of_month: Dict[str, float]
    seasonal: Dict[str, float]


@dataclass(frozen=True)
class AnomalyInsight(JsonMixin):
    id: str
    type: AnomalyType
    severity: Severity
    transaction_ids: List[str]
    amount: float
    description: str
    detected_at: datetime = field(compare=False)
    dismissed: bool = False

    @staticmethod
    def content_id(anomaly_type: AnomalyType, transaction_ids: List[str]) -> str:
        """Deterministic id from the anomaly's type and transactions."""
        payload = json.dumps(
            {"type": anomaly_type.value, "transactionIds": list(transaction_ids)},
            sort_keys=True,
            separators=(",", ":"),
        )
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]

    @classmethod
    def create(
        cls,
        anomaly_type: AnomalyType,
        severity: Severity,
        transaction_ids: List[str],
        amount: float,
        description: str,
        detected_at: Optional[datetime] = None,
    ) -> "AnomalyInsight":
        return cls(
            id=cls.content_id(anomaly_type, transaction_ids),
            type=anomaly_type,
            severity=severity,
            transaction_ids=list(transaction_ids),
            amount=amount,
            description=description,
            detected_at=detected_at or datetime.now(timezone.utc),
        )


@dataclass(frozen=True)
class ForecastRange(JsonMixin):
    low: float
    high: float


@dataclass(frozen=True)
class SpendingForecast(JsonMixin):
    """
    Next-period prediction.

    `insufficient_history` marks a fallback result (fewer than two data
    points) whose confidence is 0.
    """
    predicted: float
    confidence: float
    range: ForecastRange
    insufficient_history: bool = False


@dataclass(frozen=True)
class ForecastReport(JsonMixin):
    next_month: SpendingForecast
    next_week: SpendingForecast
    by_category: Dict[str, float] = field(default_factory=dict)
    daily_breakdown: List[float] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
