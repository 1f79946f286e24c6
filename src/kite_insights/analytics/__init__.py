"""
Spending analytics over transaction history.

Quick Start:
    from kite_insights.analytics import AnomalyDetector, ForecastEngine, TrendAnalyzer

    anomalies = AnomalyDetector().detect(transactions, period)
    trends = TrendAnalyzer().category_trends(transactions, categories)
    forecast = ForecastEngine().forecast_next_period([100, 120, 140])
"""

from kite_insights.analytics.anomalies import AnomalyDetector
from kite_insights.analytics.forecast import ForecastEngine
from kite_insights.analytics.models import (
    AnomalyInsight,
    CategoryTrend,
    ForecastRange,
    ForecastReport,
    MerchantAnalysis,
    PeriodComparison,
    SpendingForecast,
    SpendingPatterns,
    TrendDataPoint,
)
from kite_insights.analytics.thresholds import AnalyticsThresholds
from kite_insights.analytics.trends import TrendAnalyzer

__all__ = [
    "AnalyticsThresholds",
    "AnomalyDetector",
    "AnomalyInsight",
    "CategoryTrend",
    "ForecastEngine",
    "ForecastRange",
    "ForecastReport",
    "MerchantAnalysis",
    "PeriodComparison",
    "SpendingForecast",
    "SpendingPatterns",
    "TrendAnalyzer",
    "TrendDataPoint",
]
