import math
import pytest
from datetime import date, datetime, timezone

from kite_insights.analytics import AnomalyDetector
from kite_insights.domain import dates
from kite_insights.domain.enums import PeriodKind, PredictionType, TrendDirection
from kite_insights.domain.models import InsightPeriod
from kite_insights.services.models import CashFlowSummary
from kite_insights.services.orchestrator import InsightOrchestrator
from conftest import make_transaction

MARCH = InsightPeriod.for_kind(PeriodKind.MONTH, date(2025, 3, 1))
DETECTED_AT = datetime(2025, 4, 1, tzinfo=timezone.utc)


@pytest.fixture
def orchestrator() -> InsightOrchestrator:
    return InsightOrchestrator()


@pytest.fixture
def march_activity():
    return [
        make_transaction(3000, day=date(2025, 3, 1), merchant="Employer", category_id="salary"),
        make_transaction(-150, day=date(2025, 3, 3), merchant="Tesco", category_id="groceries"),
        make_transaction(-50, day=date(2025, 3, 10), merchant="Tesco", category_id="groceries"),
        make_transaction(-100, day=date(2025, 3, 12), merchant="Aldi", category_id="groceries"),
        make_transaction(-100, day=date(2025, 3, 20), merchant="Pizza Place", category_id="dining"),
        make_transaction(-200, day=date(2025, 2, 10), merchant="Tesco", category_id="groceries"),
    ]


@pytest.mark.unit
class TestEmptyPeriod:

    def test_empty_transactions_give_zeroed_summary(self, orchestrator, categories):
        # Act
        summary = orchestrator.summarize([], categories, MARCH)

        # Assert
        assert summary.cash_flow == CashFlowSummary(income=0, expenses=0, net_flow=0, savings_rate=0)
        assert summary.trends == []
        assert summary.categories == []
        assert summary.predictions == []
        assert summary.anomalies == []

    def test_history_without_period_activity(self, orchestrator, categories):
        # Arrange
        earlier = [make_transaction(-40, day=date(2025, 1, 5), category_id="dining")]

        # Act
        summary = orchestrator.summarize(earlier, categories, MARCH)

        # Assert
        assert summary.cash_flow.expenses == 0
        assert summary.trends == []
        assert summary.categories == []


@pytest.mark.unit
class TestCashFlow:

    def test_income_expenses_and_savings_rate(self):
        # Arrange
        transactions = [
            make_transaction(3000),
            make_transaction(-1000),
            make_transaction(-200),
        ]

        # Act
        flow = InsightOrchestrator.cash_flow(transactions)

        # Assert
        assert flow == CashFlowSummary(income=3000, expenses=1200, net_flow=1800, savings_rate=60)

    def test_no_income_means_zero_savings_rate(self):
        flow = InsightOrchestrator.cash_flow([make_transaction(-80)])

        assert flow.net_flow == -80
        assert flow.savings_rate == 0.0
        assert math.isfinite(flow.savings_rate)


@pytest.mark.unit
class TestSummarySections:

    def test_category_insights(self, orchestrator, march_activity, categories):
        # Act
        summary = orchestrator.summarize(march_activity, categories, MARCH, DETECTED_AT)

        # Assert
        assert [c.category_id for c in summary.categories] == ["groceries", "dining"]

        groceries = summary.categories[0]
        assert groceries.total_spent == 300.0
        assert groceries.percentage == pytest.approx(75.0)
        assert groceries.transaction_count == 3
        assert groceries.average_transaction == pytest.approx(100.0)
        assert groceries.trend_percentage == pytest.approx(50.0)
        assert groceries.trend == TrendDirection.INCREASING
        assert [m.merchant for m in groceries.top_merchants] == ["Tesco", "Aldi"]
        assert groceries.top_merchants[0].count == 2
        assert groceries.top_merchants[0].last_transaction == date(2025, 3, 10)

    def test_cash_flow_uses_period_only(self, orchestrator, march_activity, categories):
        # Act
        summary = orchestrator.summarize(march_activity, categories, MARCH, DETECTED_AT)

        # Assert
        assert summary.cash_flow.income == 3000.0
        assert summary.cash_flow.expenses == 400.0

    def test_month_is_split_into_weeks(self, orchestrator, march_activity, categories):
        # Act
        trends = orchestrator.summarize(march_activity, categories, MARCH, DETECTED_AT).trends

        # Assert
        assert [(t.start, t.end) for t in trends][0] == (date(2025, 3, 1), date(2025, 3, 1))
        assert trends[-1].end == date(2025, 3, 31)
        assert len(trends) == 6
        assert sum(t.total_spent for t in trends) == pytest.approx(400.0)
        assert trends[1].label == "Mar 02"

    def test_week_is_split_into_days(self, orchestrator, march_activity, categories):
        # Arrange
        week = InsightPeriod.for_kind(PeriodKind.WEEK, date(2025, 3, 3))

        # Act
        trends = orchestrator.summarize(march_activity, categories, week, DETECTED_AT).trends

        # Assert
        assert len(trends) == 7
        assert trends[1].total_spent == 150.0

    def test_interval_anomaly_against_past_months(self, orchestrator, categories):
        # Arrange
        history = []
        for months_ago in range(1, 13):
            day = dates.add_months(date(2025, 3, 5), -months_ago)
            amount = -90 if months_ago % 2 else -110
            history.append(make_transaction(amount, day=day))
        history.append(make_transaction(-1000, day=date(2025, 3, 5)))

        # Act
        trends = orchestrator.summarize(history, categories, MARCH, DETECTED_AT).trends

        # Assert
        flagged = [t for t in trends if t.is_anomaly]
        assert [(t.start, t.end) for t in flagged] == [(date(2025, 3, 2), date(2025, 3, 8))]

    def test_trailing_weeks_after_a_short_month_compare_to_nothing(self, orchestrator, categories):
        """Test February has no days matching March 29-31, so they grow from zero"""

        # Arrange
        march = InsightPeriod.for_kind(PeriodKind.MONTH, date(2026, 3, 15))
        transactions = [
            make_transaction(-200, day=date(2026, 2, 3)),
            make_transaction(-100, day=date(2026, 3, 2)),
            make_transaction(-100, day=date(2026, 3, 30)),
        ]

        # Act
        trends = orchestrator.summarize(transactions, categories, march, DETECTED_AT).trends

        # Assert
        first, last = trends[0], trends[-1]
        assert (first.start, first.end) == (date(2026, 3, 1), date(2026, 3, 7))
        assert first.percentage_change == pytest.approx(-50.0)
        assert (last.start, last.end) == (date(2026, 3, 29), date(2026, 3, 31))
        assert last.total_spent == 100.0
        assert last.percentage_change == 100.0

    def test_interval_anomaly_needs_history(self, orchestrator, march_activity, categories):
        trends = orchestrator.summarize(march_activity, categories, MARCH, DETECTED_AT).trends

        assert not any(t.is_anomaly for t in trends)


@pytest.mark.unit
class TestPredictions:

    @pytest.fixture
    def half_year(self):
        transactions = []
        for month in range(1, 7):
            transactions.append(make_transaction(3000, day=date(2025, month, 1), category_id="salary"))
            for week in range(5):
                transactions.append(make_transaction(-100, day=date(2025, month, 2 + week * 5)))
        return transactions

    def test_spending_and_saving_predictions(self, orchestrator, half_year, categories):
        # Arrange
        june = InsightPeriod.for_kind(PeriodKind.MONTH, date(2025, 6, 1))

        # Act
        predictions = orchestrator.summarize(half_year, categories, june, DETECTED_AT).predictions

        # Assert
        spending, saving = predictions
        assert spending.type == PredictionType.SPENDING
        assert spending.prediction == pytest.approx(500.0)
        assert spending.confidence == pytest.approx(100.0)
        assert spending.basis == "Based on 6 months of data with stable trend"
        assert saving.type == PredictionType.SAVING
        assert saving.prediction == pytest.approx(2500.0)
        assert saving.recommendations[0] == "You could save 2500.00 per month"

    def test_too_little_history(self, orchestrator, march_activity, categories):
        assert orchestrator.summarize(march_activity, categories, MARCH).predictions == []


@pytest.mark.unit
class TestIsolationAndPurity:

    def test_failing_section_is_left_empty(self, march_activity, categories, mocker):
        # Arrange
        detector = mocker.Mock(spec=AnomalyDetector)
        detector.detect.side_effect = RuntimeError("boom")
        orchestrator = InsightOrchestrator(detector=detector)

        # Act
        summary = orchestrator.summarize(march_activity, categories, MARCH, DETECTED_AT)

        # Assert
        assert summary.anomalies == []
        assert summary.cash_flow.income == 3000.0
        assert len(summary.categories) == 2

    def test_summarize_is_idempotent(self, orchestrator, march_activity, categories):
        # Act
        first = orchestrator.summarize(march_activity, categories, MARCH, DETECTED_AT)
        second = orchestrator.summarize(march_activity, categories, MARCH, DETECTED_AT)

        # Assert
        assert first == second
        assert first.to_dict() == second.to_dict()

    def test_to_dict_is_json_ready(self, orchestrator, march_activity, categories):
        # Act
        data = orchestrator.summarize(march_activity, categories, MARCH, DETECTED_AT).to_dict()

        # Assert
        assert data["period"] == {"start": "2025-03-01", "end": "2025-03-31", "label": "March 2025"}
        assert data["cashFlow"]["netFlow"] == 2600.0
        assert data["categories"][0]["topMerchants"][0]["lastTransaction"] == "2025-03-10"
        assert data["trends"][0]["isAnomaly"] is False
