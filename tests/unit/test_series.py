import pytest
from datetime import date

from kite_insights.analytics.series import bucket_totals, period_buckets
from kite_insights.domain.enums import Granularity
from conftest import make_transaction


@pytest.mark.unit
class TestPeriodBuckets:

    def test_monthly_buckets_have_calendar_lengths(self):
        buckets = period_buckets(date(2025, 1, 15), date(2025, 3, 2), Granularity.MONTHLY)

        assert buckets == [
            (date(2025, 1, 1), date(2025, 1, 31)),
            (date(2025, 2, 1), date(2025, 2, 28)),
            (date(2025, 3, 1), date(2025, 3, 31)),
        ]

    def test_weekly_buckets_run_sunday_to_saturday(self):
        buckets = period_buckets(date(2025, 3, 5), date(2025, 3, 12), Granularity.WEEKLY)

        assert buckets == [
            (date(2025, 3, 2), date(2025, 3, 8)),
            (date(2025, 3, 9), date(2025, 3, 15)),
        ]

    def test_yearly(self):
        assert period_buckets(date(2024, 6, 1), date(2025, 1, 1), Granularity.YEARLY) == [
            (date(2024, 1, 1), date(2024, 12, 31)),
            (date(2025, 1, 1), date(2025, 12, 31)),
        ]


@pytest.mark.unit
class TestBucketTotals:

    def test_zero_filled_monthly_expenses(self):
        # Arrange
        transactions = [
            make_transaction(-100, day=date(2025, 1, 10)),
            make_transaction(-50.5, day=date(2025, 3, 1)),
            make_transaction(-25, day=date(2025, 3, 31)),
            make_transaction(4000, day=date(2025, 3, 15)),
            make_transaction(-999, day=date(2024, 12, 31)),
        ]

        # Act
        totals = bucket_totals(transactions, date(2025, 1, 1), date(2025, 3, 31))

        # Assert
        assert totals == [100.0, 0.0, 75.5]

    def test_income_totals(self):
        # Arrange
        transactions = [
            make_transaction(4000, day=date(2025, 1, 15)),
            make_transaction(-20, day=date(2025, 1, 16)),
        ]

        # Act
        totals = bucket_totals(transactions, date(2025, 1, 1), date(2025, 2, 28), income=True)

        # Assert
        assert totals == [4000.0, 0.0]

    def test_no_transactions(self):
        assert bucket_totals([], date(2025, 1, 1), date(2025, 1, 7), Granularity.DAILY) == [0.0] * 7
