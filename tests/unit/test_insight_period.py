import pytest
from datetime import date, datetime

from kite_insights.domain import dates
from kite_insights.domain.enums import PeriodKind
from kite_insights.domain.models import InsightPeriod, InvalidPeriodError


@pytest.mark.unit
class TestCalendarHelpers:

    def test_weeks_start_on_sunday(self):
        # 2025-03-05 is a Wednesday
        assert dates.start_of_week(date(2025, 3, 5)) == date(2025, 3, 2)
        assert dates.end_of_week(date(2025, 3, 5)) == date(2025, 3, 8)
        assert dates.start_of_week(date(2025, 3, 2)) == date(2025, 3, 2)

    def test_add_months_clamps_day(self):
        assert dates.add_months(date(2025, 1, 31), 1) == date(2025, 2, 28)
        assert dates.add_months(date(2024, 3, 31), -1) == date(2024, 2, 29)
        assert dates.add_months(date(2025, 1, 15), -13) == date(2023, 12, 15)

    def test_datetimes_truncate_to_day(self):
        assert dates.as_day(datetime(2025, 3, 5, 23, 59)) == date(2025, 3, 5)


@pytest.mark.unit
class TestInsightPeriodForKind:

    @pytest.mark.parametrize("kind,start,end,label", [
        (PeriodKind.WEEK, date(2025, 3, 2), date(2025, 3, 8), "Week of Mar 02, 2025"),
        (PeriodKind.MONTH, date(2025, 3, 1), date(2025, 3, 31), "March 2025"),
        (PeriodKind.QUARTER, date(2025, 1, 1), date(2025, 3, 31), "Q1 2025"),
        (PeriodKind.YEAR, date(2025, 1, 1), date(2025, 12, 31), "2025"),
    ])
    def test_calendar_bounds(self, kind, start, end, label):
        # Act
        period = InsightPeriod.for_kind(kind, date(2025, 3, 5))

        # Assert
        assert (period.start, period.end, period.label) == (start, end, label)

    def test_string_kind(self):
        assert InsightPeriod.for_kind("month", date(2025, 2, 10)).end == date(2025, 2, 28)

    def test_unknown_kind(self):
        with pytest.raises(InvalidPeriodError, match="Invalid period"):
            InsightPeriod.for_kind("decade", date(2025, 3, 5))

    def test_inverted_bounds(self):
        with pytest.raises(InvalidPeriodError):
            InsightPeriod(date(2025, 3, 5), date(2025, 3, 1))

    def test_custom(self):
        # Act
        period = InsightPeriod.custom(date(2025, 1, 1), date(2025, 1, 15))

        # Assert
        assert period.label == "Jan 01 - Jan 15, 2025"
        assert period.days == 15
        assert period.contains(date(2025, 1, 15))
        assert not period.contains(date(2025, 1, 16))


@pytest.mark.unit
class TestInsightPeriodPrevious:

    def test_week(self):
        previous = InsightPeriod.for_kind(PeriodKind.WEEK, date(2025, 3, 5)).previous()

        assert (previous.start, previous.end) == (date(2025, 2, 23), date(2025, 3, 1))
        assert previous.label == "Previous Week"

    def test_month_keeps_month_end(self):
        previous = InsightPeriod.for_kind(PeriodKind.MONTH, date(2025, 3, 5)).previous()

        assert (previous.start, previous.end) == (date(2025, 2, 1), date(2025, 2, 28))

    def test_quarter(self):
        previous = InsightPeriod.for_kind(PeriodKind.QUARTER, date(2025, 5, 5)).previous()

        assert (previous.start, previous.end) == (date(2025, 1, 1), date(2025, 3, 31))

    def test_year(self):
        previous = InsightPeriod.for_kind(PeriodKind.YEAR, date(2025, 5, 5)).previous()

        assert (previous.start, previous.end) == (date(2024, 1, 1), date(2024, 12, 31))
        assert previous.label == "Previous Year"
