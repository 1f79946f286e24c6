"""
Anomaly detection over a reporting period.

Four independent checks run over the expenses and incomes dated inside
the period. Each produces `AnomalyInsight`s whose ids are content hashes,
so the same transactions always yield the same anomalies.
"""
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from kite_insights.analytics import statistics
from kite_insights.analytics.models import AnomalyInsight
from kite_insights.analytics.thresholds import AnalyticsThresholds
from kite_insights.domain.enums import AnomalyType, Severity
from kite_insights.domain.models import InsightPeriod, Transaction
from kite_insights.logging_setup import get_logger

logger = get_logger(__name__)

UNKNOWN_MERCHANT = "unknown"


class AnomalyDetector:
    """
    Flags large transactions, duplicate charges, daily spending spikes and
    high-value first visits to new merchants.

    Usage:
        detector = AnomalyDetector()
        anomalies = detector.detect(transactions, InsightPeriod.for_kind("month", today))
    """

    def __init__(self, thresholds: Optional[AnalyticsThresholds] = None):
        self.thresholds = thresholds or AnalyticsThresholds()

    def detect(
        self,
        transactions: Iterable[Transaction],
        period: InsightPeriod,
        detected_at: Optional[datetime] = None,
    ) -> List[AnomalyInsight]:
        """
        Run every check over the transactions inside `period`.

        Transactions dated before the period only serve as merchant history
        for the new-merchant check.

        Args:
            transactions: Transactions, possibly including earlier history
            period: Reporting window (both bounds inclusive)
            detected_at: Timestamp stamped on every result (default: now, UTC)

        Returns:
            Outliers, then duplicates, then spikes, then new merchants
        """
        history = sorted(transactions, key=lambda t: (t.day, t.id))
        candidates = [t for t in history if period.contains(t.day)]
        detected_at = detected_at or datetime.now(timezone.utc)

        anomalies = []
        anomalies.extend(self.find_outliers(candidates, detected_at))
        anomalies.extend(self.find_duplicates(candidates, detected_at))
        anomalies.extend(self.find_spikes(candidates, detected_at))
        anomalies.extend(self.find_new_merchants(history, period, detected_at))

        logger.debug("Detected %d anomalies in %d transactions", len(anomalies), len(candidates))
        return anomalies

    def severity_for(self, z: float) -> Severity:
        if z > self.thresholds.alert_z_threshold:
            return Severity.ALERT
        if z > self.thresholds.warning_z_threshold:
            return Severity.WARNING
        return Severity.INFO

    def find_outliers(
        self,
        transactions: List[Transaction],
        detected_at: datetime,
    ) -> List[AnomalyInsight]:
        """Transactions whose absolute amount is far above the set's mean."""
        amounts = [t.magnitude for t in transactions]
        mu = statistics.mean(amounts)
        sigma = statistics.stddev(amounts)

        outliers = []
        for txn, amount in zip(transactions, amounts):
            z = statistics.z_score(amount, mu, sigma)
            if z <= self.thresholds.outlier_z_threshold:
                continue
            outliers.append(AnomalyInsight.create(
                AnomalyType.LARGE_TRANSACTION,
                self.severity_for(z),
                [txn.id],
                float(txn.amount),
                f"Transaction of {amount:.2f} is {z:.1f} standard deviations above average",
                detected_at,
            ))
        return outliers

    def find_duplicates(
        self,
        transactions: List[Transaction],
        detected_at: datetime,
    ) -> List[AnomalyInsight]:
        """Clusters sharing amount, merchant and day."""
        groups: Dict[Tuple[object, str, date], List[Transaction]] = defaultdict(list)
        for txn in transactions:
            key = (txn.amount, txn.merchant or UNKNOWN_MERCHANT, txn.day)
            groups[key].append(txn)

        duplicates = []
        for (amount, merchant, _), txns in groups.items():
            if len(txns) < 2:
                continue
            duplicates.append(AnomalyInsight.create(
                AnomalyType.DUPLICATE,
                Severity.WARNING,
                [t.id for t in txns],
                float(amount),
                f"Possible duplicate transactions: {len(txns)} transactions of "
                f"{float(amount):.2f} to {merchant}",
                detected_at,
            ))
        return duplicates

    def find_spikes(
        self,
        transactions: List[Transaction],
        detected_at: datetime,
    ) -> List[AnomalyInsight]:
        """
        Days whose total spending exceeds mean + spike_sigma * stddev of
        daily totals. Needs more than `min_days_for_spikes` spending days.
        """
        by_day: Dict[date, List[Transaction]] = defaultdict(list)
        for txn in transactions:
            if txn.is_expense:
                by_day[txn.day].append(txn)

        if len(by_day) <= self.thresholds.min_days_for_spikes:
            return []

        totals = {day: sum(t.magnitude for t in txns) for day, txns in by_day.items()}
        mu = statistics.mean(list(totals.values()))
        sigma = statistics.stddev(list(totals.values()))
        if sigma == 0:
            return []

        cutoff = mu + self.thresholds.spike_sigma * sigma
        spikes = []
        for day, total in totals.items():
            if total <= cutoff:
                continue
            z = statistics.z_score(total, mu, sigma)
            severity = Severity.WARNING if z > self.thresholds.warning_z_threshold else Severity.INFO
            spikes.append(AnomalyInsight.create(
                AnomalyType.SPENDING_SPIKE,
                severity,
                [t.id for t in by_day[day]],
                total,
                f"Unusual spending of {total:.2f} on {day.isoformat()} ({z:.1f}σ above average)",
                detected_at,
            ))
        return spikes

    def find_new_merchants(
        self,
        history: List[Transaction],
        period: InsightPeriod,
        detected_at: datetime,
    ) -> List[AnomalyInsight]:
        """
        First-ever visits to a merchant near the end of the period that are
        well above the period's mean expense.

        Args:
            history: All known transactions, sorted by day
        """
        period_expenses = [t.magnitude for t in history if t.is_expense and period.contains(t.day)]
        mu = statistics.mean(period_expenses)
        if mu == 0:
            return []

        window_start = max(
            period.start,
            period.end - timedelta(days=self.thresholds.new_merchant_window_days - 1),
        )
        cutoff = mu * self.thresholds.new_merchant_mean_multiple

        seen = set()
        found = []
        for txn in history:
            if not txn.is_expense or not txn.merchant or txn.day > period.end:
                continue
            if txn.merchant in seen:
                continue
            seen.add(txn.merchant)

            if txn.day >= window_start and txn.magnitude > cutoff:
                found.append(AnomalyInsight.create(
                    AnomalyType.NEW_MERCHANT,
                    Severity.INFO,
                    [txn.id],
                    float(txn.amount),
                    f"First transaction at {txn.merchant}: {txn.magnitude:.2f} "
                    f"is over {self.thresholds.new_merchant_mean_multiple:g}x the average expense",
                    detected_at,
                ))
        return found
