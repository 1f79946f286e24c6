"""
Statistical thresholds used by the analytics components.

Defaults live here as named constants; `analytics.json` can override any
of them without touching algorithm code.
"""
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional

from kite_insights.config.settings import ConfigLoader

OUTLIER_Z_THRESHOLD = 2.5
ALERT_Z_THRESHOLD = 4.0
WARNING_Z_THRESHOLD = 3.0
SPIKE_SIGMA = 2.0
MIN_DAYS_FOR_SPIKES = 7
NEW_MERCHANT_WINDOW_DAYS = 30
NEW_MERCHANT_MEAN_MULTIPLE = 2.0
CATEGORY_STABILITY_BAND = 5.0
MERCHANT_STABILITY_BAND = 10.0
INTERVAL_ANOMALY_THRESHOLD = 2.5
WEEKLY_CONFIDENCE_DISCOUNT = 10.0
MIN_TRANSACTIONS_FOR_PREDICTION = 30


@dataclass(frozen=True)
class AnalyticsThresholds:
    outlier_z_threshold: float = OUTLIER_Z_THRESHOLD
    alert_z_threshold: float = ALERT_Z_THRESHOLD
    warning_z_threshold: float = WARNING_Z_THRESHOLD
    spike_sigma: float = SPIKE_SIGMA
    min_days_for_spikes: int = MIN_DAYS_FOR_SPIKES
    new_merchant_window_days: int = NEW_MERCHANT_WINDOW_DAYS
    new_merchant_mean_multiple: float = NEW_MERCHANT_MEAN_MULTIPLE
    category_stability_band: float = CATEGORY_STABILITY_BAND
    merchant_stability_band: float = MERCHANT_STABILITY_BAND
    interval_anomaly_threshold: float = INTERVAL_ANOMALY_THRESHOLD
    weekly_confidence_discount: float = WEEKLY_CONFIDENCE_DISCOUNT
    min_transactions_for_prediction: int = MIN_TRANSACTIONS_FOR_PREDICTION

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> "AnalyticsThresholds":
        """
        Defaults with overrides applied.

        Args:
            config: Optional overrides. If None, loads from the ConfigLoader
                and falls back to defaults when no file exists.

        Raises:
            ValueError: If the config names an unknown threshold
        """
        if config is None:
            try:
                config = ConfigLoader.load_analytics_config()
            except FileNotFoundError:
                config = {}

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(config) - known)
        if unknown:
            raise ValueError(f"Unknown analytics thresholds: {', '.join(unknown)}")

        defaults = cls()
        overrides = {
            name: type(getattr(defaults, name))(value)
            for name, value in config.items()
        }
        return replace(defaults, **overrides)
