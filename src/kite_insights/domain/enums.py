from enum import Enum


class ConditionField(Enum):
    """Transaction field a rule condition inspects"""
    DESCRIPTION = "description"
    MERCHANT = "merchant"
    AMOUNT = "amount"


class ConditionOperator(Enum):
    """How a condition compares the field against its value"""
    EQ = "eq"
    CONTAINS = "contains"
    REGEX = "regex"
    RANGE = "range" # amount only


class TrendDirection(Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class MerchantFrequency(Enum):
    """Buckets for the average gap between visits to a merchant"""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    OCCASIONAL = "occasional"


class AnomalyType(Enum):
    LARGE_TRANSACTION = "large_transaction"
    DUPLICATE = "duplicate"
    SPENDING_SPIKE = "spending_spike"
    NEW_MERCHANT = "new_merchant"


class Severity(Enum):
    INFO = "info"
    WARNING = "warning"
    ALERT = "alert"


class PeriodKind(Enum):
    """User-facing reporting periods"""
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


class Granularity(Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class PredictionType(Enum):
    SPENDING = "spending"
    SAVING = "saving"
