"""
Rule conditions.

A condition is one predicate over a transaction field. The set of shapes
is closed:

- ``TextCondition``: ``eq`` / ``contains`` / ``regex`` against the string
  form of any field (case-insensitive).
- ``AmountEquals``: exact numeric equality on the absolute amount.
- ``AmountRange``: ``min <= |amount| <= max``.

Only ``Condition.from_dict`` can fail; ``matches`` never raises.
"""
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from typing import Any, Dict, List, Optional

from kite_insights.domain.enums import ConditionField, ConditionOperator
from kite_insights.domain.models import Transaction
from kite_insights.logging_setup import get_logger

logger = get_logger(__name__)

TEXT_OPERATORS = (ConditionOperator.EQ, ConditionOperator.CONTAINS, ConditionOperator.REGEX)


class RuleValidationError(ValueError):
    """Raised when a rule or condition definition is malformed."""

    def __init__(self, errors: List[str] | str):
        self.errors = [errors] if isinstance(errors, str) else list(errors)
        super().__init__("; ".join(self.errors))


@lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> Optional[re.Pattern]:
    """
    Compile a user pattern, case-insensitive.

    Returns None for malformed patterns. The result is cached so each bad
    pattern is only reported once.
    """
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        logger.warning("Ignoring malformed regex %r: %s", pattern, e)
        return None


def parse_decimal(value: Any, label: str = "value") -> Decimal:
    """Strictly parse a numeric condition value."""
    if isinstance(value, bool) or value is None:
        raise RuleValidationError(f"{label} must be a number")
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise RuleValidationError(f"{label} must be a number, got {value!r}") from None
    if not parsed.is_finite():
        raise RuleValidationError(f"{label} must be finite, got {value!r}")
    return parsed


def field_text(transaction: Transaction, field: ConditionField) -> str:
    """String form of a transaction field as seen by text conditions."""
    if field == ConditionField.DESCRIPTION:
        return transaction.description or ""
    if field == ConditionField.MERCHANT:
        return transaction.merchant or ""
    return str(abs(transaction.amount))


class Condition(ABC):
    """Abstract base for a single rule predicate."""

    field: ConditionField
    op: ConditionOperator

    @abstractmethod
    def matches(self, transaction: Transaction) -> bool:
        """
        Check the predicate against a transaction.

        Args:
            transaction: Transaction to check

        Returns:
            True if the predicate holds
        """
        pass

    @abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        pass

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Condition":
        """
        Build a condition from its stored form.

        Config format:
            {"field": "merchant", "op": "contains", "value": "tesco"}
            {"field": "amount", "op": "range", "value": {"min": 20, "max": 30}}

        Raises:
            RuleValidationError: Unknown field/op, `range` on a text field,
                or a value of the wrong shape
        """
        if not isinstance(data, dict):
            raise RuleValidationError("Condition must be an object")

        try:
            field = ConditionField(data.get("field"))
        except ValueError:
            raise RuleValidationError(f"Invalid field: {data.get('field')!r}") from None
        try:
            op = ConditionOperator(data.get("op"))
        except ValueError:
            raise RuleValidationError(f"Invalid operator: {data.get('op')!r}") from None

        value = data.get("value")

        if op == ConditionOperator.RANGE:
            if field != ConditionField.AMOUNT:
                raise RuleValidationError("Range operator is only valid for the amount field")
            if not isinstance(value, dict) or "min" not in value or "max" not in value:
                raise RuleValidationError("Range operator requires min and max values")
            return AmountRange(
                minimum=parse_decimal(value["min"], "min"),
                maximum=parse_decimal(value["max"], "max"),
            )

        if field == ConditionField.AMOUNT and op == ConditionOperator.EQ:
            return AmountEquals(parse_decimal(value))

        if isinstance(value, bool) or not isinstance(value, (str, int, float, Decimal)):
            raise RuleValidationError(f"{op.value} requires a text value")
        text = str(value)
        if not text.strip():
            raise RuleValidationError("Value is required")
        return TextCondition(field=field, op=op, value=text)


@dataclass(frozen=True)
class TextCondition(Condition):
    """Case-insensitive eq/contains/regex on a field's string form."""
    field: ConditionField
    op: ConditionOperator
    value: str

    def __post_init__(self):
        if self.op not in TEXT_OPERATORS:
            raise RuleValidationError(f"{self.op.value} is not a text operator")

    def matches(self, transaction: Transaction) -> bool:
        text = field_text(transaction, self.field)

        if self.op == ConditionOperator.EQ:
            return text.casefold() == self.value.casefold()

        if self.op == ConditionOperator.CONTAINS:
            return self.value.casefold() in text.casefold()

        pattern = compile_pattern(self.value)
        if pattern is None:
            return False
        return pattern.search(text) is not None

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field.value, "op": self.op.value, "value": self.value}


@dataclass(frozen=True)
class AmountEquals(Condition):
    """Exact match on the absolute amount, so inflow/outflow sign is irrelevant."""
    value: Decimal

    field = ConditionField.AMOUNT
    op = ConditionOperator.EQ

    def matches(self, transaction: Transaction) -> bool:
        return abs(Decimal(str(transaction.amount))) == abs(self.value)

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field.value, "op": self.op.value, "value": float(self.value)}


@dataclass(frozen=True)
class AmountRange(Condition):
    """
    Inclusive bounds on the absolute amount.

    Inverted bounds are swapped before comparing; `validate_rule` still
    reports them at save time.
    """
    minimum: Decimal
    maximum: Decimal

    field = ConditionField.AMOUNT
    op = ConditionOperator.RANGE

    @property
    def bounds(self) -> tuple[Decimal, Decimal]:
        if self.minimum > self.maximum:
            return self.maximum, self.minimum
        return self.minimum, self.maximum

    def matches(self, transaction: Transaction) -> bool:
        low, high = self.bounds
        return low <= abs(Decimal(str(transaction.amount))) <= high

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field.value,
            "op": self.op.value,
            "value": {"min": float(self.minimum), "max": float(self.maximum)},
        }
