"""
Rule data model.

A `Rule` is an ordered, conditionally-applied mapping from transactions to
a category. Evaluation order and override semantics live in
`RuleEngine`; this module only describes rules and checks their shape.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from kite_insights.categorization.conditions import (
    Condition,
    RuleValidationError,
    compile_pattern,
)
from kite_insights.domain.enums import ConditionOperator
from kite_insights.domain.models import Transaction
from kite_insights.logging_setup import get_logger
from kite_insights.serialization import JsonMixin

logger = get_logger(__name__)


@dataclass(frozen=True)
class RuleAction:
    """What a matching rule does. The only action is assigning a category."""
    set_category_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {"setCategoryId": self.set_category_id}


@dataclass(frozen=True)
class Rule:
    """
    A categorization rule.

    Lower `priority` evaluates first; ties keep insertion order. All
    conditions must hold for the rule to match (an empty list always
    matches). `stop_processing` halts evaluation after this rule matches.
    """
    id: str
    name: str
    conditions: List[Condition] = field(default_factory=list)
    actions: List[RuleAction] = field(default_factory=list)
    priority: int = 0
    enabled: bool = True
    stop_processing: bool = False

    @property
    def category_id(self) -> Optional[str]:
        """Category set by this rule (the last category action wins)."""
        category_id = None
        for action in self.actions:
            if action.set_category_id:
                category_id = action.set_category_id
        return category_id

    def matches(self, transaction: Transaction) -> bool:
        return all(condition.matches(transaction) for condition in self.conditions)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rule":
        """
        Build a rule from its stored form.

        Config format:
            {
                "id": "r1",
                "name": "Groceries",
                "priority": 1,
                "enabled": true,
                "stopProcessing": false,
                "conditions": [{"field": "merchant", "op": "contains", "value": "tesco"}],
                "actions": [{"setCategoryId": "groceries"}]
            }

        Raises:
            RuleValidationError: If the definition is malformed
        """
        result = validate_rule(data)
        if not result.is_valid:
            raise RuleValidationError(result.errors)

        return cls(
            id=str(data["id"]),
            name=data["name"],
            priority=int(data.get("priority", 0)),
            enabled=bool(data.get("enabled", True)),
            stop_processing=bool(data.get("stopProcessing", False)),
            conditions=[Condition.from_dict(c) for c in data["conditions"]],
            actions=[RuleAction(a["setCategoryId"]) for a in data["actions"]],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "priority": self.priority,
            "enabled": self.enabled,
            "stopProcessing": self.stop_processing,
            "conditions": [c.to_dict() for c in self.conditions],
            "actions": [a.to_dict() for a in self.actions],
        }

    def __repr__(self) -> str:
        return f"Rule({self.id!r}, priority={self.priority}, {len(self.conditions)} conditions)"


@dataclass
class RuleSet:
    """Ordered collection of rules as the store hands them over."""
    rules: List[Rule] = field(default_factory=list)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "RuleSet":
        """
        Build a rule set, skipping rules that fail validation.

        A bad rule is logged and dropped so it cannot block the rest.
        """
        rules = []
        for index, rule_def in enumerate(config.get("rules", [])):
            result = validate_rule(rule_def)
            if not result.is_valid:
                rule_id = rule_def.get("id", index) if isinstance(rule_def, dict) else index
                logger.warning(
                    "Skipping invalid rule %s: %s", rule_id, "; ".join(result.errors)
                )
                continue
            rules.append(Rule.from_dict(rule_def))
        return cls(rules)

    def to_config(self) -> Dict[str, Any]:
        return {"rules": [rule.to_dict() for rule in self.rules]}

    def __iter__(self) -> Iterator[Rule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)


@dataclass(frozen=True)
class RuleValidationResult(JsonMixin):
    is_valid: bool
    errors: List[str] = field(default_factory=list)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _validate_condition(index: int, condition: Any) -> List[str]:
    prefix = f"Condition {index}"
    if not isinstance(condition, dict):
        return [f"{prefix}: Must be an object"]

    errors = []
    field_name = condition.get("field")
    op = condition.get("op")
    value = condition.get("value")

    if field_name not in ("merchant", "description", "amount"):
        errors.append(f"{prefix}: Invalid field")
    if op not in [o.value for o in ConditionOperator]:
        errors.append(f"{prefix}: Invalid operator")

    if op == "range":
        if field_name != "amount":
            errors.append(f"{prefix}: Range operator is only valid for the amount field")
        if not isinstance(value, dict) or "min" not in value or "max" not in value:
            errors.append(f"{prefix}: Range operator requires min and max values")
        elif not (_is_number(value["min"]) and _is_number(value["max"])):
            errors.append(f"{prefix}: Range min and max must be numbers")
        elif value["min"] > value["max"]:
            errors.append(f"{prefix}: Range min cannot be greater than max")
        return errors

    if value is None or (isinstance(value, str) and not value.strip()):
        errors.append(f"{prefix}: Value is required")
    elif field_name == "amount" and op == "eq" and not _is_number(value):
        errors.append(f"{prefix}: Amount must be a number")
    elif op == "regex" and compile_pattern(str(value)) is None:
        errors.append(f"{prefix}: Invalid regular expression")

    return errors


def validate_rule(data: Dict[str, Any]) -> RuleValidationResult:
    """
    Check a rule definition the way the rule editor does before saving.

    Never raises; every problem found is reported.

    Args:
        data: Rule in its stored (camelCase) form

    Returns:
        Validation result with one message per problem
    """
    if not isinstance(data, dict):
        return RuleValidationResult(False, ["Rule must be an object"])

    errors: List[str] = []

    if data.get("id") in (None, ""):
        errors.append("Rule id is required")

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        errors.append("Rule name is required")

    priority = data.get("priority", 0)
    if not isinstance(priority, int) or isinstance(priority, bool):
        errors.append("Priority must be an integer")
    elif priority < 0:
        errors.append("Priority must be non-negative")

    conditions = data.get("conditions") or []
    if not isinstance(conditions, list) or not conditions:
        errors.append("At least one condition is required")
    else:
        for index, condition in enumerate(conditions, start=1):
            errors.extend(_validate_condition(index, condition))

    actions = data.get("actions") or []
    if not isinstance(actions, list) or not actions:
        errors.append("At least one action is required")
    else:
        for index, action in enumerate(actions, start=1):
            if not isinstance(action, dict) or "setCategoryId" not in action:
                errors.append(f"Action {index}: No action specified")
            elif not isinstance(action["setCategoryId"], str) or not action["setCategoryId"].strip():
                errors.append(f"Action {index}: Category ID cannot be empty")

    return RuleValidationResult(is_valid=not errors, errors=errors)
