"""
Rule-based transaction categorization.

Quick Start:
    >>> from kite_insights.categorization import RuleEngine, load_rule_set
    >>>
    >>> rules = load_rule_set()
    >>> assignment = RuleEngine().categorize(transaction, rules)
    >>> print(f"Categorized as: {assignment.category_id if assignment else None}")
"""
from kite_insights.categorization.conditions import (
    AmountEquals,
    AmountRange,
    Condition,
    RuleValidationError,
    TextCondition,
)
from kite_insights.categorization.engine import (
    CategoryAssignment,
    RuleEngine,
    RulePreview,
    load_rule_set,
)
from kite_insights.categorization.rules import (
    Rule,
    RuleAction,
    RuleSet,
    RuleValidationResult,
    validate_rule,
)

__all__ = [
    "AmountEquals",
    "AmountRange",
    "CategoryAssignment",
    "Condition",
    "Rule",
    "RuleAction",
    "RuleEngine",
    "RulePreview",
    "RuleSet",
    "RuleValidationError",
    "RuleValidationResult",
    "TextCondition",
    "load_rule_set",
    "validate_rule",
]
