import dataclasses
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from kite_insights.categorization.conditions import RuleValidationError
from kite_insights.categorization.rules import Rule, RuleSet
from kite_insights.config.settings import ConfigLoader
from kite_insights.domain.models import Transaction
from kite_insights.logging_setup import get_logger
from kite_insights.serialization import JsonMixin

logger = get_logger(__name__)


@dataclass(frozen=True)
class CategoryAssignment(JsonMixin):
    """Category proposed for a transaction and the rule that set it."""
    category_id: str
    rule_id: str


@dataclass(frozen=True)
class RulePreview(JsonMixin):
    """Which rules would fire for a transaction and where it would end up."""
    transaction: Transaction
    matched_rule_ids: List[str] = field(default_factory=list)
    proposed_category_id: Optional[str] = None

    @property
    def changes_category(self) -> bool:
        return (
            self.proposed_category_id is not None
            and self.proposed_category_id != self.transaction.category_id
        )


class RuleEngine:
    """
    Assigns categories to transactions from a prioritized list of rules.

    Evaluation:
    1. Only enabled rules, ascending priority, ties in insertion order
    2. A rule matches when all of its conditions hold
    3. Every matching rule that sets a category overrides the previous
       assignment, so the last match wins...
    4. ...unless a matching rule has `stop_processing`, which ends evaluation

    The engine holds no state: rules are passed on every call, and
    evaluation never raises. A rule that errors is logged and skipped.

    Usage:
        engine = RuleEngine()
        assignment = engine.categorize(transaction, rules)
        if assignment:
            print(assignment.category_id, assignment.rule_id)
    """

    @staticmethod
    def ordered(rules: Iterable[Rule]) -> List[Rule]:
        """Enabled rules in evaluation order."""
        return sorted((r for r in rules if r.enabled), key=lambda r: r.priority)

    def _evaluate(
        self,
        transaction: Transaction,
        rules: Iterable[Rule],
    ) -> Tuple[Optional[CategoryAssignment], List[Rule]]:
        assignment: Optional[CategoryAssignment] = None
        matched: List[Rule] = []

        for rule in self.ordered(rules):
            try:
                is_match = rule.matches(transaction)
            except Exception:
                logger.warning(
                    "Rule %r failed on transaction %r, skipping",
                    rule.id, transaction.id, exc_info=True,
                )
                continue

            if not is_match:
                continue

            matched.append(rule)
            category_id = rule.category_id
            if category_id:
                assignment = CategoryAssignment(category_id=category_id, rule_id=rule.id)

            if rule.stop_processing:
                break

        return assignment, matched

    def categorize(
        self,
        transaction: Transaction,
        rules: Iterable[Rule],
    ) -> Optional[CategoryAssignment]:
        """
        Categorize a single transaction.

        Args:
            transaction: Transaction to categorize
            rules: Rules in any order (RuleSet or list)

        Returns:
            The category from the last matching rule, or None if no rule
            matched

        Example:
            ```
            >>> engine = RuleEngine()
            >>> engine.categorize(txn, rules)
            CategoryAssignment(category_id='groceries', rule_id='r1')
            ```
        """
        assignment, _ = self._evaluate(transaction, list(rules))
        return assignment

    def categorize_many(
        self,
        transactions: Iterable[Transaction],
        rules: Iterable[Rule],
        overwrite: bool = False,
    ) -> List[Transaction]:
        """
        Categorize multiple transactions.

        Args:
            transactions: Transactions to categorize
            rules: Rules to evaluate
            overwrite: If True, re-categorize transactions that already have
                a category. If False, only fill in missing categories.

        Returns:
            Copies of the transactions with the proposed `category_id`.
            Inputs are never modified.
        """
        rules = self.ordered(rules)
        categorized = []

        for txn in transactions:
            if not overwrite and txn.category_id:
                categorized.append(txn)
                continue

            assignment = self.categorize(txn, rules)
            if assignment is None:
                categorized.append(txn)
                continue

            categorized.append(dataclasses.replace(txn, category_id=assignment.category_id))

        return categorized

    def preview(self, transaction: Transaction, rules: Iterable[Rule]) -> RulePreview:
        """
        Show every rule that would fire for a transaction, in order,
        and the category it would end up with.
        """
        assignment, matched = self._evaluate(transaction, list(rules))
        return RulePreview(
            transaction=transaction,
            matched_rule_ids=[rule.id for rule in matched],
            proposed_category_id=assignment.category_id if assignment else None,
        )

    def test_rule(self, rule: Rule, samples: Iterable[Transaction]) -> List[RulePreview]:
        """
        Try one rule against sample transactions, ignoring its enabled flag.

        Returns:
            Previews for the samples the rule matches
        """
        trial = dataclasses.replace(rule, enabled=True)
        previews = []
        for txn in samples:
            preview = self.preview(txn, [trial])
            if preview.matched_rule_ids:
                previews.append(preview)
        return previews

    @staticmethod
    def reorder(rules: Iterable[Rule], rule_ids: List[str]) -> List[Rule]:
        """
        Reassign priorities from an explicit ordering.

        Listed rules get their index as priority. Unlisted rules keep their
        relative order and follow the listed ones. The caller persists
        the result.

        Raises:
            RuleValidationError: If an id is unknown or listed twice
        """
        rules = list(rules)
        by_id = {rule.id: rule for rule in rules}

        unknown = [rule_id for rule_id in rule_ids if rule_id not in by_id]
        if unknown:
            raise RuleValidationError(f"Unknown rule ids: {', '.join(unknown)}")
        if len(set(rule_ids)) != len(rule_ids):
            raise RuleValidationError("Rule ids must be unique")

        listed = set(rule_ids)
        rest = sorted((r for r in rules if r.id not in listed), key=lambda r: r.priority)
        ordered = [by_id[rule_id] for rule_id in rule_ids] + rest

        return [
            dataclasses.replace(rule, priority=index)
            for index, rule in enumerate(ordered)
        ]


def load_rule_set(config: Optional[Dict[str, Any]] = None) -> RuleSet:
    """
    Load rules from config.

    Args:
        config: Optional config dict. If None, loads from the ConfigLoader.
            Useful for testing with custom configs.

    Returns:
        RuleSet of valid rules (an empty one if no config exists yet)
    """
    if config is None:
        try:
            config = ConfigLoader.load_rules_config()
        except FileNotFoundError:
            # User hasn't created custom rules yet - that's fine.
            config = {"rules": []}

    return RuleSet.from_config(config)
