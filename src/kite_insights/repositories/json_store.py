import json
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, List, Optional

from kite_insights.categorization.rules import Rule, RuleSet
from kite_insights.domain.models import Category, Transaction
from kite_insights.logging_setup import get_logger
from kite_insights.repositories.base import StoreError, TransactionStore

logger = get_logger(__name__)


class JsonSnapshotStore(TransactionStore):
    """
    Store backed by a single JSON snapshot file.

    Layout:
        {
          "transactions": [{"id", "date", "amount", "description",
                            "merchant"?, "categoryId"?}, ...],
          "categories": [{"id", "name", "parentId"?}, ...],
          "rules": [<rule objects>, ...]
        }

    The file is read once, on first access, so every call sees the same
    snapshot.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._data: Optional[Dict[str, Any]] = None

    def _snapshot(self) -> Dict[str, Any]:
        if self._data is None:
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except FileNotFoundError:
                raise StoreError(f"Snapshot not found: {self.path}") from None
            except json.JSONDecodeError as e:
                raise StoreError(f"Invalid JSON in {self.path}: {e}") from e

            if not isinstance(data, dict):
                raise StoreError(f"Snapshot {self.path} must be a JSON object")

            self._data = data
            logger.debug("Loaded snapshot %s", self.path)
        return self._data

    def list_transactions(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[Transaction]:
        transactions = [
            self._row_to_transaction(index, row)
            for index, row in enumerate(self._snapshot().get("transactions", []))
        ]
        if start:
            transactions = [t for t in transactions if t.day >= start]
        if end:
            transactions = [t for t in transactions if t.day <= end]
        return sorted(transactions, key=lambda t: t.day)

    def list_categories(self) -> List[Category]:
        categories = []
        for index, row in enumerate(self._snapshot().get("categories", [])):
            try:
                categories.append(Category(
                    id=str(row["id"]),
                    name=row["name"],
                    parent_id=row.get("parentId"),
                ))
            except (KeyError, TypeError, AttributeError) as e:
                raise StoreError(f"Category {index} is malformed: {e!r}") from e
        return categories

    def list_rules(self) -> List[Rule]:
        rules = self._snapshot().get("rules", [])
        if not isinstance(rules, list):
            raise StoreError("'rules' must be a list")
        return RuleSet.from_config({"rules": rules}).rules

    def raw_rules(self) -> List[Dict[str, Any]]:
        """Rule objects exactly as stored, before validation."""
        return list(self._snapshot().get("rules", []))

    @staticmethod
    def _row_to_transaction(index: int, row: Dict[str, Any]) -> Transaction:
        """Convert a snapshot row to a Transaction."""
        try:
            amount = Decimal(str(row["amount"]))
            if not amount.is_finite():
                raise ValueError(f"amount must be finite, got {row['amount']!r}")
            return Transaction(
                id=str(row["id"]),
                date=date.fromisoformat(str(row["date"])[:10]),
                amount=amount,
                description=row.get("description", ""),
                merchant=row.get("merchant"),
                category_id=row.get("categoryId"),
            )
        except (KeyError, TypeError, ValueError, InvalidOperation, AttributeError) as e:
            raise StoreError(f"Transaction {index} is malformed: {e!r}") from e
