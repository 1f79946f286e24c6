import pytest
import json
from datetime import date
from decimal import Decimal
from itertools import count
from typing import Any, Dict, List

from kite_insights.categorization.rules import Rule
from kite_insights.domain.models import Category, Transaction

_ids = count(1)


def make_transaction(
    amount,
    day: date = date(2025, 3, 10),
    merchant: str | None = None,
    description: str = "",
    category_id: str | None = None,
    id: str | None = None,
) -> Transaction:
    """Build a transaction; amounts are signed, negative for expenses"""
    return Transaction(
        id=id or f"t{next(_ids)}",
        date=day,
        amount=Decimal(str(amount)),
        description=description or (merchant or "Purchase"),
        merchant=merchant,
        category_id=category_id,
    )


def rule_dict(
    id: str,
    conditions: List[Dict[str, Any]],
    category_id: str,
    priority: int = 0,
    stop: bool = False,
    enabled: bool = True,
) -> Dict[str, Any]:
    """Rule in its stored (camelCase) form"""
    return {
        "id": id,
        "name": f"Rule {id}",
        "priority": priority,
        "enabled": enabled,
        "stopProcessing": stop,
        "conditions": conditions,
        "actions": [{"setCategoryId": category_id}],
    }


def make_rule(*args, **kwargs) -> Rule:
    return Rule.from_dict(rule_dict(*args, **kwargs))


@pytest.fixture
def categories() -> List[Category]:
    return [
        Category(id="groceries", name="Groceries"),
        Category(id="shopping", name="Shopping"),
        Category(id="dining", name="Dining"),
        Category(id="salary", name="Salary"),
    ]


@pytest.fixture
def tesco_rules() -> List[Rule]:
    """Merchant rule overridden by a stopping amount-range rule"""
    return [
        make_rule(
            "r1",
            [{"field": "merchant", "op": "contains", "value": "Tesco"}],
            "groceries",
            priority=1,
        ),
        make_rule(
            "r2",
            [{"field": "amount", "op": "range", "value": {"min": 20, "max": 30}}],
            "shopping",
            priority=2,
            stop=True,
        ),
    ]


@pytest.fixture
def snapshot_data() -> Dict[str, Any]:
    """Snapshot contents as the app exports them"""
    return {
        "transactions": [
            {"id": "t1", "date": "2025-03-01", "amount": 3000, "description": "PAYROLL",
             "merchant": "Employer", "categoryId": "salary"},
            {"id": "t2", "date": "2025-03-03T09:15:00Z", "amount": -45.2, "description": "TESCO STORES",
             "merchant": "Tesco"},
            {"id": "t3", "date": "2025-03-03", "amount": "-45.20", "description": "TESCO STORES",
             "merchant": "Tesco"},
            {"id": "t4", "date": "2025-03-12", "amount": -25, "description": "AMAZON MKTP",
             "merchant": "Amazon"},
            {"id": "t5", "date": "2025-02-12", "amount": -60, "description": "TESCO STORES",
             "merchant": "Tesco", "categoryId": "groceries"},
        ],
        "categories": [
            {"id": "groceries", "name": "Groceries"},
            {"id": "shopping", "name": "Shopping"},
            {"id": "salary", "name": "Salary", "parentId": None},
        ],
        "rules": [
            rule_dict("r1", [{"field": "merchant", "op": "contains", "value": "tesco"}], "groceries", priority=1),
            rule_dict("r2", [{"field": "amount", "op": "range", "value": {"min": 20, "max": 30}}], "shopping", priority=2),
        ],
    }


@pytest.fixture
def snapshot_file(tmp_path, snapshot_data):
    """Write `snapshot_data` to a temp file and return its path"""
    path = tmp_path / "snapshot.json"
    path.write_text(json.dumps(snapshot_data), encoding="utf-8")
    return path
