import pytest
from decimal import Decimal

from kite_insights.categorization import (
    AmountEquals,
    AmountRange,
    Condition,
    Rule,
    RuleValidationError,
    TextCondition,
    validate_rule,
)
from kite_insights.domain.enums import ConditionField, ConditionOperator
from conftest import make_transaction, rule_dict


@pytest.mark.unit
class TestConditionFromDict:
    """Test the closed set of condition shapes"""

    def test_text_condition(self):
        condition = Condition.from_dict({"field": "merchant", "op": "contains", "value": "tesco"})

        assert condition == TextCondition(ConditionField.MERCHANT, ConditionOperator.CONTAINS, "tesco")

    def test_amount_eq_becomes_amount_equals(self):
        condition = Condition.from_dict({"field": "amount", "op": "eq", "value": 9.99})

        assert condition == AmountEquals(Decimal("9.99"))

    def test_amount_range(self):
        condition = Condition.from_dict({"field": "amount", "op": "range", "value": {"min": 20, "max": 30}})

        assert condition == AmountRange(Decimal("20"), Decimal("30"))

    def test_range_on_text_field_is_rejected(self):
        with pytest.raises(RuleValidationError, match="only valid for the amount field"):
            Condition.from_dict({"field": "merchant", "op": "range", "value": {"min": 1, "max": 2}})

    def test_unknown_operator_is_rejected(self):
        with pytest.raises(RuleValidationError, match="Invalid operator"):
            Condition.from_dict({"field": "merchant", "op": "startsWith", "value": "x"})

    def test_round_trip_through_rule(self):
        # Arrange
        data = rule_dict(
            "r1",
            [
                {"field": "description", "op": "regex", "value": "^uber"},
                {"field": "amount", "op": "range", "value": {"min": 5.0, "max": 50.0}},
            ],
            "transport",
            priority=3,
            stop=True,
        )

        # Act
        rule = Rule.from_dict(data)

        # Assert
        assert rule.to_dict() == data


@pytest.mark.unit
class TestTextConditionMatching:

    @pytest.mark.parametrize("op,value,expected", [
        (ConditionOperator.EQ, "tesco express", True),
        (ConditionOperator.EQ, "tesco", False),
        (ConditionOperator.CONTAINS, "EXPRESS", True),
        (ConditionOperator.REGEX, r"^tesco\s+exp", True),
        (ConditionOperator.REGEX, r"^express", False),
    ])
    def test_case_insensitive_matching(self, op, value, expected):
        # Arrange
        txn = make_transaction(-5, merchant="Tesco Express")

        # Act & Assert
        assert TextCondition(ConditionField.MERCHANT, op, value).matches(txn) is expected

    def test_missing_merchant_matches_as_empty_text(self):
        txn = make_transaction(-5, merchant=None, description="cash")

        assert not TextCondition(ConditionField.MERCHANT, ConditionOperator.CONTAINS, "a").matches(txn)


@pytest.mark.unit
class TestValidateRule:
    """Test save-time validation messages"""

    def test_valid_rule(self):
        result = validate_rule(rule_dict("r1", [{"field": "merchant", "op": "eq", "value": "x"}], "c"))

        assert result.is_valid
        assert result.errors == []

    def test_missing_conditions_and_actions(self):
        result = validate_rule({"id": "r1", "name": "Empty", "conditions": [], "actions": []})

        assert not result.is_valid
        assert "At least one condition is required" in result.errors
        assert "At least one action is required" in result.errors

    def test_inverted_range(self):
        result = validate_rule(
            rule_dict("r1", [{"field": "amount", "op": "range", "value": {"min": 30, "max": 20}}], "c")
        )

        assert result.errors == ["Condition 1: Range min cannot be greater than max"]

    def test_bad_regex(self):
        result = validate_rule(rule_dict("r1", [{"field": "merchant", "op": "regex", "value": "(["}], "c"))

        assert result.errors == ["Condition 1: Invalid regular expression"]

    def test_amount_eq_requires_number(self):
        result = validate_rule(rule_dict("r1", [{"field": "amount", "op": "eq", "value": "ten"}], "c"))

        assert result.errors == ["Condition 1: Amount must be a number"]

    def test_unknown_field_and_operator(self):
        result = validate_rule(rule_dict("r1", [{"field": "memo", "op": "like", "value": "x"}], "c"))

        assert "Condition 1: Invalid field" in result.errors
        assert "Condition 1: Invalid operator" in result.errors

    def test_empty_category_action(self):
        data = rule_dict("r1", [{"field": "merchant", "op": "eq", "value": "x"}], " ")

        result = validate_rule(data)

        assert result.errors == ["Action 1: Category ID cannot be empty"]

    def test_negative_priority(self):
        data = rule_dict("r1", [{"field": "merchant", "op": "eq", "value": "x"}], "c", priority=-1)

        assert validate_rule(data).errors == ["Priority must be non-negative"]

    def test_non_object_rule(self):
        assert not validate_rule(["not", "a", "rule"]).is_valid

    def test_from_dict_raises_with_all_errors(self):
        with pytest.raises(RuleValidationError) as exc_info:
            Rule.from_dict({"id": "", "name": "", "conditions": [], "actions": []})

        assert len(exc_info.value.errors) == 4

    def test_result_serializes(self):
        result = validate_rule({"id": "r1", "name": "x", "conditions": [], "actions": [{"setCategoryId": "c"}]})

        assert result.to_dict() == {
            "isValid": False,
            "errors": ["At least one condition is required"],
        }
