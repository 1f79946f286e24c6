"""
Conversion of engine outputs to JSON-compatible structures.

Dataclass fields become camelCase keys, enums their values, Decimals floats
and dates ISO strings, so presentation and export layers never need engine
types.
"""
from dataclasses import fields, is_dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any


def camel_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def to_jsonable(value: Any) -> Any:
    """Recursively convert a value into plain JSON types."""
    if is_dataclass(value) and not isinstance(value, type):
        return {
            camel_case(f.name): to_jsonable(getattr(value, f.name))
            for f in fields(value)
        }
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


class JsonMixin:
    """Adds `to_dict()` to output dataclasses."""

    def to_dict(self) -> dict:
        return to_jsonable(self)
