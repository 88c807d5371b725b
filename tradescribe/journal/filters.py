"""
Filter expressions for the trade store.

A FilterExpression maps a TradeRecord field to one condition:
  Equals(value)      exact match, case-insensitive for strings
  OneOf(values)      membership, empty set matches everything
  Range(gte, lte)    inclusive bounds over normalized values
Fields are AND-ed. Shapes are validated when the expression is built.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

from tradescribe.journal.trade_models import (
    TRADE_FIELDS,
    SearchCriteria,
    TradeRecord,
    parse_timestamp,
)
from tradescribe.utils.exceptions import FilterError

_UNFILTERABLE = frozenset({"notes", "attachments"})
FILTERABLE_FIELDS = TRADE_FIELDS - _UNFILTERABLE

Comparable = Union[float, str]


def to_comparable(value: Any) -> Optional[Comparable]:
    """number → number; numeric string → number; date string → epoch; else lowercase."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            number = float(value)
            if number == number:
                return number
        except ValueError:
            pass
        ts = parse_timestamp(value)
        if ts is not None:
            return ts
        return value.lower()
    return None


def _same_value(left: Any, right: Any) -> bool:
    if isinstance(left, str) and isinstance(right, str):
        return left.lower() == right.lower()
    return left == right


@dataclass(frozen=True)
class Equals:
    value: Any

    def matches(self, actual: Any) -> bool:
        return _same_value(actual, self.value)


@dataclass(frozen=True)
class OneOf:
    values: Tuple[Any, ...] = ()

    def matches(self, actual: Any) -> bool:
        if not self.values:
            return True
        return any(_same_value(actual, candidate) for candidate in self.values)


@dataclass(frozen=True)
class Range:
    gte: Any = None
    lte: Any = None

    @staticmethod
    def _compare(actual: Any, bound: Any, op: str) -> bool:
        left = to_comparable(actual)
        right = to_comparable(bound)
        if left is None or right is None or type(left) is not type(right):
            return False
        return left >= right if op == "gte" else left <= right

    def matches(self, actual: Any) -> bool:
        if self.gte is not None and not self._compare(actual, self.gte, "gte"):
            return False
        if self.lte is not None and not self._compare(actual, self.lte, "lte"):
            return False
        return True


Condition = Union[Equals, OneOf, Range]

_OPERATORS = {"$in", "$gte", "$lte"}


def _parse_condition(name: str, raw: Any) -> Optional[Condition]:
    if raw is None:
        return None
    if isinstance(raw, (Equals, OneOf, Range)):
        return raw
    if isinstance(raw, Mapping):
        unknown = set(raw) - _OPERATORS
        if unknown:
            raise FilterError(f"Unsupported operator(s) for '{name}': {sorted(unknown)}")
        if "$in" in raw:
            if len(raw) > 1:
                raise FilterError(f"'$in' cannot be combined with range bounds for '{name}'")
            values = raw["$in"] or ()
            if isinstance(values, (str, bytes)) or not isinstance(values, Iterable):
                raise FilterError(f"'$in' for '{name}' must be a list")
            return OneOf(tuple(values))
        return Range(gte=raw.get("$gte"), lte=raw.get("$lte"))
    if isinstance(raw, (list, tuple, set, frozenset)):
        return OneOf(tuple(raw))
    return Equals(raw)


@dataclass(frozen=True)
class FilterExpression:
    conditions: Dict[str, Condition] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, mapping: Optional[Mapping[str, Any]] = None) -> "FilterExpression":
        conditions: Dict[str, Condition] = {}
        for name, raw in (mapping or {}).items():
            if name not in FILTERABLE_FIELDS:
                raise FilterError(f"Unknown filter field '{name}'")
            condition = _parse_condition(name, raw)
            if condition is not None:
                conditions[name] = condition
        return cls(conditions)

    @classmethod
    def coerce(cls, value: Union["FilterExpression", Mapping[str, Any], None]) -> "FilterExpression":
        if isinstance(value, FilterExpression):
            return value
        return cls.from_mapping(value)

    def matches(self, trade: TradeRecord) -> bool:
        return all(
            condition.matches(getattr(trade, name, None))
            for name, condition in self.conditions.items()
        )

    def __bool__(self) -> bool:
        return bool(self.conditions)


def matches_filter(trade: TradeRecord,
                   filter_: Union[FilterExpression, Mapping[str, Any], None]) -> bool:
    return FilterExpression.coerce(filter_).matches(trade)


def build_filter(criteria: Union[SearchCriteria, Mapping[str, Any], None]) -> FilterExpression:
    """User-facing search criteria → FilterExpression."""
    if criteria is None:
        return FilterExpression()
    if not isinstance(criteria, SearchCriteria):
        criteria = SearchCriteria.model_validate(dict(criteria))

    conditions: Dict[str, Condition] = {}
    if criteria.status:
        conditions["status"] = Equals(criteria.status.value)
    if criteria.tickers:
        conditions["ticker"] = OneOf(tuple(t.strip().upper() for t in criteria.tickers))
    if criteria.sentiments:
        conditions["sentiment"] = OneOf(tuple(criteria.sentiments))
    if criteria.from_date or criteria.to_date:
        conditions["created_at"] = Range(gte=criteria.from_date, lte=criteria.to_date)
    if criteria.min_pnl_usd is not None or criteria.max_pnl_usd is not None:
        conditions["pnl_usd"] = Range(gte=criteria.min_pnl_usd, lte=criteria.max_pnl_usd)
    return FilterExpression(conditions)
