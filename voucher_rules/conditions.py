"""Condition operators used in validation rules (``{"$gte": 1000}``, ``{"$contains_any": [...]}``)."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, ClassVar, Dict, Mapping, Tuple, Type

from .errors import ConditionError
from .fields import EachItem

_COLLECTION_TYPES = (list, tuple, set, frozenset)


def is_number(value: Any) -> bool:
    """True for int/float/Decimal values; booleans are not numbers here."""
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def is_collection(value: Any) -> bool:
    return isinstance(value, _COLLECTION_TYPES)


def to_decimal(value: Any) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(value)


def values_equal(a: Any, b: Any) -> bool:
    """Exact equality, except numbers compare by decimal value so ``10 == 10.0``."""
    if isinstance(a, bool) or isinstance(b, bool):
        return a is b
    if is_number(a) and is_number(b):
        left, right = to_decimal(a), to_decimal(b)
        if not (left.is_finite() and right.is_finite()):
            return False
        return left == right
    return a == b


def _compare(value: Any, operand: Decimal) -> Any:
    if not is_number(value):
        return None
    left = to_decimal(value)
    if not left.is_finite():
        return None
    return (left > operand) - (left < operand)


@dataclass(frozen=True)
class Condition(ABC):
    """Base for the parsed condition types; ``operator`` is the payload key."""

    operand: Any

    operator: ClassVar[str] = ""

    @abstractmethod
    def test(self, value: Any) -> bool:
        """Check one resolved value."""

    def matches(self, value: Any) -> bool:
        """Apply the condition; absent values never match, per-item values match existentially."""
        if isinstance(value, EachItem):
            return any(self.test(item) for item in value)
        return self.test(value)

    def as_payload(self) -> Dict[str, Any]:
        operand = list(self.operand) if isinstance(self.operand, tuple) else self.operand
        return {self.operator: operand}


@dataclass(frozen=True)
class Eq(Condition):
    operator: ClassVar[str] = "$eq"

    def test(self, value: Any) -> bool:
        return value is not None and values_equal(value, self.operand)


@dataclass(frozen=True)
class Ne(Condition):
    operator: ClassVar[str] = "$ne"

    def test(self, value: Any) -> bool:
        return value is not None and not values_equal(value, self.operand)


@dataclass(frozen=True)
class _Relational(Condition):
    operand: Decimal

    @abstractmethod
    def _holds(self, cmp: int) -> bool:
        """Interpret the sign of value minus operand."""

    def test(self, value: Any) -> bool:
        cmp = _compare(value, self.operand)
        return cmp is not None and self._holds(cmp)


@dataclass(frozen=True)
class Gt(_Relational):
    operator: ClassVar[str] = "$gt"

    def _holds(self, cmp: int) -> bool:
        return cmp > 0


@dataclass(frozen=True)
class Gte(_Relational):
    operator: ClassVar[str] = "$gte"

    def _holds(self, cmp: int) -> bool:
        return cmp >= 0


@dataclass(frozen=True)
class Lt(_Relational):
    operator: ClassVar[str] = "$lt"

    def _holds(self, cmp: int) -> bool:
        return cmp < 0


@dataclass(frozen=True)
class Lte(_Relational):
    operator: ClassVar[str] = "$lte"

    def _holds(self, cmp: int) -> bool:
        return cmp <= 0


@dataclass(frozen=True)
class Is(Condition):
    operand: Tuple[Any, ...]
    operator: ClassVar[str] = "$is"

    def test(self, value: Any) -> bool:
        return value is not None and any(values_equal(value, candidate) for candidate in self.operand)


@dataclass(frozen=True)
class IsNot(Condition):
    operand: Tuple[Any, ...]
    operator: ClassVar[str] = "$is_not"

    def test(self, value: Any) -> bool:
        return value is not None and not any(values_equal(value, candidate) for candidate in self.operand)


@dataclass(frozen=True)
class Contains(Condition):
    operator: ClassVar[str] = "$contains"

    def test(self, value: Any) -> bool:
        if isinstance(value, str):
            return isinstance(self.operand, str) and self.operand in value
        if is_collection(value):
            return any(values_equal(element, self.operand) for element in value)
        return False


@dataclass(frozen=True)
class ContainsAny(Condition):
    operand: Tuple[Any, ...]
    operator: ClassVar[str] = "$contains_any"

    def test(self, value: Any) -> bool:
        if not is_collection(value):
            return False
        return any(values_equal(element, wanted) for element in value for wanted in self.operand)


@dataclass(frozen=True)
class ContainsAll(Condition):
    operand: Tuple[Any, ...]
    operator: ClassVar[str] = "$contains_all"

    def test(self, value: Any) -> bool:
        if not is_collection(value):
            return False
        elements = list(value)
        return all(any(values_equal(element, wanted) for element in elements) for wanted in self.operand)


@dataclass(frozen=True)
class IsTrue(Condition):
    operator: ClassVar[str] = "$true"

    def test(self, value: Any) -> bool:
        return value is True


@dataclass(frozen=True)
class IsFalse(Condition):
    operator: ClassVar[str] = "$false"

    def test(self, value: Any) -> bool:
        return value is False


CONDITION_TYPES: Dict[str, Type[Condition]] = {
    cls.operator: cls
    for cls in (Eq, Ne, Gt, Gte, Lt, Lte, Is, IsNot, Contains, ContainsAny, ContainsAll, IsTrue, IsFalse)
}

_LIST_OPERANDS = {Is, IsNot, ContainsAny, ContainsAll}


def _coerce_operand(cls: Type[Condition], operator: str, operand: Any) -> Any:
    if issubclass(cls, _Relational):
        if not is_number(operand):
            raise ConditionError(f"{operator} needs a numeric operand, got {operand!r}")
        number = to_decimal(operand)
        if not number.is_finite():
            raise ConditionError(f"{operator} needs a finite operand, got {operand!r}")
        return number
    if cls in _LIST_OPERANDS:
        if not is_collection(operand):
            raise ConditionError(f"{operator} needs a list operand, got {operand!r}")
        return tuple(operand)
    if cls is Contains and operand is None:
        raise ConditionError(f"{operator} needs an operand")
    return operand


def parse_condition(conditions: Mapping[str, Any]) -> Condition:
    """
    Parse a rule's ``conditions`` map into a typed Condition.

    The map must hold exactly one operator key; unknown operators and operands
    of the wrong shape raise ConditionError.
    """
    if not isinstance(conditions, Mapping):
        raise ConditionError(f"conditions must be a mapping, got {type(conditions).__name__}")
    if len(conditions) != 1:
        raise ConditionError(f"conditions must hold exactly one operator, got {len(conditions)}")
    operator, operand = next(iter(conditions.items()))
    cls = CONDITION_TYPES.get(str(operator))
    if cls is None:
        raise ConditionError(f"Unknown operator: {operator}")
    return cls(_coerce_operand(cls, str(operator), operand))


def apply(value: Any, operator: str, operand: Any) -> bool:
    """Evaluate ``value <operator> operand``; malformed conditions are simply false."""
    try:
        condition = parse_condition({operator: operand})
    except ConditionError:
        return False
    return condition.matches(value)


__all__ = [
    "CONDITION_TYPES",
    "Condition",
    "Contains",
    "ContainsAll",
    "ContainsAny",
    "Eq",
    "Gt",
    "Gte",
    "Is",
    "IsFalse",
    "IsNot",
    "IsTrue",
    "Lt",
    "Lte",
    "Ne",
    "apply",
    "parse_condition",
    "values_equal",
]
