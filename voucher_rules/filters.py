"""Operator-based list filters (``filters[voucher_code][conditions][$contains]=SUMMER``).

Each filtered field gets a FilterSpec; the per-field checks of one entity are
combined with the FilterSet junction (AND unless OR is requested).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import (
    Any,
    Callable,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Literal,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
    Union,
)

Junction = Literal["AND", "OR"]
AND: Junction = "AND"
OR: Junction = "OR"

IS = "$is"
IN = "$in"
IS_NOT = "$is_not"
NOT_IN = "$not_in"
CONTAINS = "$contains"
STARTS_WITH = "$starts_with"
ENDS_WITH = "$ends_with"
MORE_THAN = "$more_than"
LESS_THAN = "$less_than"
MORE_THAN_EQUAL = "$more_than_equal"
LESS_THAN_EQUAL = "$less_than_equal"
HAS_VALUE = "$has_value"
IS_UNKNOWN = "$is_unknown"

OPERATORS = (
    IS,
    IN,
    IS_NOT,
    NOT_IN,
    CONTAINS,
    STARTS_WITH,
    ENDS_WITH,
    MORE_THAN,
    LESS_THAN,
    MORE_THAN_EQUAL,
    LESS_THAN_EQUAL,
    HAS_VALUE,
    IS_UNKNOWN,
)

_PARAM_RE = re.compile(r"^filters\[(?P<field>[^\]]+)\]\[conditions\]\[(?P<operator>\$[a-z_]+)\](?:\[[^\]]*\])*$")
JUNCTION_PARAM = "filters[junction]"
ORDER_PARAM = "order"

T = TypeVar("T")
Params = Union[Mapping[str, Union[str, Sequence[str]]], Iterable[Tuple[str, str]]]
FieldResolver = Callable[[Any, str], Any]


def _texts(values: Iterable[Any]) -> List[str]:
    return [_as_text(v) for v in values if v is not None]


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _flag(values: Iterable[Any]) -> bool:
    """A presence flag is set by ``true`` (any case) or by an empty value."""
    for value in values:
        if value is True:
            return True
        if isinstance(value, str) and value.strip().lower() in ("", "true"):
            return True
    return False


def _cmp(left: str, right: str) -> int:
    a, b = left.lower(), right.lower()
    return (a > b) - (a < b)


@dataclass(frozen=True)
class FilterSpec:
    """Conditions configured for one queried field."""

    is_values: FrozenSet[str] = frozenset()
    in_values: FrozenSet[str] = frozenset()
    is_not_values: FrozenSet[str] = frozenset()
    not_in_values: FrozenSet[str] = frozenset()
    contains: Tuple[str, ...] = ()
    starts_with: Tuple[str, ...] = ()
    ends_with: Tuple[str, ...] = ()
    more_than: Tuple[str, ...] = ()
    less_than: Tuple[str, ...] = ()
    more_than_equal: Tuple[str, ...] = ()
    less_than_equal: Tuple[str, ...] = ()
    has_value: bool = False
    is_unknown: bool = False

    @classmethod
    def from_conditions(cls, conditions: Mapping[str, Iterable[Any]]) -> Optional["FilterSpec"]:
        """Build a spec from operator -> values; returns None when nothing is configured."""

        def values(op: str) -> List[str]:
            return _texts(conditions.get(op) or ())

        spec = cls(
            is_values=frozenset(values(IS)),
            in_values=frozenset(values(IN)),
            is_not_values=frozenset(values(IS_NOT)),
            not_in_values=frozenset(values(NOT_IN)),
            contains=tuple(values(CONTAINS)),
            starts_with=tuple(values(STARTS_WITH)),
            ends_with=tuple(values(ENDS_WITH)),
            more_than=tuple(values(MORE_THAN)),
            less_than=tuple(values(LESS_THAN)),
            more_than_equal=tuple(values(MORE_THAN_EQUAL)),
            less_than_equal=tuple(values(LESS_THAN_EQUAL)),
            has_value=_flag(conditions.get(HAS_VALUE) or ()),
            is_unknown=_flag(conditions.get(IS_UNKNOWN) or ()),
        )
        return None if spec.is_empty() else spec

    def has_include_conditions(self) -> bool:
        return bool(
            self.is_values
            or self.in_values
            or self.contains
            or self.starts_with
            or self.ends_with
            or self.more_than
            or self.less_than
            or self.more_than_equal
            or self.less_than_equal
        )

    def is_empty(self) -> bool:
        return not (
            self.has_include_conditions()
            or self.is_not_values
            or self.not_in_values
            or self.has_value
            or self.is_unknown
        )

    def is_excluded(self, value: str) -> bool:
        return value in self.is_not_values or value in self.not_in_values

    def matches_include(self, value: str) -> bool:
        lowered = value.lower()
        if value in self.is_values or value in self.in_values:
            return True
        if any(c.lower() in lowered for c in self.contains):
            return True
        if any(lowered.startswith(p.lower()) for p in self.starts_with):
            return True
        if any(lowered.endswith(s.lower()) for s in self.ends_with):
            return True
        if any(_cmp(value, bound) > 0 for bound in self.more_than):
            return True
        if any(_cmp(value, bound) < 0 for bound in self.less_than):
            return True
        if any(_cmp(value, bound) >= 0 for bound in self.more_than_equal):
            return True
        return any(_cmp(value, bound) <= 0 for bound in self.less_than_equal)


def _matches_one(value: Optional[str], spec: FilterSpec) -> bool:
    normalized = value.strip() if value is not None else ""
    if not normalized:
        if spec.is_unknown:
            return True
        if spec.has_value or spec.has_include_conditions():
            return False
        return True
    if spec.is_unknown:
        return False
    if spec.is_excluded(normalized):
        return False
    if not spec.has_include_conditions():
        return True
    return spec.matches_include(normalized)


def _matches_many(values: List[str], spec: FilterSpec) -> bool:
    if not values:
        return _matches_one(None, spec)
    if spec.is_unknown:
        return False
    trimmed = [v.strip() for v in values]
    if spec.has_value and all(not v for v in trimmed):
        return False
    if any(spec.is_excluded(v) for v in trimmed):
        return False
    if not spec.has_include_conditions():
        return True
    return any(spec.matches_include(v) for v in trimmed)


def matches(subject: Any, spec: FilterSpec) -> bool:
    """
    Check one field value against its spec.

    ``subject`` may be a scalar (compared through its string form), ``None``,
    or a collection. A collection matches when any element passes the include
    conditions, fails when any element is excluded, and counts as blank only
    when it is empty.
    """
    if isinstance(subject, (list, tuple, set, frozenset)):
        return _matches_many(_texts(subject), spec)
    return _matches_one(_as_text(subject), spec)


def combine(checks: Sequence[bool], junction: Junction = AND) -> bool:
    """Join per-field checks; no checks at all means the entity matches."""
    if not checks:
        return True
    if junction == OR:
        return any(checks)
    return all(checks)


def _default_resolver(entity: Any, field_name: str) -> Any:
    if isinstance(entity, Mapping):
        return entity.get(field_name)
    return getattr(entity, field_name, None)


def matches_all(
    entity: Any,
    specs: Mapping[str, Optional[FilterSpec]],
    junction: Junction = AND,
    resolve: Optional[FieldResolver] = None,
    extra_checks: Sequence[bool] = (),
) -> bool:
    """Evaluate every configured spec for ``entity`` and combine with ``junction``."""
    resolver = resolve or _default_resolver
    checks = [matches(resolver(entity, name), spec) for name, spec in specs.items() if spec is not None]
    checks.extend(extra_checks)
    return combine(checks, junction)


def parse_junction(value: Any) -> Junction:
    if isinstance(value, str) and value.strip().upper() == OR:
        return OR
    return AND


@dataclass(frozen=True)
class FilterSet:
    junction: Junction = AND
    specs: Mapping[str, FilterSpec] = field(default_factory=dict)
    order: Optional[str] = None

    def matches(
        self,
        entity: Any,
        resolve: Optional[FieldResolver] = None,
        extra_checks: Sequence[bool] = (),
    ) -> bool:
        return matches_all(entity, self.specs, self.junction, resolve, extra_checks)

    def apply(self, items: Iterable[T], resolve: Optional[FieldResolver] = None) -> List[T]:
        return [item for item in items if self.matches(item, resolve)]


def _param_pairs(params: Params) -> List[Tuple[str, str]]:
    if isinstance(params, Mapping):
        pairs: List[Tuple[str, str]] = []
        for key, value in params.items():
            if isinstance(value, (list, tuple)):
                pairs.extend((key, v) for v in value)
            else:
                pairs.append((key, value))
        return pairs
    return list(params)


def parse_filter_params(params: Params, fields: Optional[Iterable[str]] = None) -> FilterSet:
    """
    Build a FilterSet from flat query parameters.

    Recognised keys are ``filters[<field>][conditions][<operator>]`` (optionally
    followed by an index such as ``[0]``), ``filters[junction]`` and ``order``.
    Repeated operators accumulate their values. When ``fields`` is given, other
    fields are ignored.
    """
    allowed = set(fields) if fields is not None else None
    collected: Dict[str, Dict[str, List[str]]] = {}
    junction_values: List[str] = []
    order: Optional[str] = None

    for key, value in _param_pairs(params):
        if key == JUNCTION_PARAM:
            junction_values.append(value)
            continue
        if key == ORDER_PARAM:
            if order is None and value is not None:
                order = value
            continue
        match = _PARAM_RE.match(key)
        if not match:
            continue
        field_name, operator = match.group("field"), match.group("operator")
        if operator not in OPERATORS or (allowed is not None and field_name not in allowed):
            continue
        collected.setdefault(field_name, {}).setdefault(operator, []).append(value)

    specs: Dict[str, FilterSpec] = {}
    for field_name, conditions in collected.items():
        spec = FilterSpec.from_conditions(conditions)
        if spec is not None:
            specs[field_name] = spec
    junction = parse_junction(junction_values[0]) if junction_values else AND
    return FilterSet(junction, specs, order)


def filter_set_from_mapping(data: Optional[Mapping[str, Any]], fields: Optional[Iterable[str]] = None) -> FilterSet:
    """
    Build a FilterSet from the structured JSON form::

        {"junction": "or", "code": {"conditions": {"$in": ["A", "B"]}}}

    A field definition without a ``conditions`` key is read as the conditions
    map itself. Scalar operands are treated as one-element lists.
    """
    if not data:
        return FilterSet()
    allowed = set(fields) if fields is not None else None
    specs: Dict[str, FilterSpec] = {}
    for field_name, definition in data.items():
        if field_name == "junction" or not isinstance(definition, Mapping):
            continue
        if allowed is not None and field_name not in allowed:
            continue
        nested = definition.get("conditions")
        conditions = nested if isinstance(nested, Mapping) else definition
        normalized = {
            op: list(value) if isinstance(value, (list, tuple, set)) else [value]
            for op, value in conditions.items()
            if op in OPERATORS
        }
        spec = FilterSpec.from_conditions(normalized)
        if spec is not None:
            specs[field_name] = spec
    return FilterSet(parse_junction(data.get("junction")), specs)


__all__ = [
    "AND",
    "OPERATORS",
    "OR",
    "FilterSet",
    "FilterSpec",
    "Junction",
    "combine",
    "filter_set_from_mapping",
    "matches",
    "matches_all",
    "parse_filter_params",
    "parse_junction",
]
