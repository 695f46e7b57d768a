"""Validation-rule evaluation for vouchers and campaigns.

A rule payload is stored as JSON in one of two shapes::

    {"rules": {"1": {"name": "order.amount", "conditions": {"$gte": 1000}}}, "logic": "1"}
    {"redemptions": {"quantity": 1, "per_customer": 1}}   # legacy shorthand

Payloads are parsed into typed rules first. Evaluation never raises on rule
data: anything malformed makes the affected rule (or the whole payload) false.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Collection, Dict, List, Mapping, Optional, Tuple, Union

from .conditions import Condition, is_number, parse_condition, to_decimal
from .context import Context
from .errors import ConditionError, FieldPathError, RulePayloadError
from .fields import FieldRef, parse_field_ref, resolve
from .logic import evaluate_logic

logger = logging.getLogger(__name__)

REDEMPTIONS_PREFIX = "redemptions."


@dataclass(frozen=True)
class RedemptionLimits:
    """Legacy ``{"redemptions": {...}}`` payload: limits on redemptions so far."""

    quantity: Optional[int] = None
    per_customer: Optional[int] = None

    def allows(self, ctx: Context) -> bool:
        counters = ctx.redemption_counters
        if self.quantity is not None and counters.total >= self.quantity:
            return False
        if self.per_customer is not None and counters.per_customer >= self.per_customer:
            return False
        return True


@dataclass(frozen=True)
class NamedRule:
    id: str
    name: str
    field: FieldRef
    condition: Condition

    def evaluate(self, ctx: Context) -> bool:
        return self.condition.matches(resolve(self.field, ctx))


@dataclass(frozen=True)
class InvalidRule:
    """A rule entry that failed to parse; it always evaluates to false."""

    id: str
    name: Optional[str]
    reason: str

    def evaluate(self, ctx: Context) -> bool:
        return False


RuleEntry = Union[NamedRule, InvalidRule]


@dataclass(frozen=True)
class RuleSet:
    rules: Tuple[RuleEntry, ...]
    logic: Optional[str] = None

    @property
    def rule_ids(self) -> List[str]:
        return [rule.id for rule in self.rules]


RulePayload = Union[RedemptionLimits, RuleSet]


def _parse_limit(redemptions: Mapping[str, Any], key: str, problems: List[str]) -> Optional[int]:
    value = redemptions.get(key)
    if value is None:
        return None
    if not is_number(value):
        problems.append(f"redemptions.{key} must be a number, got {value!r}")
        return None
    if not to_decimal(value).is_finite():
        problems.append(f"redemptions.{key} must be finite, got {value!r}")
        return None
    return int(value)


def _parse_legacy(raw: Mapping[str, Any], problems: List[str]) -> Optional[RedemptionLimits]:
    redemptions = raw.get("redemptions")
    if not isinstance(redemptions, Mapping):
        problems.append("redemptions must be a mapping")
        return None
    found = len(problems)
    limits = RedemptionLimits(
        quantity=_parse_limit(redemptions, "quantity", problems),
        per_customer=_parse_limit(redemptions, "per_customer", problems),
    )
    # an unreadable limit makes the whole payload unusable
    return None if len(problems) > found else limits


def _parse_rule_entry(rule_id: str, entry: Any) -> RuleEntry:
    if not isinstance(entry, Mapping):
        return InvalidRule(rule_id, None, "rule entry must be a mapping")
    name = entry.get("name")
    if not isinstance(name, str):
        return InvalidRule(rule_id, None, "rule name must be a string")
    try:
        field = parse_field_ref(name)
        condition = parse_condition(entry.get("conditions"))
    except (FieldPathError, ConditionError) as exc:
        return InvalidRule(rule_id, name, str(exc))
    return NamedRule(rule_id, name, field, condition)


def _parse_rule_set(raw: Mapping[str, Any], problems: List[str]) -> Optional[RuleSet]:
    rules_map = raw.get("rules")
    if not isinstance(rules_map, Mapping):
        problems.append("rules must be a mapping of rule id to rule")
        return None
    logic = raw.get("logic")
    if logic is not None and not isinstance(logic, str):
        problems.append(f"logic must be a string, got {type(logic).__name__}")
        logic = None

    entries: List[RuleEntry] = []
    for rule_id, entry in rules_map.items():
        parsed = _parse_rule_entry(str(rule_id), entry)
        if isinstance(parsed, InvalidRule):
            problems.append(f"rule {parsed.id}: {parsed.reason}")
        entries.append(parsed)
    return RuleSet(tuple(entries), logic)


def parse_rule_payload(raw: Mapping[str, Any], *, strict: bool = True) -> RulePayload:
    """
    Parse a stored rule payload.

    In strict mode every problem found is collected and raised as one
    RulePayloadError. In lenient mode malformed rule entries are kept as
    InvalidRule (evaluating to false) and only an unusable payload raises.
    """
    if not isinstance(raw, Mapping):
        raise RulePayloadError("rule payload must be a mapping", ["payload must be a mapping"])

    problems: List[str] = []
    if "redemptions" in raw:
        payload: Optional[RulePayload] = _parse_legacy(raw, problems)
    else:
        payload = _parse_rule_set(raw, problems)

    if payload is None or (strict and problems):
        raise RulePayloadError("; ".join(problems), problems)
    for problem in problems:
        logger.warning("Rule payload problem: %s", problem)
    return payload


def validate_rule_payload(raw: Mapping[str, Any]) -> List[str]:
    """Return the problems strict parsing finds in ``raw`` (empty when valid)."""
    try:
        parse_rule_payload(raw, strict=True)
    except RulePayloadError as exc:
        return exc.problems or [str(exc)]
    return []


def _is_allowed(name: Optional[str], allowed_rule_prefixes: Optional[Collection[str]]) -> bool:
    if allowed_rule_prefixes is None:
        return True
    return name is not None and any(name.startswith(prefix) for prefix in allowed_rule_prefixes)


def evaluate_rules(
    rule_set: RuleSet,
    ctx: Context,
    allowed_rule_prefixes: Optional[Collection[str]] = None,
) -> Dict[str, bool]:
    """Compute the boolean of every rule by id; rules outside the allow-list are true."""
    results: Dict[str, bool] = {}
    for rule in rule_set.rules:
        if rule.name is not None and not _is_allowed(rule.name, allowed_rule_prefixes):
            results[rule.id] = True
            continue
        results[rule.id] = rule.evaluate(ctx)
    return results


def evaluate(
    payload: Union[Mapping[str, Any], RulePayload],
    ctx: Context,
    allowed_rule_prefixes: Optional[Collection[str]] = None,
) -> bool:
    """
    Decide whether ``ctx`` satisfies a validation-rule payload.

    ``allowed_rule_prefixes`` restricts evaluation to rules whose field name
    starts with one of the prefixes (e.g. ``{"customer."}``); other rules are
    treated as satisfied. Identical inputs always give the same result.
    """
    if isinstance(payload, (RedemptionLimits, RuleSet)):
        parsed: RulePayload = payload
    else:
        try:
            parsed = parse_rule_payload(payload, strict=False)
        except RulePayloadError as exc:
            logger.warning("Unusable rule payload, failing closed: %s", exc)
            return False

    if isinstance(parsed, RedemptionLimits):
        if allowed_rule_prefixes is not None and REDEMPTIONS_PREFIX not in allowed_rule_prefixes:
            return True
        return parsed.allows(ctx)

    results = evaluate_rules(parsed, ctx, allowed_rule_prefixes)
    outcome = evaluate_logic(parsed.logic, results, parsed.rule_ids)
    logger.debug("Rule results %s with logic %r -> %s", results, parsed.logic, outcome)
    return outcome


__all__ = [
    "InvalidRule",
    "NamedRule",
    "RedemptionLimits",
    "RulePayload",
    "RuleSet",
    "evaluate",
    "evaluate_rules",
    "parse_rule_payload",
    "validate_rule_payload",
]
