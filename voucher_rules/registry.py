"""In-memory registry of validation rules and their assignments to vouchers/campaigns."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Collection, DefaultDict, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field

from .context import Context
from .errors import RulePayloadError
from .evaluator import RulePayload, evaluate, parse_rule_payload

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "Validation rule not satisfied."


class RuleAssignment(BaseModel):
    rule_id: str
    related_object_id: str
    related_object_type: str = "voucher"


class ValidationRule(BaseModel):
    """A stored validation rule: its payload plus the error reported when it fails."""

    id: str
    name: Optional[str] = None
    rules: Dict[str, Any] = Field(default_factory=dict)
    error: Dict[str, Any] = Field(default_factory=dict)
    source: Optional[str] = None


class RuleViolation(BaseModel):
    rule_id: str
    rule_name: Optional[str] = None
    code: str = "rule_failed"
    message: str = DEFAULT_ERROR_MESSAGE


class RuleRegistry:
    """Indexes validation rules by id and by the objects they are assigned to."""

    def __init__(
        self,
        rules: Iterable[ValidationRule] = (),
        assignments: Iterable[RuleAssignment] = (),
    ) -> None:
        self._rules: Dict[str, ValidationRule] = {}
        self._parsed: Dict[str, Optional[RulePayload]] = {}
        self._assignments: DefaultDict[Tuple[str, str], List[str]] = defaultdict(list)
        for rule in rules:
            self.add_rule(rule)
        for assignment in assignments:
            self.assign(assignment)

    def __len__(self) -> int:
        return len(self._rules)

    def add_rule(self, rule: ValidationRule) -> None:
        if rule.id in self._rules:
            logger.warning("Validation rule %s defined twice; keeping the later definition", rule.id)
        self._rules[rule.id] = rule
        self._parsed.pop(rule.id, None)

    def assign(self, assignment: RuleAssignment) -> None:
        key = (assignment.related_object_type, assignment.related_object_id)
        if assignment.rule_id not in self._assignments[key]:
            self._assignments[key].append(assignment.rule_id)

    def get_rule(self, rule_id: str) -> Optional[ValidationRule]:
        return self._rules.get(rule_id)

    def rules_for(self, object_ids: Iterable[Optional[str]], object_type: str = "voucher") -> List[ValidationRule]:
        """Rules assigned to any of ``object_ids`` (e.g. a voucher id and its code), in assignment order."""
        found: List[ValidationRule] = []
        seen = set()
        for object_id in object_ids:
            if not object_id:
                continue
            for rule_id in self._assignments.get((object_type, object_id), []):
                rule = self._rules.get(rule_id)
                if rule is None:
                    logger.debug("Assignment to %s references unknown rule %s", object_id, rule_id)
                    continue
                if rule_id not in seen:
                    seen.add(rule_id)
                    found.append(rule)
        return found

    def _payload(self, rule: ValidationRule) -> Optional[RulePayload]:
        if rule.id not in self._parsed:
            try:
                self._parsed[rule.id] = parse_rule_payload(rule.rules, strict=False)
            except RulePayloadError as exc:
                logger.warning("Validation rule %s has an unusable payload: %s", rule.id, exc)
                self._parsed[rule.id] = None
        return self._parsed[rule.id]

    def check(
        self,
        object_ids: Iterable[Optional[str]],
        ctx: Context,
        allowed_rule_prefixes: Optional[Collection[str]] = None,
        object_type: str = "voucher",
    ) -> Optional[RuleViolation]:
        """Return the first assigned rule that ``ctx`` fails, or None when all pass."""
        for rule in self.rules_for(object_ids, object_type):
            payload = self._payload(rule)
            if payload is not None and evaluate(payload, ctx, allowed_rule_prefixes):
                continue
            message = rule.error.get("message") if isinstance(rule.error.get("message"), str) else None
            return RuleViolation(
                rule_id=rule.id,
                rule_name=rule.name,
                message=message or DEFAULT_ERROR_MESSAGE,
            )
        return None


__all__ = ["RuleAssignment", "RuleRegistry", "RuleViolation", "ValidationRule"]
