"""Voucher validation-rule and list-filter evaluation engine."""

from .conditions import apply, parse_condition
from .context import Context, build_context, hash_tracking_id
from .errors import RuleEngineError, RulePayloadError
from .evaluator import evaluate, parse_rule_payload, validate_rule_payload
from .fields import resolve
from .filters import FilterSet, FilterSpec, filter_set_from_mapping, matches, matches_all, parse_filter_params
from .logic import evaluate_logic

__all__ = [
    "Context",
    "FilterSet",
    "FilterSpec",
    "RuleEngineError",
    "RulePayloadError",
    "apply",
    "build_context",
    "evaluate",
    "evaluate_logic",
    "filter_set_from_mapping",
    "hash_tracking_id",
    "matches",
    "matches_all",
    "parse_condition",
    "parse_filter_params",
    "parse_rule_payload",
    "resolve",
    "validate_rule_payload",
]
