"""Qualification: which of a set of vouchers a customer/order is eligible for."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from . import config
from .context import Context, hash_tracking_id
from .evaluator import evaluate
from .filters import FilterSet, filter_set_from_mapping
from .registry import RuleRegistry
from .sorting import SortOrder, sort_items

logger = logging.getLogger(__name__)

BEST_DEAL = "BEST_DEAL"
LEAST_DEAL = "LEAST_DEAL"
HOLDER_OWNER = "OWNER"


@dataclass(frozen=True)
class VoucherView:
    """A candidate redeemable with the data qualification filters and sorts on."""

    id: str
    code: Optional[str] = None
    created_at: Optional[datetime] = None
    type: Optional[str] = None
    campaign_id: Optional[str] = None
    campaign_type: Optional[str] = None
    category_ids: Tuple[str, ...] = ()
    holder_id: Optional[str] = None
    rule_payloads: Tuple[Mapping[str, Any], ...] = ()
    discount_amount: Union[int, Decimal] = 0


VOUCHER_FIELDS: Dict[str, Callable[[VoucherView], Any]] = {
    "category_id": lambda v: list(v.category_ids),
    "campaign_id": lambda v: v.campaign_id,
    "campaign_type": lambda v: v.campaign_type,
    "resource_id": lambda v: v.id,
    "resource_type": lambda v: "voucher",
    "voucher_type": lambda v: v.type,
    "code": lambda v: v.code,
    "holder_role": lambda v: HOLDER_OWNER if v.holder_id else None,
}


def voucher_subject(voucher: VoucherView, field_name: str) -> Any:
    extractor = VOUCHER_FIELDS.get(field_name)
    return extractor(voucher) if extractor else None


@dataclass(frozen=True)
class QualificationResult:
    redeemables: List[VoucherView] = field(default_factory=list)
    has_more: bool = False
    more_starting_after: Optional[datetime] = None
    tracking_id: Optional[str] = None

    @property
    def total(self) -> int:
        return len(self.redeemables)


def clamp_limit(limit: Optional[int]) -> int:
    limits = config.qualification_limits()
    if limit is None:
        return limits["default"]
    return max(1, min(limit, limits["max"]))


def sort_redeemables(vouchers: Iterable[VoucherView], sorting_rule: Optional[str]) -> List[VoucherView]:
    rule = (sorting_rule or "").upper()
    if rule == BEST_DEAL:
        return sort_items(vouchers, SortOrder("discount_amount", descending=True))
    if rule == LEAST_DEAL:
        return sort_items(vouchers, SortOrder("discount_amount"))
    return sort_items(vouchers, SortOrder("created_at", descending=True))


def is_eligible(
    voucher: VoucherView,
    ctx: Context,
    allowed_rule_prefixes: Optional[frozenset] = None,
    registry: Optional[RuleRegistry] = None,
) -> bool:
    """A voucher qualifies when every rule attached to it (inline or via the registry) passes."""
    for payload in voucher.rule_payloads:
        if not evaluate(payload, ctx, allowed_rule_prefixes):
            return False
    if registry is not None:
        violation = registry.check([voucher.id, voucher.code], ctx, allowed_rule_prefixes)
        if violation is not None:
            logger.debug("Voucher %s fails rule %s", voucher.code or voucher.id, violation.rule_id)
            return False
    return True


def qualify(
    vouchers: Iterable[VoucherView],
    context_for: Callable[[VoucherView], Context],
    *,
    filters: Union[FilterSet, Mapping[str, Any], None] = None,
    sorting_rule: Optional[str] = None,
    audience_only: bool = False,
    starting_after: Optional[datetime] = None,
    limit: Optional[int] = None,
    tracking_source: Optional[str] = None,
    registry: Optional[RuleRegistry] = None,
) -> QualificationResult:
    """
    Select the vouchers a request qualifies for.

    Candidates are taken newest first, cut at the ``starting_after`` cursor,
    filtered, checked against their validation rules (only audience rules in
    ``audience_only`` mode) and ordered by ``sorting_rule``. ``context_for``
    builds the evaluation context for one voucher.
    """
    candidates = sort_redeemables(vouchers, None)
    if starting_after is not None:
        candidates = [v for v in candidates if v.created_at is not None and v.created_at < starting_after]

    filter_set = filters if isinstance(filters, FilterSet) else filter_set_from_mapping(filters, VOUCHER_FIELDS.keys())
    candidates = filter_set.apply(candidates, voucher_subject)

    allowed = config.audience_rule_prefixes() if audience_only else None
    eligible = [v for v in candidates if is_eligible(v, context_for(v), allowed, registry)]

    ordered = sort_redeemables(eligible, sorting_rule)
    limited = ordered[: clamp_limit(limit)]
    has_more = len(ordered) > len(limited)
    return QualificationResult(
        redeemables=limited,
        has_more=has_more,
        more_starting_after=limited[-1].created_at if has_more and limited else None,
        tracking_id=hash_tracking_id(tracking_source) if tracking_source else None,
    )


__all__ = [
    "BEST_DEAL",
    "LEAST_DEAL",
    "QualificationResult",
    "VOUCHER_FIELDS",
    "VoucherView",
    "clamp_limit",
    "is_eligible",
    "qualify",
    "sort_redeemables",
    "voucher_subject",
]
