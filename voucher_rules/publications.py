"""Publication listing: operator filters, shortcut parameters and ordering."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from . import config
from .filters import FilterSet, Params, parse_filter_params
from .sorting import parse_sort, sort_items


@dataclass(frozen=True)
class PublicationView:
    """Flattened publication: one customer, one or several vouchers."""

    id: str
    created_at: Optional[datetime] = None
    customer_id: Optional[str] = None
    tracking_id: Optional[str] = None
    voucher_codes: List[str] = field(default_factory=list)
    voucher_ids: List[str] = field(default_factory=list)
    voucher_types: List[str] = field(default_factory=list)
    campaign_id: Optional[str] = None
    campaign_names: List[str] = field(default_factory=list)
    is_referral: bool = False
    result: Optional[str] = None
    failure_code: Optional[str] = None
    source_id: Optional[str] = None
    channel: Optional[str] = None

    @property
    def voucher_code(self) -> Optional[str]:
        return self.voucher_codes[0] if self.voucher_codes else None


# filter field -> subject extracted from the publication
PUBLICATION_FIELDS: Dict[str, Callable[[PublicationView], Any]] = {
    "customer_id": lambda p: p.customer_id,
    "voucher_code": lambda p: p.voucher_codes,
    "campaign_name": lambda p: p.campaign_names,
    "failure_code": lambda p: p.failure_code,
    "result": lambda p: p.result,
    "source_id": lambda p: p.source_id,
    "voucher_type": lambda p: p.voucher_types,
    "is_referral_code": lambda p: p.is_referral,
    "parent_object_id": lambda p: p.campaign_id,
    "related_object_id": lambda p: p.voucher_ids,
}


def publication_subject(publication: PublicationView, field_name: str) -> Any:
    extractor = PUBLICATION_FIELDS.get(field_name)
    return extractor(publication) if extractor else None


def _shortcut_checks(
    publication: PublicationView,
    voucher_type: Optional[str],
    is_referral_code: Optional[bool],
) -> List[bool]:
    checks: List[bool] = []
    if is_referral_code is not None:
        checks.append(is_referral_code == publication.is_referral)
    if voucher_type is not None:
        wanted = voucher_type.lower()
        checks.append(any(t.lower() == wanted for t in publication.voucher_types))
    return checks


def filter_publications(
    publications: Iterable[PublicationView],
    filters: FilterSet,
    *,
    voucher_type: Optional[str] = None,
    is_referral_code: Optional[bool] = None,
) -> List[PublicationView]:
    """Keep publications passing the filter set; shortcut parameters join the same junction."""
    return [
        p
        for p in publications
        if filters.matches(p, publication_subject, _shortcut_checks(p, voucher_type, is_referral_code))
    ]


def order_publications(publications: Iterable[PublicationView], order: Optional[str]) -> List[PublicationView]:
    sort_order = parse_sort(order, config.publication_sort_keys(), config.publication_default_order())
    return sort_items(publications, sort_order)


def list_publications(
    publications: Iterable[PublicationView],
    params: Params,
    *,
    order: Optional[str] = None,
    voucher_type: Optional[str] = None,
    is_referral_code: Optional[bool] = None,
) -> List[PublicationView]:
    """
    Filter and order publications from raw query parameters.

    ``order`` overrides an ``order`` query parameter. Pagination is left to
    the caller.
    """
    filters = parse_filter_params(params, fields=PUBLICATION_FIELDS.keys())
    selected = filter_publications(
        publications, filters, voucher_type=voucher_type, is_referral_code=is_referral_code
    )
    return order_publications(selected, order if order is not None else filters.order)


__all__ = [
    "PUBLICATION_FIELDS",
    "PublicationView",
    "filter_publications",
    "list_publications",
    "order_publications",
    "publication_subject",
]
