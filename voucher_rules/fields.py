"""Resolve dotted rule field paths (``order.amount``, ``customer.metadata.tier``) against a Context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union

from .context import Context, OrderItem
from .errors import FieldPathError

CUSTOMER = "customer"
ORDER = "order"
ORDER_ITEMS = "order.items"
VOUCHER = "voucher"
CAMPAIGN = "campaign"
REDEMPTIONS = "redemptions"

METADATA = "metadata"

# Attributes accepted per namespace, besides ``metadata.<key>``.
_ATTRIBUTES: Dict[str, Tuple[str, ...]] = {
    CUSTOMER: ("id", "email", "segment"),
    ORDER: ("amount", "currency", "items.count"),
    ORDER_ITEMS: ("sku", "product", "quantity", "price"),
    VOUCHER: ("code",),
    CAMPAIGN: ("id",),
    REDEMPTIONS: ("count.total", "count.per_customer"),
}

# Longest prefix first so ``order.items.`` wins over ``order.``.
_PREFIXES = (ORDER_ITEMS, CUSTOMER, ORDER, VOUCHER, CAMPAIGN, REDEMPTIONS)


@dataclass(frozen=True)
class FieldRef:
    """A field path parsed once into namespace, attribute and optional metadata key."""

    namespace: str
    attribute: str
    key: Optional[str] = None

    @property
    def path(self) -> str:
        if self.attribute == METADATA:
            return f"{self.namespace}.{METADATA}.{self.key}"
        return f"{self.namespace}.{self.attribute}"


class EachItem(tuple):
    """Per-item values: a condition on them holds if it holds for any item."""


Resolved = Union[Any, EachItem, None]


def parse_field_ref(path: str) -> FieldRef:
    """Parse a rule field name; raises FieldPathError for unknown paths."""
    if not isinstance(path, str) or not path:
        raise FieldPathError(f"Invalid field path: {path!r}")

    if path == "order.items.count":
        return FieldRef(ORDER, "items.count")

    for namespace in _PREFIXES:
        prefix = namespace + "."
        if not path.startswith(prefix):
            continue
        rest = path[len(prefix):]
        if rest.startswith(METADATA + "."):
            key = rest[len(METADATA) + 1:]
            if not key:
                break
            return FieldRef(namespace, METADATA, key)
        if rest in _ATTRIBUTES[namespace]:
            return FieldRef(namespace, rest)
        break
    raise FieldPathError(f"Unknown field path: {path}")


def _metadata_value(metadata: Optional[Dict[str, Any]], key: Optional[str]) -> Any:
    if not metadata or key is None:
        return None
    return metadata.get(key)


def _resolve_customer(ref: FieldRef, ctx: Context) -> Resolved:
    customer = ctx.customer
    if customer is None:
        return None
    if ref.attribute == "id":
        return customer.source_id if customer.source_id is not None else customer.id
    if ref.attribute == "email":
        return customer.email
    if ref.attribute == METADATA:
        return _metadata_value(customer.metadata, ref.key)
    # segment membership is not part of the snapshot
    return None


def _resolve_order(ref: FieldRef, ctx: Context) -> Resolved:
    order = ctx.order
    if order is None:
        return None
    if ref.attribute == "amount":
        return order.amount
    if ref.attribute == "currency":
        return order.currency
    if ref.attribute == "items.count":
        return None if order.items is None else len(order.items)
    if ref.attribute == METADATA:
        return _metadata_value(order.metadata, ref.key)
    return None


def _item_value(item: OrderItem, ref: FieldRef) -> Any:
    if ref.attribute == "quantity":
        return item.quantity
    if ref.attribute == "price":
        return item.price
    if ref.attribute == METADATA:
        return _metadata_value(item.metadata, ref.key)
    return None


def _resolve_order_items(ref: FieldRef, ctx: Context) -> Resolved:
    order = ctx.order
    if order is None or order.items is None:
        return None
    items = order.items
    if ref.attribute == "sku":
        return [item.sku_id for item in items if item.sku_id is not None]
    if ref.attribute == "product":
        return [item.product_id for item in items if item.product_id is not None]
    return EachItem(_item_value(item, ref) for item in items)


def _resolve_voucher(ref: FieldRef, ctx: Context) -> Resolved:
    if ref.attribute == "code":
        return ctx.voucher.code
    if ref.attribute == METADATA:
        return _metadata_value(ctx.voucher.metadata, ref.key)
    return None


def _resolve_campaign(ref: FieldRef, ctx: Context) -> Resolved:
    campaign = ctx.campaign
    if campaign is None:
        return None
    if ref.attribute == "id":
        return None if campaign.id is None else str(campaign.id)
    if ref.attribute == METADATA:
        return _metadata_value(campaign.metadata, ref.key)
    return None


def _resolve_redemptions(ref: FieldRef, ctx: Context) -> Resolved:
    if ref.attribute == "count.total":
        return ctx.redemption_counters.total
    if ref.attribute == "count.per_customer":
        return ctx.redemption_counters.per_customer
    if ref.attribute == METADATA:
        return _metadata_value(ctx.request_metadata, ref.key)
    return None


_RESOLVERS = {
    CUSTOMER: _resolve_customer,
    ORDER: _resolve_order,
    ORDER_ITEMS: _resolve_order_items,
    VOUCHER: _resolve_voucher,
    CAMPAIGN: _resolve_campaign,
    REDEMPTIONS: _resolve_redemptions,
}


def resolve(field: Union[str, FieldRef], ctx: Context) -> Resolved:
    """
    Resolve a field against the context.

    Returns ``None`` when the value is absent (missing customer/order, unknown
    path, missing metadata key). ``order.items.sku`` and ``order.items.product``
    return a list of identifiers; other ``order.items.*`` paths return an
    ``EachItem`` tuple with one value per item.
    """
    if isinstance(field, FieldRef):
        ref = field
    else:
        try:
            ref = parse_field_ref(field)
        except FieldPathError:
            return None
    return _RESOLVERS[ref.namespace](ref, ctx)


__all__ = [
    "CAMPAIGN",
    "CUSTOMER",
    "EachItem",
    "FieldRef",
    "ORDER",
    "ORDER_ITEMS",
    "REDEMPTIONS",
    "VOUCHER",
    "parse_field_ref",
    "resolve",
]
