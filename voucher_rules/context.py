"""Runtime snapshot a validation rule is evaluated against."""

from __future__ import annotations

import hashlib
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Snapshot(BaseModel):
    model_config = ConfigDict(frozen=True)


class CampaignSnapshot(_Snapshot):
    """Campaign the voucher belongs to."""

    id: Optional[str] = None
    name: Optional[str] = None
    type: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class VoucherSnapshot(_Snapshot):
    """The redeemable being checked."""

    id: Optional[str] = None
    code: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    campaign: Optional[CampaignSnapshot] = None


class CustomerSnapshot(_Snapshot):
    id: Optional[str] = None
    source_id: Optional[str] = None
    email: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class OrderItem(_Snapshot):
    sku_id: Optional[str] = None
    product_id: Optional[str] = None
    quantity: Optional[int] = None
    price: Optional[Decimal] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class OrderSnapshot(_Snapshot):
    """Order attached to a validation request.

    ``items`` stays ``None`` when the request carried no item list, which is
    different from an empty list for ``order.items.count``.
    """

    id: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    items: Optional[List[OrderItem]] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class RedemptionCounters(_Snapshot):
    total: int = 0
    per_customer: int = 0


class Context(_Snapshot):
    """Immutable evaluation context built once per validation call."""

    voucher: VoucherSnapshot = Field(default_factory=VoucherSnapshot)
    customer: Optional[CustomerSnapshot] = None
    order: Optional[OrderSnapshot] = None
    redemption_counters: RedemptionCounters = Field(default_factory=RedemptionCounters)
    request_metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def campaign(self) -> Optional[CampaignSnapshot]:
        return self.voucher.campaign


def build_context(data: Dict[str, Any]) -> Context:
    """Build a Context from plain nested dicts (e.g. decoded JSON)."""
    return Context.model_validate(data)


def hash_tracking_id(source: str) -> str:
    """Privacy-preserving tracking id: SHA-256 hex digest of the customer source id."""
    return hashlib.sha256(source.encode("utf-8")).hexdigest()


__all__ = [
    "CampaignSnapshot",
    "Context",
    "CustomerSnapshot",
    "OrderItem",
    "OrderSnapshot",
    "RedemptionCounters",
    "VoucherSnapshot",
    "build_context",
    "hash_tracking_id",
]
