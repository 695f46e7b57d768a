import hashlib
from decimal import Decimal

import pytest
from pydantic import ValidationError

from voucher_rules.context import Context, build_context, hash_tracking_id


def test_build_context_from_nested_dicts():
    ctx = build_context(
        {
            "voucher": {"code": "SUMMER10", "campaign": {"id": "camp_1", "name": "Summer"}},
            "customer": {"source_id": "cust_1"},
            "order": {"amount": "12.50", "items": [{"sku_id": "A", "quantity": 2}]},
            "redemption_counters": {"total": 3},
        }
    )
    assert ctx.campaign.name == "Summer"
    assert ctx.order.amount == Decimal("12.50")
    assert ctx.order.items[0].quantity == 2
    assert ctx.redemption_counters.total == 3
    assert ctx.redemption_counters.per_customer == 0


def test_defaults_leave_optional_parts_absent():
    ctx = Context()
    assert ctx.customer is None
    assert ctx.order is None
    assert ctx.campaign is None
    assert ctx.request_metadata == {}


def test_missing_item_list_differs_from_empty():
    assert build_context({"order": {}}).order.items is None
    assert build_context({"order": {"items": []}}).order.items == []


def test_context_is_immutable():
    ctx = build_context({"customer": {"email": "a@x.com"}})
    with pytest.raises(ValidationError):
        ctx.customer.email = "b@x.com"


def test_invalid_context_is_rejected():
    with pytest.raises(ValidationError):
        build_context({"redemption_counters": {"total": "many"}})


def test_hash_tracking_id():
    assert hash_tracking_id("cust_1") == hashlib.sha256(b"cust_1").hexdigest()
    assert len(hash_tracking_id("")) == 64
