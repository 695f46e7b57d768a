from datetime import datetime, timedelta

from voucher_rules.filters import parse_filter_params
from voucher_rules.publications import (
    PublicationView,
    filter_publications,
    list_publications,
    order_publications,
    publication_subject,
)
from voucher_rules.sorting import SortOrder, parse_sort, sort_items

BASE = datetime(2024, 1, 1, 12, 0, 0)


def _pub(pub_id, minutes, **kwargs) -> PublicationView:
    return PublicationView(id=pub_id, created_at=BASE + timedelta(minutes=minutes), **kwargs)


PUBLICATIONS = [
    _pub(
        "pub_1",
        0,
        customer_id="c1",
        tracking_id="track_b",
        voucher_codes=["SUMMER10"],
        voucher_types=["DISCOUNT_VOUCHER"],
        campaign_names=["Summer"],
        result="SUCCESS",
        channel="API",
    ),
    _pub(
        "pub_2",
        10,
        customer_id="c2",
        tracking_id="track_a",
        voucher_codes=["WINTER5", "WINTER6"],
        voucher_types=["GIFT_VOUCHER"],
        campaign_names=["Winter"],
        is_referral=True,
        result="SUCCESS",
        channel="WEB",
    ),
    _pub("pub_3", 5, customer_id="c3", result="FAILURE", failure_code="voucher_not_found", channel="API"),
]


def _ids(publications):
    return [p.id for p in publications]


def test_default_order_is_newest_first():
    assert _ids(list_publications(PUBLICATIONS, {})) == ["pub_2", "pub_3", "pub_1"]


def test_voucher_code_contains_filter():
    params = {"filters[voucher_code][conditions][$contains]": "summer"}
    assert _ids(list_publications(PUBLICATIONS, params)) == ["pub_1"]


def test_voucher_code_has_value_and_is_unknown():
    has_value = {"filters[voucher_code][conditions][$has_value]": "true"}
    is_unknown = {"filters[voucher_code][conditions][$is_unknown]": "true"}
    assert _ids(list_publications(PUBLICATIONS, has_value)) == ["pub_2", "pub_1"]
    assert _ids(list_publications(PUBLICATIONS, is_unknown)) == ["pub_3"]


def test_junction_or_versus_default_and():
    params = {
        "filters[voucher_code][conditions][$contains]": "SUMMER",
        "filters[result][conditions][$is]": "FAILURE",
    }
    assert list_publications(PUBLICATIONS, params) == []
    params["filters[junction]"] = "OR"
    assert _ids(list_publications(PUBLICATIONS, params)) == ["pub_3", "pub_1"]


def test_referral_flag_filters_as_text():
    params = {"filters[is_referral_code][conditions][$is]": "true"}
    assert _ids(list_publications(PUBLICATIONS, params)) == ["pub_2"]


def test_failure_code_filter():
    params = {"filters[failure_code][conditions][$starts_with]": "VOUCHER_"}
    assert _ids(list_publications(PUBLICATIONS, params)) == ["pub_3"]


def test_shortcut_parameters_join_the_junction():
    assert _ids(list_publications(PUBLICATIONS, {}, voucher_type="gift_voucher")) == ["pub_2"]
    assert _ids(list_publications(PUBLICATIONS, {}, is_referral_code=False)) == ["pub_3", "pub_1"]
    params = {"filters[junction]": "OR", "filters[result][conditions][$is]": "FAILURE"}
    assert _ids(list_publications(PUBLICATIONS, params, is_referral_code=True)) == ["pub_2", "pub_3"]


def test_unknown_filter_fields_are_ignored():
    params = {"filters[tenant][conditions][$is]": "other"}
    assert len(list_publications(PUBLICATIONS, params)) == 3


def test_explicit_sort_keys():
    assert _ids(order_publications(PUBLICATIONS, "created_at")) == ["pub_1", "pub_3", "pub_2"]
    assert _ids(order_publications(PUBLICATIONS, "tracking_id")) == ["pub_3", "pub_2", "pub_1"]
    assert _ids(order_publications(PUBLICATIONS, "-tracking_id")) == ["pub_1", "pub_2", "pub_3"]
    assert _ids(order_publications(PUBLICATIONS, "voucher_code")) == ["pub_3", "pub_1", "pub_2"]
    assert _ids(order_publications(PUBLICATIONS, "-id")) == ["pub_3", "pub_2", "pub_1"]


def test_unknown_sort_key_falls_back_to_newest_first():
    assert _ids(order_publications(PUBLICATIONS, "result")) == ["pub_2", "pub_3", "pub_1"]


def test_order_param_and_override():
    params = {"order": "created_at"}
    assert _ids(list_publications(PUBLICATIONS, params)) == ["pub_1", "pub_3", "pub_2"]
    assert _ids(list_publications(PUBLICATIONS, params, order="-channel")) == ["pub_2", "pub_1", "pub_3"]


def test_filter_publications_with_prebuilt_filter_set():
    filters = parse_filter_params({"filters[related_object_id][conditions][$is_unknown]": "true"})
    assert len(filter_publications(PUBLICATIONS, filters)) == 3


def test_publication_subject_per_field():
    pub = PUBLICATIONS[1]
    assert publication_subject(pub, "voucher_code") == ["WINTER5", "WINTER6"]
    assert publication_subject(pub, "campaign_name") == ["Winter"]
    assert publication_subject(pub, "is_referral_code") is True
    assert publication_subject(pub, "unknown") is None
    assert pub.voucher_code == "WINTER5"


def test_parse_sort_mapping_and_fallback():
    mapping = {"created_at": "created_at", "code": "voucher_code"}
    assert parse_sort("-code", mapping, "-created_at") == SortOrder("voucher_code", True)
    assert parse_sort("code", mapping, "-created_at") == SortOrder("voucher_code", False)
    assert parse_sort("bogus", mapping, "-created_at") == SortOrder("created_at", True)
    assert parse_sort(None, mapping, "created_at") == SortOrder("created_at", False)


def test_sort_items_is_stable_and_places_missing_values_first():
    rows = [{"k": 2, "n": "a"}, {"k": None, "n": "b"}, {"k": 1, "n": "c"}, {"k": 2, "n": "d"}]

    def getter(row, name):
        return row[name]

    ascending = sort_items(rows, SortOrder("k"), getter)
    assert [r["n"] for r in ascending] == ["b", "c", "a", "d"]
    descending = sort_items(rows, SortOrder("k", descending=True), getter)
    assert [r["n"] for r in descending] == ["a", "d", "c", "b"]
