from voucher_rules.filters import (
    AND,
    OR,
    FilterSet,
    FilterSpec,
    combine,
    filter_set_from_mapping,
    matches,
    matches_all,
    parse_filter_params,
)


def _spec(**conditions) -> FilterSpec:
    spec = FilterSpec.from_conditions({f"${op}": values for op, values in conditions.items()})
    assert spec is not None
    return spec


def test_empty_conditions_give_no_spec():
    assert FilterSpec.from_conditions({}) is None
    assert FilterSpec.from_conditions({"$has_value": ["false"]}) is None


def test_blank_subject_branch():
    assert not matches(None, _spec(has_value=["true"]))
    assert matches(None, _spec(is_unknown=["true"]))
    assert matches("   ", _spec(is_unknown=["true"]))
    assert not matches(None, _spec(contains=["SUMMER"]))
    assert matches(None, _spec(is_not=["SUMMER"]))


def test_present_value_fails_is_unknown():
    assert not matches("SUMMER10", _spec(is_unknown=["true"]))
    assert matches("SUMMER10", _spec(has_value=["true"]))


def test_presence_flag_set_by_blank_value():
    assert _spec(has_value=[""]).has_value
    assert _spec(is_unknown=["TRUE"]).is_unknown


def test_exclusions_win_over_includes():
    spec = _spec(is_not=["SUMMER10"], starts_with=["summer"])
    assert not matches("SUMMER10", spec)
    assert matches("SUMMER20", spec)
    assert matches("WINTER", _spec(not_in=["SUMMER10"]))


def test_exact_match_is_case_sensitive_and_unions_is_and_in():
    spec = _spec(**{"is": ["SUCCESS"], "in": ["FAILURE"]})
    assert matches("SUCCESS", spec)
    assert matches("FAILURE", spec)
    assert not matches("success", spec)


def test_pattern_operators_ignore_case():
    assert matches("Summer-Sale", _spec(contains=["SUMMER"]))
    assert matches("summer-sale", _spec(starts_with=["SUM"]))
    assert matches("summer-sale", _spec(ends_with=["SALE"]))
    assert not matches("winter-sale", _spec(starts_with=["sum"]))


def test_relational_operators_compare_strings_not_numbers():
    assert matches("b", _spec(more_than=["A"]))
    assert not matches("a", _spec(more_than=["A"]))
    assert matches("a", _spec(more_than_equal=["A"]))
    assert matches("9", _spec(more_than=["10"]))
    assert matches("abc", _spec(less_than=["abd"]))
    assert matches("ABD", _spec(less_than_equal=["abd"]))


def test_includes_are_alternatives():
    spec = _spec(**{"is": ["X"], "contains": ["SUMMER"]})
    assert matches("X", spec)
    assert matches("big-summer", spec)
    assert not matches("WINTER", spec)


def test_non_string_subjects_compare_by_text():
    assert matches(True, _spec(**{"is": ["true"]}))
    assert matches(False, _spec(**{"is": ["false"]}))
    assert matches(42, _spec(starts_with=["4"]))


def test_multi_valued_subject_is_existential():
    spec = _spec(contains=["SUMMER"])
    assert matches(["WINTER1", "SUMMER2"], spec)
    assert not matches(["WINTER1", "WINTER2"], spec)


def test_multi_valued_subject_rejects_any_excluded_element():
    assert not matches(["A", "B"], _spec(is_not=["B"]))
    assert matches(["A", "C"], _spec(is_not=["B"]))


def test_multi_valued_blank_branch_only_for_empty_collection():
    assert matches([], _spec(is_unknown=["true"]))
    assert not matches([], _spec(has_value=["true"]))
    assert not matches(["A"], _spec(is_unknown=["true"]))
    assert not matches(["", " "], _spec(has_value=["true"]))
    assert matches(["", "A"], _spec(has_value=["true"]))


def test_combine_junctions():
    assert combine([]) is True
    assert combine([True, False]) is False
    assert combine([True, False], OR) is True
    assert combine([False, False], OR) is False


def test_matches_all_junction():
    specs = {"voucher_code": _spec(contains=["SUMMER"]), "result": _spec(**{"is": ["SUCCESS"]})}
    entity = {"voucher_code": "SUMMER10", "result": "FAILURE"}
    assert not matches_all(entity, specs)
    assert matches_all(entity, specs, OR)


def test_matches_all_without_specs_matches_everything():
    assert matches_all({"voucher_code": None}, {})
    assert matches_all({"voucher_code": None}, {"voucher_code": None})


def test_matches_all_reads_attributes_and_custom_resolvers():
    class Row:
        code = "SUMMER10"

    specs = {"code": _spec(contains=["summer"])}
    assert matches_all(Row(), specs)
    assert matches_all({}, specs, resolve=lambda entity, name: "SUMMER99")


def test_parse_filter_params_from_query_string_pairs():
    params = [
        ("filters[voucher_code][conditions][$contains]", "SUMMER"),
        ("filters[result][conditions][$is]", "SUCCESS"),
        ("filters[result][conditions][$is]", "FAILURE"),
        ("filters[junction]", "or"),
        ("order", "-created_at"),
        ("page", "2"),
    ]
    filter_set = parse_filter_params(params)
    assert filter_set.junction == OR
    assert filter_set.order == "-created_at"
    assert filter_set.specs["voucher_code"].contains == ("SUMMER",)
    assert filter_set.specs["result"].is_values == frozenset({"SUCCESS", "FAILURE"})


def test_parse_filter_params_from_multi_valued_mapping():
    params = {
        "filters[campaign_name][conditions][$in][0]": ["Winter", "Summer"],
        "filters[campaign_name][conditions][$is_not]": "Spring",
        "filters[source_id][conditions][$bogus]": "x",
        "filters[failure_code][conditions][$has_value]": "",
    }
    filter_set = parse_filter_params(params)
    assert filter_set.junction == AND
    assert filter_set.order is None
    spec = filter_set.specs["campaign_name"]
    assert spec.in_values == frozenset({"Winter", "Summer"})
    assert spec.is_not_values == frozenset({"Spring"})
    assert "source_id" not in filter_set.specs
    assert filter_set.specs["failure_code"].has_value


def test_parse_filter_params_restricts_fields():
    params = {"filters[secret][conditions][$is]": "x", "filters[result][conditions][$is]": "SUCCESS"}
    assert set(parse_filter_params(params, fields=["result"]).specs) == {"result"}


def test_filter_set_apply():
    filter_set = parse_filter_params({"filters[voucher_code][conditions][$is_unknown]": "true"})
    rows = [{"voucher_code": None}, {"voucher_code": "SUMMER"}]
    assert filter_set.apply(rows) == [{"voucher_code": None}]
    assert FilterSet().apply(rows) == rows


def test_filter_set_from_mapping():
    filter_set = filter_set_from_mapping(
        {
            "junction": "OR",
            "code": {"conditions": {"$in": ["A", "B"]}},
            "holder_role": {"$is_unknown": True},
            "campaign_id": {"conditions": {"$has_value": False}},
            "ignored": "not-a-mapping",
        }
    )
    assert filter_set.junction == OR
    assert filter_set.specs["code"].in_values == frozenset({"A", "B"})
    assert filter_set.specs["holder_role"].is_unknown
    assert set(filter_set.specs) == {"code", "holder_role"}
    assert filter_set_from_mapping(None) == FilterSet()
