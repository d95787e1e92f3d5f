from types import SimpleNamespace

import pytest
from pydantic import ValidationError

from tournament_scoring.bonus import (
    AVERAGE_BONUS_KEY,
    CATEGORY_BONUS_KEY,
    apply_average_bonus,
    apply_category_bonus,
    compare,
    compute_average_bonus,
    evaluate_rule_bonuses,
    group_applicable_rules,
    merge_rule_bonuses,
    total_bonus,
)
from tournament_scoring.schemas import CategoryThresholds, ScoringRuleConfig

THRESHOLDS = CategoryThresholds(min_average=2.0, max_average=3.0)


def rule(rule_type="AVERAGE", display_order=0, points=1, **conditions):
    data = {
        "rule_type": rule_type,
        "field_1": "MOYENNE",
        "operator_1": ">=",
        "value_1": "MOYENNE_MINI",
        "points": points,
        "display_order": display_order,
    }
    data.update(conditions)
    return ScoringRuleConfig(**data)


def result(points=50, innings=20, **overrides):
    data = {
        "licence": "100",
        "points": points,
        "innings": innings,
        "match_points": 4,
        "max_series": 8,
        "position": 1,
        "matches_played": 3,
        "best_match_average": 3.0,
    }
    data.update(overrides)
    return SimpleNamespace(**data)


def average_rules():
    return group_applicable_rules(
        [
            rule(display_order=1, points=1, operator_1=">=", value_1="MOYENNE_MINI"),
            rule(display_order=0, points=2, operator_1=">", value_1="MOYENNE_MAXI"),
        ]
    )


@pytest.mark.parametrize(
    ("points", "expected"),
    [
        (70, {"AVERAGE": 2}),
        (50, {"AVERAGE": 1}),
        (30, {}),
    ],
)
def test_rules_of_one_type_are_mutually_exclusive(points, expected):
    entries = evaluate_rule_bonuses(average_rules(), result(points=points), 8, THRESHOLDS.references())

    assert entries == expected


def test_matching_rule_with_negative_points_blocks_later_rules():
    rules = group_applicable_rules(
        [
            rule(display_order=0, points=-1, field_1="NB_JOUEURS", operator_1="<", value_1="4"),
            rule(display_order=1, points=1, field_1="NB_JOUEURS", operator_1=">=", value_1="2"),
        ]
    )

    assert evaluate_rule_bonuses(rules, result(), 3, {}) == {}
    assert evaluate_rule_bonuses(rules, result(), 6, {}) == {"AVERAGE": 1}


def test_second_condition_combinators():
    participation = {
        "rule_type": "PARTICIPATION",
        "field_1": "NB_JOUEURS",
        "operator_1": ">=",
        "value_1": "8",
        "field_2": "PARTIES_MENEES",
        "operator_2": ">=",
        "value_2": "3",
        "points": 1,
        "display_order": 0,
    }
    both = group_applicable_rules([ScoringRuleConfig(logical_op="AND", **participation)])
    either = group_applicable_rules([ScoringRuleConfig(logical_op="OR", **participation)])

    assert evaluate_rule_bonuses(both, result(matches_played=3), 8, {}) == {"PARTICIPATION": 1}
    assert evaluate_rule_bonuses(both, result(matches_played=3), 6, {}) == {}
    assert evaluate_rule_bonuses(either, result(matches_played=3), 6, {}) == {"PARTICIPATION": 1}
    assert evaluate_rule_bonuses(either, result(matches_played=2), 6, {}) == {}


def test_rule_with_missing_threshold_is_skipped():
    only_minimum = CategoryThresholds(min_average=2.0)

    entries = evaluate_rule_bonuses(average_rules(), result(points=70), 8, only_minimum.references())

    assert entries == {"AVERAGE": 1}


def test_equality_uses_tolerance():
    assert compare(2.00005, "=", 2.0)
    assert not compare(2.001, "=", 2.0)


def test_inactive_zero_point_and_average_bonus_rules_are_ignored():
    grouped = group_applicable_rules(
        [
            rule(display_order=0, is_active=False),
            rule(display_order=1, points=0),
            rule(rule_type="MOYENNE_BONUS", display_order=0),
            rule(rule_type="SERIES", display_order=2, field_1="SERIE", value_1="10"),
        ]
    )

    assert list(grouped) == ["SERIES"]


def test_invalid_rules_are_rejected():
    with pytest.raises(ValidationError):
        rule(value_1="MOYENNE_MOYENNE")
    with pytest.raises(ValidationError):
        rule(field_2="SERIE")
    with pytest.raises(ValidationError):
        rule(rule_type="UNKNOWN")


@pytest.mark.parametrize(
    ("average", "expected"),
    [(3.2, 3), (3.0, 3), (2.5, 2), (2.2, 1), (2.0, 1), (1.9, 0)],
)
def test_tiered_average_bonus(average, expected):
    assert compute_average_bonus(average, THRESHOLDS, "tiered", (1, 2, 3)) == expected


@pytest.mark.parametrize(
    ("average", "expected"),
    [(3.01, 2), (3.0, 1), (2.0, 1), (1.99, 0)],
)
def test_normal_average_bonus(average, expected):
    assert compute_average_bonus(average, THRESHOLDS, "normal", (1, 2, 3)) == expected


def test_average_bonus_needs_both_thresholds():
    assert compute_average_bonus(5.0, CategoryThresholds(min_average=2.0), "tiered", (1, 2, 3)) == 0


def test_rule_pass_preserves_average_bonus_entry():
    existing = {AVERAGE_BONUS_KEY: 2, "AVERAGE": 1, "SERIES": 1}

    merged = merge_rule_bonuses(existing, {"PARTICIPATION": 1})

    assert merged == {AVERAGE_BONUS_KEY: 2, "PARTICIPATION": 1}


def test_average_pass_preserves_rule_entries():
    detail = apply_average_bonus({"PARTICIPATION": 1}, 2)
    assert detail == {AVERAGE_BONUS_KEY: 2, "PARTICIPATION": 1}
    assert total_bonus(detail) == 3

    cleared = apply_average_bonus(detail, 0)
    assert cleared == {"PARTICIPATION": 1}
    assert total_bonus(cleared) == 1


def test_passes_are_order_independent():
    rule_entries = {"AVERAGE": 1}

    rules_first = apply_average_bonus(merge_rule_bonuses({}, rule_entries), 2)
    average_first = merge_rule_bonuses(apply_average_bonus({}, 2), rule_entries)

    assert rules_first == average_first


def test_rule_pass_keeps_manual_category_bonus():
    detail = apply_category_bonus({"AVERAGE": 1}, 3)
    assert detail == {"AVERAGE": 1, CATEGORY_BONUS_KEY: 3}

    merged = merge_rule_bonuses(detail, {"SERIES": 1})

    assert merged == {CATEGORY_BONUS_KEY: 3, "SERIES": 1}
    assert total_bonus(merged) == 4
    assert apply_category_bonus(merged, 0) == {"SERIES": 1}


def test_category_bonus_rows_are_not_evaluated_as_rules():
    grouped = group_applicable_rules(
        [
            ScoringRuleConfig(
                rule_type=CATEGORY_BONUS_KEY,
                field_1="MOYENNE",
                operator_1=">=",
                value_1="0",
                points=5,
                display_order=0,
            )
        ]
    )

    assert grouped == {}
