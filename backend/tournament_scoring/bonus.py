"""Bonus rule engine.

Two passes feed one breakdown per player (rule type -> points):

* Pass A evaluates the configured scoring rules. Rules sharing a rule type
  are mutually exclusive: they are tried in display order and the first one
  whose condition holds is the only one that scores.
* Pass B owns the ``MOYENNE_BONUS`` entry alone and derives it from the
  player's average against the category thresholds.

The ``MIXED_CATEGORY`` entry is entered by hand for players who played
outside their usual category. Each pass only rewrites the entries it owns,
so running them in sequence, or re-running either one, never erases the
other's output or a manual entry.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Protocol

from .schemas import AverageBonusScheme, CategoryThresholds, RuleField, RuleOperator, ScoringRuleConfig

logger = logging.getLogger(__name__)

AVERAGE_BONUS_KEY = "MOYENNE_BONUS"
CATEGORY_BONUS_KEY = "MIXED_CATEGORY"
RULE_BONUS_TYPES = frozenset({"AVERAGE", "PARTICIPATION", "SERIES", "PLACEMENT", "ATTENDANCE", "BEST_GAME"})
EQUALITY_TOLERANCE = 1e-4

BonusBreakdown = dict[str, int]


class ScoredResult(Protocol):
    licence: str
    points: int
    innings: int
    match_points: int
    max_series: int
    position: int
    matches_played: int
    best_match_average: float


def player_average(points: int | float, innings: int | float) -> float:
    return points / innings if innings and innings > 0 else 0.0


def resolve_field(field: RuleField, result: ScoredResult, participant_count: int) -> float:
    if field == "MOYENNE":
        return player_average(result.points or 0, result.innings or 0)
    if field == "NB_JOUEURS":
        return participant_count
    if field == "MATCH_POINTS":
        return result.match_points or 0
    if field == "SERIE":
        return result.max_series or 0
    if field == "POSITION":
        return result.position or 0
    if field == "PARTIES_MENEES":
        return result.matches_played or 0
    if field == "MPART":
        return result.best_match_average or 0.0
    raise ValueError(f"Unknown rule field '{field}'.")


def resolve_value(value: str, references: Mapping[str, float]) -> float | None:
    if value in references:
        return references[value]
    try:
        return float(value)
    except ValueError:
        # An unconfigured threshold reference.
        return None


def compare(left: float, operator: RuleOperator, right: float) -> bool:
    if operator == ">":
        return left > right
    if operator == ">=":
        return left >= right
    if operator == "<":
        return left < right
    if operator == "<=":
        return left <= right
    if operator == "=":
        return abs(left - right) < EQUALITY_TOLERANCE
    raise ValueError(f"Unknown operator '{operator}'.")


def rule_is_evaluable(rule: ScoringRuleConfig, references: Mapping[str, float]) -> bool:
    return rule.referenced_thresholds().issubset(references.keys())


def evaluate_rule(
    rule: ScoringRuleConfig,
    result: ScoredResult,
    participant_count: int,
    references: Mapping[str, float],
) -> bool:
    right_1 = resolve_value(rule.value_1, references)
    if right_1 is None:
        return False
    first = compare(resolve_field(rule.field_1, result, participant_count), rule.operator_1, right_1)

    if not rule.has_second_condition:
        return first

    right_2 = resolve_value(rule.value_2 or "", references)
    if right_2 is None:
        return False
    second = compare(resolve_field(rule.field_2, result, participant_count), rule.operator_2, right_2)

    if rule.logical_op == "AND":
        return first and second
    return first or second


def group_applicable_rules(rules: Iterable[ScoringRuleConfig]) -> dict[str, list[ScoringRuleConfig]]:
    grouped: dict[str, list[ScoringRuleConfig]] = {}
    for rule in rules:
        if not rule.is_active or rule.points == 0 or rule.rule_type not in RULE_BONUS_TYPES:
            continue
        grouped.setdefault(rule.rule_type, []).append(rule)

    for rule_type in grouped:
        grouped[rule_type].sort(key=lambda rule: rule.display_order)
    return dict(sorted(grouped.items()))


def evaluate_rule_bonuses(
    rules_by_type: Mapping[str, list[ScoringRuleConfig]],
    result: ScoredResult,
    participant_count: int,
    references: Mapping[str, float],
) -> BonusBreakdown:
    entries: BonusBreakdown = {}
    for rule_type, rules in rules_by_type.items():
        for rule in rules:
            if not rule_is_evaluable(rule, references):
                continue
            if evaluate_rule(rule, result, participant_count, references):
                if rule.points > 0:
                    entries[rule_type] = rule.points
                    logger.debug(f"[BONUS] {result.licence}: {rule_type} matched rule #{rule.display_order} -> +{rule.points}")
                break
    return entries


def merge_rule_bonuses(existing: Mapping[str, int] | None, rule_entries: Mapping[str, int]) -> BonusBreakdown:
    merged: BonusBreakdown = {
        key: int(points) for key, points in (existing or {}).items() if key not in RULE_BONUS_TYPES
    }
    merged.update(rule_entries)
    return dict(sorted(merged.items()))


def compute_average_bonus(
    average: float,
    thresholds: CategoryThresholds,
    scheme: AverageBonusScheme,
    tiers: tuple[int, int, int],
) -> int:
    if not thresholds.is_configured:
        return 0

    minimum = thresholds.min_average
    maximum = thresholds.max_average
    tier_1, tier_2, tier_3 = tiers

    if scheme == "tiered":
        middle = (minimum + maximum) / 2
        if average >= maximum:
            return tier_3
        if average >= middle:
            return tier_2
        if average >= minimum:
            return tier_1
        return 0

    if average > maximum:
        return tier_2
    if average >= minimum:
        return tier_1
    return 0


def apply_average_bonus(existing: Mapping[str, int] | None, bonus: int | None) -> BonusBreakdown:
    detail: BonusBreakdown = dict(existing or {})
    if bonus and bonus > 0:
        detail[AVERAGE_BONUS_KEY] = bonus
    else:
        detail.pop(AVERAGE_BONUS_KEY, None)
    return dict(sorted(detail.items()))


def apply_category_bonus(existing: Mapping[str, int] | None, bonus: int) -> BonusBreakdown:
    detail: BonusBreakdown = dict(existing or {})
    if bonus > 0:
        detail[CATEGORY_BONUS_KEY] = bonus
    else:
        detail.pop(CATEGORY_BONUS_KEY, None)
    return dict(sorted(detail.items()))


def total_bonus(detail: Mapping[str, int] | None) -> int:
    return sum(points for points in (detail or {}).values() if points > 0)
