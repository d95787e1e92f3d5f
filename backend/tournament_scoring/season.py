"""Season ranking aggregation.

Two competition formats are supported:

* ``standard``: a fixed set of qualifying tournaments (the finale is not
  part of it). Each player's score is the sum of match points plus bonus
  points over those tournaments.
* ``journees``: qualifying days scored with position points plus that day's
  average bonus; only the best ``best_of_count`` days count.

Both builders are pure. Persisting the rows, and replacing the previous
ones, is the caller's job.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from .bonus import AVERAGE_BONUS_KEY, compute_average_bonus, player_average
from .schemas import AverageBonusScheme, CategoryThresholds

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeasonEntry:
    """One player's result in one tournament of the season."""

    licence: str
    player_name: str
    tournament_number: int
    match_points: int = 0
    bonus_points: int = 0
    points: int = 0
    innings: int = 0
    max_series: int = 0
    position_points: int = 0
    bonus_detail: dict[str, int] = field(default_factory=dict)

    @property
    def day_score(self) -> int:
        return self.position_points + int(self.bonus_detail.get(AVERAGE_BONUS_KEY, 0) or 0)


@dataclass
class SeasonRow:
    licence: str
    player_name: str
    total_score: int
    average: float
    best_series: int
    total_bonus_points: int = 0
    average_bonus: int = 0
    rank_position: int = 0
    tournament_scores: dict[str, int | None] = field(default_factory=dict)
    bonus_detail: dict[str, int] = field(default_factory=dict)
    detail: dict[str, object] = field(default_factory=dict)


@dataclass(frozen=True)
class SeasonBonusPolicy:
    enabled: bool = False
    thresholds: CategoryThresholds = field(default_factory=CategoryThresholds)
    scheme: AverageBonusScheme = "normal"
    tiers: tuple[int, int, int] = (1, 2, 3)


def group_by_player(entries: Iterable[SeasonEntry]) -> dict[str, list[SeasonEntry]]:
    grouped: dict[str, list[SeasonEntry]] = {}
    for entry in entries:
        grouped.setdefault(entry.licence, []).append(entry)

    # Licence order first, so the stable ranking sort below is reproducible.
    return {
        licence: sorted(grouped[licence], key=lambda entry: entry.tournament_number)
        for licence in sorted(grouped)
    }


def _player_name(entries: Sequence[SeasonEntry]) -> str:
    names = [entry.player_name for entry in entries if entry.player_name]
    return names[-1] if names else ""


def assign_ranks(rows: list[SeasonRow]) -> list[SeasonRow]:
    ranked = sorted(rows, key=lambda row: (-row.total_score, -row.average, -row.best_series))
    for rank, row in enumerate(ranked, start=1):
        row.rank_position = rank
    return ranked


def build_standard_rankings(entries: Iterable[SeasonEntry], ranking_numbers: Sequence[int]) -> list[SeasonRow]:
    numbers = sorted(set(ranking_numbers))
    wanted = set(numbers)
    rows: list[SeasonRow] = []

    for licence, player_entries in group_by_player(entry for entry in entries if entry.tournament_number in wanted).items():
        scores: dict[str, int | None] = {str(number): None for number in numbers}
        bonus_detail: dict[str, int] = {}
        total_points = 0
        total_innings = 0

        for entry in player_entries:
            scores[str(entry.tournament_number)] = entry.match_points + entry.bonus_points
            total_points += entry.points
            total_innings += entry.innings
            for rule_type, points in entry.bonus_detail.items():
                bonus_detail[rule_type] = bonus_detail.get(rule_type, 0) + int(points)

        rows.append(
            SeasonRow(
                licence=licence,
                player_name=_player_name(player_entries),
                total_score=sum(entry.match_points + entry.bonus_points for entry in player_entries),
                total_bonus_points=sum(entry.bonus_points for entry in player_entries),
                average=player_average(total_points, total_innings),
                best_series=max(entry.max_series for entry in player_entries),
                tournament_scores=scores,
                bonus_detail=dict(sorted(bonus_detail.items())),
                detail={"season_points": total_points, "season_innings": total_innings},
            )
        )

    ranked = assign_ranks(rows)
    if ranked:
        top = ", ".join(f"{row.licence}({row.total_score}pts)" for row in ranked[:3])
        logger.info(f"[RANKING] Top 3: {top}")
    return ranked


def _day_detail(entry: SeasonEntry) -> dict[str, object]:
    return {
        "score": entry.day_score,
        "position_points": entry.position_points,
        "bonus": entry.day_score - entry.position_points,
        "average": round(player_average(entry.points, entry.innings), 3),
        "points": entry.points,
        "innings": entry.innings,
        "match_points": entry.match_points,
        "max_series": entry.max_series,
    }


def build_journees_rankings(
    entries: Iterable[SeasonEntry],
    tournament_numbers: Sequence[int],
    best_of_count: int,
    season_bonus: SeasonBonusPolicy | None = None,
) -> list[SeasonRow]:
    season_bonus = season_bonus or SeasonBonusPolicy()
    numbers = sorted(set(tournament_numbers))
    wanted = set(numbers)
    rows: list[SeasonRow] = []

    for licence, player_entries in group_by_player(entry for entry in entries if entry.tournament_number in wanted).items():
        # Stable on tournament number, so equal day scores keep the earliest days.
        kept = sorted(player_entries, key=lambda entry: -entry.day_score)[:best_of_count]
        kept_sum = sum(entry.day_score for entry in kept)
        kept_points = sum(entry.points for entry in kept)
        kept_innings = sum(entry.innings for entry in kept)
        kept_average = player_average(kept_points, kept_innings)

        average_bonus = 0
        if season_bonus.enabled:
            average_bonus = compute_average_bonus(
                kept_average,
                season_bonus.thresholds,
                season_bonus.scheme,
                season_bonus.tiers,
            )

        scores: dict[str, int | None] = {str(number): None for number in numbers}
        for entry in player_entries:
            scores[str(entry.tournament_number)] = entry.day_score

        rows.append(
            SeasonRow(
                licence=licence,
                player_name=_player_name(player_entries),
                total_score=kept_sum + average_bonus,
                total_bonus_points=average_bonus,
                average_bonus=average_bonus,
                average=kept_average,
                best_series=max(entry.max_series for entry in player_entries),
                tournament_scores=scores,
                bonus_detail={AVERAGE_BONUS_KEY: average_bonus} if average_bonus > 0 else {},
                detail={
                    "tournaments": {str(entry.tournament_number): _day_detail(entry) for entry in player_entries},
                    "kept": [entry.tournament_number for entry in kept],
                    "season_points": kept_points,
                    "season_innings": kept_innings,
                },
            )
        )

    return assign_ranks(rows)
