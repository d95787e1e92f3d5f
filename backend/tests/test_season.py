from tournament_scoring.crud import build_season_rows
from tournament_scoring.schemas import CategoryThresholds, OrganizationSettings
from tournament_scoring.season import SeasonBonusPolicy, SeasonEntry, build_journees_rankings, build_standard_rankings

THRESHOLDS = CategoryThresholds(min_average=2.0, max_average=3.0)


def entry(licence, number, **values):
    return SeasonEntry(licence=licence, player_name=licence.upper(), tournament_number=number, **values)


def standard_entries():
    return [
        entry("p1", 1, match_points=6, bonus_points=1, points=60, innings=30, max_series=7, bonus_detail={"AVERAGE": 1}),
        entry("p1", 2, match_points=4, points=40, innings=25, max_series=9),
        entry("p2", 1, match_points=8, points=70, innings=30, max_series=6),
        entry("p2", 4, match_points=8, points=70, innings=30, max_series=12),
    ]


def journees_entries():
    return [
        entry("p1", 1, points=50, innings=20, max_series=6, position_points=10, bonus_detail={"MOYENNE_BONUS": 1}),
        entry("p1", 2, points=20, innings=20, max_series=9, position_points=5),
        entry("p1", 3, points=25, innings=10, max_series=4, position_points=8),
        entry("p2", 1, points=30, innings=20, max_series=5, position_points=8),
        entry("p2", 2, points=40, innings=20, max_series=5, position_points=10),
    ]


def test_standard_ranking_sums_qualifying_tournaments():
    rows = build_standard_rankings(standard_entries(), [1, 2, 3])

    assert [(row.licence, row.rank_position, row.total_score) for row in rows] == [("p1", 1, 11), ("p2", 2, 8)]
    first = rows[0]
    assert first.tournament_scores == {"1": 7, "2": 4, "3": None}
    assert first.total_bonus_points == 1
    assert first.bonus_detail == {"AVERAGE": 1}
    assert first.best_series == 9
    assert first.average == 100 / 55


def test_standard_ranking_ignores_tournaments_outside_the_set():
    rows = build_standard_rankings(standard_entries(), [1, 2, 3])

    second = rows[1]
    assert second.best_series == 6
    assert second.tournament_scores == {"1": 8, "2": None, "3": None}


def test_ties_break_on_average_then_series():
    entries = [
        entry("a", 1, match_points=4, points=30, innings=20, max_series=5),
        entry("b", 1, match_points=4, points=40, innings=20, max_series=3),
        entry("c", 1, match_points=4, points=40, innings=20, max_series=4),
    ]

    rows = build_standard_rankings(entries, [1])

    assert [row.licence for row in rows] == ["c", "b", "a"]


def test_journees_keep_best_days():
    rows = build_journees_rankings(journees_entries(), [1, 2, 3], best_of_count=2)

    first = rows[0]
    assert first.licence == "p1"
    assert first.total_score == 19
    assert first.detail["kept"] == [1, 3]
    assert first.average == 2.5
    assert first.best_series == 9
    assert first.tournament_scores == {"1": 11, "2": 5, "3": 8}
    assert first.average_bonus == 0
    assert first.bonus_detail == {}

    second = rows[1]
    assert second.total_score == 18
    assert second.tournament_scores == {"1": 8, "2": 10, "3": None}


def test_journees_season_average_bonus():
    policy = SeasonBonusPolicy(enabled=True, thresholds=THRESHOLDS, scheme="normal", tiers=(1, 2, 3))

    rows = build_journees_rankings(journees_entries(), [1, 2, 3], best_of_count=2, season_bonus=policy)

    first = rows[0]
    assert first.average_bonus == 1
    assert first.total_score == 20
    assert first.total_bonus_points == 1
    assert first.bonus_detail == {"MOYENNE_BONUS": 1}
    assert rows[1].average_bonus == 0


def test_season_bonus_is_not_applied_on_top_of_day_bonus():
    settings = OrganizationSettings(
        qualification_mode="journees",
        average_bonus_tiers=True,
        bonus_moyenne_enabled=True,
    )

    rows = build_season_rows(journees_entries(), settings, THRESHOLDS, [])

    assert all(row.average_bonus == 0 for row in rows)
    assert rows[0].total_score == 19


def test_season_bonus_without_thresholds_is_reported():
    settings = OrganizationSettings(qualification_mode="journees", average_bonus_tiers=True)
    warnings: list[str] = []

    rows = build_season_rows(journees_entries(), settings, CategoryThresholds(), warnings)

    assert all(row.average_bonus == 0 for row in rows)
    assert len(warnings) == 1


def test_season_rows_are_reproducible():
    shuffled = list(reversed(standard_entries()))

    assert build_standard_rankings(shuffled, [1, 2, 3]) == build_standard_rankings(standard_entries(), [1, 2, 3])
