from types import SimpleNamespace

from tournament_scoring.position_points import points_for_positions, positions_by_performance, select_lookup


def table(participant_count, points):
    return [
        SimpleNamespace(participant_count=participant_count, position=position, points=value)
        for position, value in enumerate(points, start=1)
    ]


def test_exact_participant_count_wins():
    rows = table(8, [10, 8, 6, 5, 4, 3, 2, 1, 0]) + table(7, [9, 7, 5, 4, 3, 2, 1])

    assert select_lookup(rows, 7) == {1: 9, 2: 7, 3: 5, 4: 4, 5: 3, 6: 2, 7: 1}


def test_smallest_larger_table_is_used():
    rows = table(8, [10, 8, 6, 5, 4, 3, 2, 1, 0]) + table(12, [20] * 12) + table(0, [1] * 4)

    lookup = select_lookup(rows, 7)

    assert lookup[1] == 10
    assert lookup[8] == 1


def test_generic_table_when_no_count_fits():
    rows = table(8, [10, 8, 6]) + table(None, [5, 4, 3, 2])

    assert select_lookup(rows, 12) == {1: 5, 2: 4, 3: 3, 4: 2}


def test_any_rows_as_last_resort():
    rows = table(6, [6, 5, 4, 3, 2, 1])

    assert select_lookup(rows, 10) == {1: 6, 2: 5, 3: 4, 4: 3, 5: 2, 6: 1}
    assert select_lookup([], 10) == {}


def test_seven_players_use_the_eight_player_table():
    lookup = select_lookup(table(8, [10, 8, 6, 5, 4, 3, 2, 1, 0]), 7)
    positions = {f"p{position}": position for position in range(1, 8)}

    awarded = points_for_positions(positions, lookup)

    assert awarded["p1"] == 10
    assert awarded["p7"] == 2


def test_last_player_degradation():
    lookup = {1: 10, 2: 8, 3: 6, 4: 5}
    positions = {"a": 1, "b": 2, "c": 3}

    assert points_for_positions(positions, lookup, "none") == {"a": 10, "b": 8, "c": 6}
    assert points_for_positions(positions, lookup, "last_player") == {"a": 10, "b": 8, "c": 5}


def test_last_player_degradation_without_next_row_scores_zero():
    lookup = {1: 10, 2: 8, 3: 6}
    positions = {"a": 1, "b": 2, "c": 3}

    assert points_for_positions(positions, lookup, "last_player")["c"] == 0


def test_positions_by_performance():
    results = [
        SimpleNamespace(licence="a", match_points=4, points=40, innings=20, max_series=6),
        SimpleNamespace(licence="b", match_points=6, points=30, innings=20, max_series=4),
        SimpleNamespace(licence="c", match_points=4, points=50, innings=20, max_series=5),
        SimpleNamespace(licence="d", match_points=4, points=50, innings=20, max_series=7),
    ]

    assert positions_by_performance(results) == {"b": 1, "d": 2, "c": 3, "a": 4}
