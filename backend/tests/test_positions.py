from helpers import eight_player_bracket, make_match, round_robin

from tournament_scoring.aggregation import aggregate_matches
from tournament_scoring.positions import BracketClaim, resolve_bracket_claims, resolve_positions


def positions(resolution):
    return {placement.licence: placement.final_position for placement in resolution.ordered()}


def two_poules_without_bracket():
    return [
        make_match(1, "POULE A", "a1", "a2"),
        make_match(1, "POULE A", "a1", "a3"),
        make_match(1, "POULE A", "a2", "a3", loser_points=12),
        make_match(1, "POULE B", "b1", "b2", winner_points=30),
        make_match(1, "POULE B", "b1", "b3", winner_points=30),
        make_match(1, "POULE B", "b2", "b3", winner_points=25),
    ]


def test_poule_ranks_are_interleaved_without_bracket():
    resolution = resolve_positions(two_poules_without_bracket())

    assert resolution.state == "finalized"
    assert positions(resolution) == {"b1": 1, "a1": 2, "b2": 3, "a2": 4, "a3": 5, "b3": 6}
    assert resolution.placements["b1"].poule_rank == 1
    assert resolution.placements["a3"].poule_name == "POULE A"


def test_positions_are_contiguous():
    for matches in (two_poules_without_bracket(), eight_player_bracket()):
        resolution = resolve_positions(matches)
        assert sorted(positions(resolution).values()) == list(range(1, len(resolution.placements) + 1))


def test_better_poule_rank_always_places_ahead():
    resolution = resolve_positions(two_poules_without_bracket())
    placements = resolution.placements

    for first in placements.values():
        for second in placements.values():
            if first.poule_rank < second.poule_rank:
                assert first.final_position < second.final_position


def test_finale_and_petite_finale_decide_the_podium():
    resolution = resolve_positions(eight_player_bracket())

    assert positions(resolution) == {
        "p5": 1,
        "p1": 2,
        "p2": 3,
        "p6": 4,
        "p7": 5,
        "p3": 6,
        "p4": 7,
        "p8": 8,
    }
    assert resolution.warnings == []
    assert resolution.placements["p5"].poule_name == "POULE B"
    assert resolution.placements["p5"].poule_rank == 1


def test_latest_phase_wins_a_bracket_conflict():
    matches = round_robin(1, "POULE A", ["x1", "x2", "x3", "x4"]) + [
        make_match(2, "PETITE FINALE", "x1", "x3"),
        make_match(3, "FINALE", "x1", "x2"),
    ]

    resolution = resolve_positions(matches)

    assert positions(resolution) == {"x1": 1, "x2": 2, "x4": 3, "x3": 4}


def test_claims_from_later_phases_take_precedence():
    claims = [
        BracketClaim(licence="x1", position=3, phase=2),
        BracketClaim(licence="x3", position=4, phase=2),
        BracketClaim(licence="x1", position=1, phase=3),
        BracketClaim(licence="x2", position=2, phase=3),
    ]

    assert resolve_bracket_claims(claims) == {"x1": 1, "x2": 2, "x3": 4}


def test_unrecognized_classification_poule_is_reported():
    matches = round_robin(1, "POULE A", ["y1", "y2", "y3"]) + [make_match(2, "BARRAGE", "y2", "y3")]

    resolution = resolve_positions(matches)

    assert positions(resolution) == {"y1": 1, "y2": 2, "y3": 3}
    assert len(resolution.warnings) == 1
    assert "BARRAGE" in resolution.warnings[0]


def test_resolution_is_deterministic():
    first = resolve_positions(eight_player_bracket())
    second = resolve_positions(eight_player_bracket())

    assert positions(first) == positions(second)
    assert [placement.licence for placement in first.ordered()] == [
        placement.licence for placement in second.ordered()
    ]


def test_licences_are_normalized_before_aggregation():
    matches = [
        make_match(1, "POULE A", " 123 456 ", "789"),
        make_match(1, "POULE A", "789", "123456"),
    ]

    players = aggregate_matches(matches)

    assert sorted(players) == ["123456", "789"]
    assert players["123456"].matches_played == 2
    assert players["123456"].match_points == 2


def test_best_match_average_only_counts_won_matches():
    matches = [
        make_match(1, "POULE A", "a", "b", winner_points=20, loser_points=18, innings=5),
        make_match(1, "POULE A", "c", "a", winner_points=30, loser_points=29, innings=5),
    ]

    player = aggregate_matches(matches)["a"]

    assert player.best_match_average == 4.0
    assert player.average == 4.9


def test_no_matches_leaves_resolution_unresolved():
    resolution = resolve_positions([])

    assert resolution.state == "unresolved"
    assert resolution.placements == {}


def test_quarter_final_does_not_claim_the_title():
    matches = round_robin(1, "POULE A", ["a", "b", "c", "d", "e", "f"]) + [
        make_match(2, "QUART DE FINALE 1", "e", "f"),
    ]

    resolution = resolve_positions(matches)

    assert positions(resolution) == {"a": 1, "b": 2, "c": 3, "d": 4, "e": 5, "f": 6}
    assert len(resolution.warnings) == 1
    assert "QUART DE FINALE 1" in resolution.warnings[0]
