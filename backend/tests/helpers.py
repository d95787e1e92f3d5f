from types import SimpleNamespace


def make_match(
    phase: int,
    poule: str,
    winner: str,
    loser: str,
    winner_points: int = 20,
    loser_points: int = 10,
    innings: int = 10,
    series: int = 5,
) -> SimpleNamespace:
    return SimpleNamespace(
        phase_number=phase,
        poule_name=poule,
        player1_licence=winner,
        player1_name=winner.upper(),
        player1_points=winner_points,
        player1_innings=innings,
        player1_series=series,
        player1_match_points=2,
        player2_licence=loser,
        player2_name=loser.upper(),
        player2_points=loser_points,
        player2_innings=innings,
        player2_series=series,
        player2_match_points=0,
    )


def round_robin(phase: int, poule: str, ordered: list[str]) -> list[SimpleNamespace]:
    """Every player beats everyone listed after them."""
    return [
        make_match(phase, poule, winner, loser)
        for index, winner in enumerate(ordered)
        for loser in ordered[index + 1 :]
    ]


def eight_player_bracket() -> list[SimpleNamespace]:
    poule_a = round_robin(1, "POULE A", ["p1", "p2", "p3"]) + [
        make_match(1, "POULE A", "p1", "p4"),
        make_match(1, "POULE A", "p2", "p4"),
        make_match(1, "POULE A", "p3", "p4", loser_points=13),
    ]
    poule_b = round_robin(1, "POULE B", ["p5", "p6", "p7"]) + [
        make_match(1, "POULE B", "p5", "p8"),
        make_match(1, "POULE B", "p6", "p8"),
        make_match(1, "POULE B", "p7", "p8", winner_points=26),
    ]
    finals = [
        make_match(2, "FINALE", "p5", "p1"),
        make_match(2, "PETITE FINALE", "p2", "p6"),
    ]
    return poule_a + poule_b + finals
