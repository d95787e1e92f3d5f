from __future__ import annotations

import argparse
from datetime import date
from itertools import combinations

from tournament_scoring import crud, models, schemas
from tournament_scoring.database import Base, SessionLocal, engine
from tournament_scoring.settings import save_organization_setting

ORGANIZATION_ID = 1
DEMO_SEASON = "2025-2026"

CATEGORIES = [
    {"game_type": "LIBRE", "level": "R2", "display_name": "Libre R2"},
    {"game_type": "CADRE", "level": "R1", "display_name": "Cadre R1"},
    {"game_type": "3 BANDES", "level": "R1", "display_name": "3 Bandes R1"},
]

GAME_PARAMETERS = [
    {"mode": "LIBRE", "level": "R2", "min_average": 2.0, "max_average": 3.0},
    {"mode": "CADRE", "level": "R1", "min_average": 4.0, "max_average": 6.5},
    {"mode": "3BANDES", "level": "R1", "min_average": 0.45, "max_average": 0.6},
]

SCORING_RULES = [
    {
        "rule_type": "AVERAGE",
        "column_label": "Bonus moy.",
        "field_1": "MOYENNE",
        "operator_1": ">",
        "value_1": "MOYENNE_MAXI",
        "points": 2,
        "display_order": 0,
    },
    {
        "rule_type": "AVERAGE",
        "column_label": "Bonus moy.",
        "field_1": "MOYENNE",
        "operator_1": ">=",
        "value_1": "MOYENNE_MINI",
        "points": 1,
        "display_order": 1,
    },
    {
        "rule_type": "PARTICIPATION",
        "column_label": "Particip.",
        "field_1": "NB_JOUEURS",
        "operator_1": ">=",
        "value_1": "8",
        "logical_op": "AND",
        "field_2": "PARTIES_MENEES",
        "operator_2": ">=",
        "value_2": "3",
        "points": 1,
        "display_order": 0,
    },
]

# Points by final position, for 8-player days and a generic fallback table.
POSITION_POINTS = {
    8: [10, 8, 6, 5, 4, 3, 2, 1, 0],
    0: [10, 8, 6, 5, 4, 3, 2, 1],
}

ORGANIZATION_SETTINGS = {
    "qualification_mode": "standard",
    "bonus_moyenne_enabled": "false",
    "ranking_tournament_numbers": "1,2,3",
    "best_of_count": "2",
    "journees_count": "3",
}

DEMO_PLAYERS = [
    ("123456A", "Lucas Martin", 7),
    ("123457B", "Hugo Bernard", 6),
    ("123458C", "Chloé Dubois", 8),
    ("123459D", "Louis Thomas", 3),
    ("123460E", "Emma Robert", 5),
    ("123461F", "Jules Petit", 4),
    ("123462G", "Léa Durand", 2),
    ("123463H", "Nathan Leroy", 1),
]


def reset_database() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


def play(
    phase_number: int,
    poule_name: str,
    first: tuple[str, str, int],
    second: tuple[str, str, int],
    distance: int = 30,
) -> schemas.MatchInput:
    """Stronger player wins; the loser stops short of the distance."""
    winner, loser = (first, second) if first[2] >= second[2] else (second, first)
    innings = 40 - 2 * winner[2]
    sides = {
        winner[0]: {"points": distance, "series": 3 + winner[2], "match_points": 2},
        loser[0]: {"points": distance - 4 - (8 - loser[2]), "series": 1 + loser[2] // 2, "match_points": 0},
    }

    fields: dict[str, object] = {"phase_number": phase_number, "poule_name": poule_name}
    for prefix, (licence, name, _) in (("player1", first), ("player2", second)):
        side = sides[licence]
        fields.update(
            {
                f"{prefix}_licence": licence,
                f"{prefix}_name": name,
                f"{prefix}_points": side["points"],
                f"{prefix}_innings": innings,
                f"{prefix}_series": side["series"],
                f"{prefix}_match_points": side["match_points"],
                f"{prefix}_average": round(side["points"] / innings, 3),
            }
        )
    return schemas.MatchInput(**fields)


def demo_matches() -> list[schemas.MatchInput]:
    poules = {"POULE A": DEMO_PLAYERS[0::2], "POULE B": DEMO_PLAYERS[1::2]}

    matches: list[schemas.MatchInput] = []
    standings: dict[str, list[tuple[str, str, int]]] = {}
    for poule_name, players in poules.items():
        for first, second in combinations(players, 2):
            matches.append(play(1, poule_name, first, second))
        standings[poule_name] = sorted(players, key=lambda player: -player[2])

    a, b = standings["POULE A"], standings["POULE B"]
    matches.append(play(2, "FINALE", a[0], b[0]))
    matches.append(play(2, "PETITE FINALE", a[1], b[1]))
    matches.append(play(2, "Places 5-6", a[2], b[2]))
    matches.append(play(2, "Places 7-8", a[3], b[3]))
    return matches


def seed(*, demo_tournament: bool = False) -> None:
    reset_database()

    db = SessionLocal()
    try:
        categories: list[models.Category] = []
        for data in CATEGORIES:
            category = models.Category(organization_id=ORGANIZATION_ID, **data)
            db.add(category)
            categories.append(category)

        for data in GAME_PARAMETERS:
            db.add(models.GameParameter(organization_id=ORGANIZATION_ID, **data))

        for data in SCORING_RULES:
            db.add(models.ScoringRule(organization_id=ORGANIZATION_ID, **data))

        for participant_count, points in POSITION_POINTS.items():
            for position, value in enumerate(points, start=1):
                db.add(
                    models.PositionPoints(
                        organization_id=ORGANIZATION_ID,
                        participant_count=participant_count,
                        position=position,
                        points=value,
                    )
                )

        db.commit()

        for key, value in ORGANIZATION_SETTINGS.items():
            save_organization_setting(db, ORGANIZATION_ID, key, value)

        if demo_tournament:
            crud.import_tournament_matches(
                db,
                schemas.MatchImport(
                    category_id=categories[0].id,
                    tournament_number=1,
                    season=DEMO_SEASON,
                    tournament_date=date(2025, 10, 12),
                    matches=demo_matches(),
                ),
            )
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed federation scoring data.")
    parser.add_argument(
        "--demo-tournament",
        action="store_true",
        help="Import a sample 8-player tournament with poules and a final bracket.",
    )
    args = parser.parse_args()

    seed(demo_tournament=args.demo_tournament)
