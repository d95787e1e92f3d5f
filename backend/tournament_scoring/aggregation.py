from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Protocol

from .poules import classify_poule, normalize_poule_name


class MatchRecord(Protocol):
    phase_number: int
    poule_name: str

    player1_licence: str
    player1_name: str
    player1_points: int
    player1_innings: int
    player1_series: int
    player1_match_points: int

    player2_licence: str
    player2_name: str
    player2_points: int
    player2_innings: int
    player2_series: int
    player2_match_points: int


@dataclass(frozen=True)
class MatchSide:
    licence: str
    name: str
    points: int
    innings: int
    series: int
    match_points: int


@dataclass
class PlayerStats:
    licence: str
    name: str = ""
    poule_name: str | None = None
    matches_played: int = 0
    match_points: int = 0
    points: int = 0
    innings: int = 0
    max_series: int = 0
    best_match_average: float = 0.0

    @property
    def average(self) -> float:
        return self.points / self.innings if self.innings > 0 else 0.0

    def add(self, side: MatchSide) -> None:
        self.matches_played += 1
        self.match_points += side.match_points
        self.points += side.points
        self.innings += side.innings
        self.max_series = max(self.max_series, side.series)

        # Best single-match average only counts matches the player won.
        if side.match_points > 0 and side.innings > 0:
            self.best_match_average = max(self.best_match_average, side.points / side.innings)


def normalize_licence(licence: str | None) -> str:
    return "".join((licence or "").split())


def match_sides(match: MatchRecord) -> Iterator[MatchSide]:
    for prefix in ("player1", "player2"):
        licence = normalize_licence(getattr(match, f"{prefix}_licence"))
        if not licence:
            continue
        yield MatchSide(
            licence=licence,
            name=getattr(match, f"{prefix}_name") or "",
            points=getattr(match, f"{prefix}_points") or 0,
            innings=getattr(match, f"{prefix}_innings") or 0,
            series=getattr(match, f"{prefix}_series") or 0,
            match_points=getattr(match, f"{prefix}_match_points") or 0,
        )


def performance_key(stats: PlayerStats) -> tuple[int, float, int]:
    return (-stats.match_points, -stats.average, -stats.max_series)


def sort_by_performance(players: Iterable[PlayerStats]) -> list[PlayerStats]:
    # sorted() is stable: ties past the series tie-break keep their input order.
    return sorted(players, key=performance_key)


def aggregate_matches(matches: Iterable[MatchRecord]) -> dict[str, PlayerStats]:
    players: dict[str, PlayerStats] = {}
    for match in matches:
        poule_name = normalize_poule_name(match.poule_name)
        for side in match_sides(match):
            stats = players.get(side.licence)
            if stats is None:
                stats = PlayerStats(licence=side.licence, name=side.name, poule_name=poule_name)
                players[side.licence] = stats
            stats.add(side)
    return players


def group_by_poule(matches: Iterable[MatchRecord]) -> dict[str, list[MatchRecord]]:
    grouped: dict[str, list[MatchRecord]] = {}
    for match in matches:
        grouped.setdefault(normalize_poule_name(match.poule_name), []).append(match)
    return grouped


def aggregate_regular_poules(matches: Iterable[MatchRecord]) -> dict[str, dict[str, PlayerStats]]:
    per_poule: dict[str, dict[str, PlayerStats]] = {}
    for poule_name, poule_matches in group_by_poule(matches).items():
        if classify_poule(poule_name).is_classification:
            continue
        per_poule[poule_name] = aggregate_matches(poule_matches)
    return per_poule
