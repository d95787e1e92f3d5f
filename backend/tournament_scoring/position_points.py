from collections.abc import Iterable, Mapping
from typing import Protocol

from .aggregation import PlayerStats, sort_by_performance
from .schemas import Degradation


class PositionPointsRow(Protocol):
    participant_count: int | None
    position: int
    points: int


class RankedResult(Protocol):
    licence: str
    match_points: int
    points: int
    innings: int
    max_series: int


def _as_lookup(rows: Iterable[PositionPointsRow]) -> dict[int, int]:
    return {row.position: row.points for row in sorted(rows, key=lambda row: row.position)}


def select_lookup(rows: Iterable[PositionPointsRow], participant_count: int) -> dict[int, int]:
    """Pick the position -> points table for a tournament of ``participant_count`` players.

    Fallback order, first non-empty wins: rows for the exact count, rows for
    the smallest configured count above it, the generic rows (count 0 or
    unset), and finally every row of the organization regardless of count.
    """
    rows = list(rows)

    if participant_count > 0:
        exact = [row for row in rows if row.participant_count == participant_count]
        if exact:
            return _as_lookup(exact)

        larger = sorted({row.participant_count for row in rows if row.participant_count and row.participant_count >= participant_count})
        if larger:
            return _as_lookup(row for row in rows if row.participant_count == larger[0])

    generic = [row for row in rows if not row.participant_count]
    if generic:
        return _as_lookup(generic)

    return _as_lookup(rows)


def positions_by_performance(results: Iterable[RankedResult]) -> dict[str, int]:
    stats = [
        PlayerStats(
            licence=result.licence,
            match_points=result.match_points or 0,
            points=result.points or 0,
            innings=result.innings or 0,
            max_series=result.max_series or 0,
        )
        for result in results
    ]
    return {player.licence: position for position, player in enumerate(sort_by_performance(stats), start=1)}


def points_for_positions(
    positions: Mapping[str, int],
    lookup: Mapping[int, int],
    degradation: Degradation = "none",
) -> dict[str, int]:
    participant_count = len(positions)
    awarded: dict[str, int] = {}
    for licence, position in positions.items():
        if degradation == "last_player" and participant_count > 0 and position == participant_count:
            # The last player scores the points of position N + 1.
            awarded[licence] = lookup.get(position + 1, 0)
        else:
            awarded[licence] = lookup.get(position, 0)
    return awarded
