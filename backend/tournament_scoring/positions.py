"""Final in-tournament positions from raw match records.

Resolution runs through four states:

    unresolved -> poule_ranked -> bracket_resolved -> finalized

Regular poules are ranked first. Without classification poules the final
order interleaves poule ranks (every poule winner, then every runner-up...).
With classification poules, bracket placements are claimed first, latest
phase winning any conflict, and everyone left fills the free positions.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Literal

from .aggregation import (
    MatchRecord,
    PlayerStats,
    aggregate_matches,
    aggregate_regular_poules,
    group_by_poule,
    sort_by_performance,
)
from .poules import PouleClassification, classify_poule

logger = logging.getLogger(__name__)

ResolutionState = Literal["unresolved", "poule_ranked", "bracket_resolved", "finalized"]


@dataclass
class Placement:
    licence: str
    poule_name: str | None = None
    poule_rank: int = 0
    final_position: int = 0


@dataclass(frozen=True)
class BracketClaim:
    licence: str
    position: int
    phase: int


@dataclass
class PositionResolution:
    state: ResolutionState = "unresolved"
    placements: dict[str, Placement] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    def ordered(self) -> list[Placement]:
        return sorted(self.placements.values(), key=lambda placement: placement.final_position)


def _poule_phase(matches: Sequence[MatchRecord]) -> int:
    return max((match.phase_number or 0 for match in matches), default=0)


def rank_regular_poules(matches: Iterable[MatchRecord], placements: dict[str, Placement]) -> None:
    matches = list(matches)
    poule_stats = aggregate_regular_poules(matches)
    grouped = group_by_poule(matches)

    # Later phases are ranked last so they own the poule name of a player
    # who went through several regular rounds.
    order = sorted(
        enumerate(poule_stats),
        key=lambda item: (_poule_phase(grouped[item[1]]), item[0]),
    )
    for _, poule_name in order:
        ranked = sort_by_performance(poule_stats[poule_name].values())
        for rank, stats in enumerate(ranked, start=1):
            placement = placements.setdefault(stats.licence, Placement(licence=stats.licence))
            placement.poule_name = poule_name
            placement.poule_rank = rank


def collect_bracket_claims(
    classification_poules: dict[str, Sequence[MatchRecord]],
    players: dict[str, PlayerStats],
    warnings: list[str],
) -> list[BracketClaim]:
    claims: list[BracketClaim] = []
    for poule_name, poule_matches in classification_poules.items():
        classification: PouleClassification = classify_poule(poule_name)
        if classification.is_semi_final:
            continue
        if not classification.recognized:
            message = f"Classification poule '{poule_name}' has no recognizable placement; its players are placed by performance."
            logger.warning(f"[POSITIONS] {message}")
            warnings.append(message)
            continue

        phase = _poule_phase(poule_matches)
        contestants = aggregate_matches(poule_matches)
        # The bracket picks the position pair; global tournament stats pick the order inside it.
        ranked = sort_by_performance(players.get(licence, stats) for licence, stats in contestants.items())
        for offset, stats in enumerate(ranked):
            claims.append(
                BracketClaim(
                    licence=stats.licence,
                    position=classification.start_position + offset,
                    phase=phase,
                )
            )
    return claims


def resolve_bracket_claims(claims: Iterable[BracketClaim]) -> dict[str, int]:
    claimed_players: dict[str, int] = {}
    claimed_positions: set[int] = set()
    for claim in sorted(claims, key=lambda item: -item.phase):
        if claim.licence in claimed_players or claim.position in claimed_positions:
            continue
        claimed_players[claim.licence] = claim.position
        claimed_positions.add(claim.position)
    return claimed_players


def _interleave_poule_ranks(placements: dict[str, Placement], players: dict[str, PlayerStats]) -> None:
    max_rank = max((placement.poule_rank for placement in placements.values()), default=0)
    position = 1
    for rank in range(1, max_rank + 1):
        at_rank = [players[licence] for licence, placement in placements.items() if placement.poule_rank == rank]
        for stats in sort_by_performance(at_rank):
            placements[stats.licence].final_position = position
            position += 1

    # Only reachable when a player has no regular poule at all.
    leftovers = [players[licence] for licence, placement in placements.items() if placement.final_position == 0]
    for stats in sort_by_performance(leftovers):
        placements[stats.licence].final_position = position
        position += 1


def _fill_free_positions(
    placements: dict[str, Placement],
    players: dict[str, PlayerStats],
    claimed: dict[str, int],
) -> None:
    taken = set(claimed.values())
    for licence, position in claimed.items():
        placements[licence].final_position = position

    unplaced = [players[licence] for licence in placements if licence not in claimed]
    next_position = 1
    for stats in sort_by_performance(unplaced):
        while next_position in taken:
            next_position += 1
        placements[stats.licence].final_position = next_position
        taken.add(next_position)
        next_position += 1


def resolve_positions(
    matches: Iterable[MatchRecord],
    players: dict[str, PlayerStats] | None = None,
) -> PositionResolution:
    matches = list(matches)
    if players is None:
        players = aggregate_matches(matches)

    resolution = PositionResolution()
    if not matches or not players:
        return resolution

    for licence, stats in players.items():
        resolution.placements[licence] = Placement(licence=licence, poule_name=stats.poule_name)

    rank_regular_poules(matches, resolution.placements)
    resolution.state = "poule_ranked"

    classification_poules = {
        poule_name: poule_matches
        for poule_name, poule_matches in group_by_poule(matches).items()
        if classify_poule(poule_name).is_classification
    }

    if not classification_poules:
        _interleave_poule_ranks(resolution.placements, players)
        resolution.state = "finalized"
        return resolution

    claims = collect_bracket_claims(classification_poules, players, resolution.warnings)
    claimed = resolve_bracket_claims(claims)
    resolution.state = "bracket_resolved"
    logger.debug(f"[POSITIONS] {len(claimed)}/{len(players)} players placed by {len(classification_poules)} classification poules")

    _fill_free_positions(resolution.placements, players, claimed)
    resolution.state = "finalized"
    return resolution
