from . import models, schemas


def _int_detail(value: dict | None) -> dict[str, int]:
    return {str(key): int(points) for key, points in (value or {}).items()}


def result_to_read(result: models.TournamentResult) -> schemas.TournamentResultRead:
    return schemas.TournamentResultRead(
        id=result.id,
        licence=result.licence,
        player_name=result.player_name or "",
        position=result.position or 0,
        poule_name=result.poule_name,
        poule_rank=result.poule_rank or 0,
        match_points=result.match_points or 0,
        points=result.points or 0,
        innings=result.innings or 0,
        average=round(result.average or 0.0, 3),
        max_series=result.max_series or 0,
        matches_played=result.matches_played or 0,
        best_match_average=round(result.best_match_average or 0.0, 3),
        position_points=result.position_points or 0,
        bonus_points=result.bonus_points or 0,
        bonus_detail=_int_detail(result.bonus_detail),
    )


def ranking_to_read(ranking: models.SeasonRanking) -> schemas.SeasonRankingRead:
    return schemas.SeasonRankingRead(
        rank_position=ranking.rank_position,
        licence=ranking.licence,
        player_name=ranking.player_name or "",
        total_score=ranking.total_score or 0,
        total_bonus_points=ranking.total_bonus_points or 0,
        average_bonus=ranking.average_bonus or 0,
        average=round(ranking.average or 0.0, 3),
        best_series=ranking.best_series or 0,
        tournament_scores=dict(ranking.tournament_scores or {}),
        bonus_detail=_int_detail(ranking.bonus_detail),
        detail=dict(ranking.detail or {}),
    )
