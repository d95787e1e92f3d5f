import logging
from collections.abc import Callable, Sequence

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models, schemas, serializers
from .aggregation import aggregate_matches, normalize_licence
from .bonus import (
    apply_average_bonus,
    apply_category_bonus,
    compute_average_bonus,
    evaluate_rule_bonuses,
    group_applicable_rules,
    merge_rule_bonuses,
    player_average,
    rule_is_evaluable,
    total_bonus,
)
from .poules import CLASSIFIER_VERSION, normalize_poule_name
from .position_points import points_for_positions, positions_by_performance, select_lookup
from .positions import resolve_positions
from .season import (
    SeasonBonusPolicy,
    SeasonEntry,
    SeasonRow,
    build_journees_rankings,
    build_standard_rankings,
)
from .settings import load_category_thresholds, load_organization_settings

logger = logging.getLogger(__name__)


def _save_row(db: Session, report: schemas.RecomputeReport, licence: str, apply: Callable[[], None]) -> bool:
    try:
        with db.begin_nested():
            apply()
            db.flush()
    except SQLAlchemyError as exc:
        logger.error(f"[STORE] Could not save row for {licence}: {exc}")
        report.errors.append(schemas.RowError(licence=licence, error=str(exc)))
        report.success = False
        return False
    return True


# ---------------------------------------------------------------------------
# Categories, tournaments and stored rows
# ---------------------------------------------------------------------------


def get_category_or_raise(db: Session, category_id: int) -> models.Category:
    category = db.get(models.Category, category_id)
    if not category:
        raise LookupError("Category not found.")
    return category


def get_tournament_or_raise(db: Session, tournament_id: int) -> models.Tournament:
    tournament = db.get(models.Tournament, tournament_id)
    if not tournament:
        raise LookupError("Tournament not found.")
    return tournament


def get_or_create_tournament(
    db: Session,
    category: models.Category,
    payload: schemas.TournamentKey,
) -> models.Tournament:
    tournament = (
        db.query(models.Tournament)
        .filter(
            models.Tournament.category_id == category.id,
            models.Tournament.tournament_number == payload.tournament_number,
            models.Tournament.season == payload.season,
        )
        .first()
    )
    if tournament is None:
        tournament = models.Tournament(
            category_id=category.id,
            tournament_number=payload.tournament_number,
            season=payload.season,
            organization_id=category.organization_id,
        )
        db.add(tournament)

    if payload.tournament_date is not None:
        tournament.tournament_date = payload.tournament_date
    db.flush()
    return tournament


def list_tournament_matches(db: Session, tournament_id: int) -> list[models.TournamentMatch]:
    return (
        db.query(models.TournamentMatch)
        .filter(models.TournamentMatch.tournament_id == tournament_id)
        .order_by(models.TournamentMatch.phase_number.asc(), models.TournamentMatch.id.asc())
        .all()
    )


def list_tournament_results(db: Session, tournament_id: int) -> list[models.TournamentResult]:
    return (
        db.query(models.TournamentResult)
        .filter(models.TournamentResult.tournament_id == tournament_id)
        .order_by(models.TournamentResult.position.asc(), models.TournamentResult.licence.asc())
        .all()
    )


def _has_match_records(db: Session, tournament_id: int) -> bool:
    return (
        db.query(models.TournamentMatch.id)
        .filter(models.TournamentMatch.tournament_id == tournament_id)
        .first()
        is not None
    )


def _clear_tournament_rows(db: Session, tournament_id: int) -> None:
    db.query(models.TournamentMatch).filter(models.TournamentMatch.tournament_id == tournament_id).delete(
        synchronize_session="fetch"
    )
    db.query(models.TournamentResult).filter(models.TournamentResult.tournament_id == tournament_id).delete(
        synchronize_session="fetch"
    )


def _store_match_results(
    db: Session,
    tournament: models.Tournament,
    matches: Sequence[models.TournamentMatch],
) -> schemas.RecomputeReport:
    report = schemas.RecomputeReport()
    players = aggregate_matches(matches)
    resolution = resolve_positions(matches, players)
    report.warnings.extend(resolution.warnings)

    existing = {row.licence: row for row in list_tournament_results(db, tournament.id)}
    for licence, stale in existing.items():
        if licence not in players:
            db.delete(stale)

    for placement in resolution.ordered():
        stats = players[placement.licence]
        values = {
            "player_name": stats.name,
            "position": placement.final_position,
            "poule_name": placement.poule_name,
            "poule_rank": placement.poule_rank,
            "match_points": stats.match_points,
            "points": stats.points,
            "innings": stats.innings,
            "average": round(stats.average, 4),
            "max_series": stats.max_series,
            "matches_played": stats.matches_played,
            "best_match_average": round(stats.best_match_average, 4),
        }
        row = existing.get(stats.licence)
        if row is None:
            row = models.TournamentResult(tournament_id=tournament.id, licence=stats.licence, bonus_detail={}, **values)
            if _save_row(db, report, stats.licence, lambda row=row: db.add(row)):
                report.created += 1
            continue

        def apply(row: models.TournamentResult = row, values: dict[str, object] = values) -> None:
            for key, value in values.items():
                setattr(row, key, value)

        if _save_row(db, report, stats.licence, apply):
            report.updated += 1

    logger.info(
        f"[IMPORT] Tournament {tournament.id}: {report.created + report.updated} results "
        f"from {len(matches)} matches ({resolution.state})"
    )
    return report


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


def import_tournament_matches(db: Session, payload: schemas.MatchImport) -> schemas.ImportReport:
    category = get_category_or_raise(db, payload.category_id)
    report = schemas.ImportReport()
    if not payload.matches:
        report.warnings.append("No matches to import.")
        return report

    rows: list[dict[str, object]] = []
    for item in payload.matches:
        data = item.model_dump()
        data["poule_name"] = normalize_poule_name(item.poule_name)
        data["player1_licence"] = normalize_licence(item.player1_licence)
        data["player2_licence"] = normalize_licence(item.player2_licence)
        if data["player1_licence"] == data["player2_licence"]:
            raise ValueError(f"A match cannot oppose licence {data['player1_licence']} to itself.")
        rows.append(data)

    tournament = get_or_create_tournament(db, category, payload)
    _clear_tournament_rows(db, tournament.id)

    matches: list[models.TournamentMatch] = []
    for data in rows:
        match = models.TournamentMatch(tournament_id=tournament.id, **data)
        db.add(match)
        matches.append(match)
    db.flush()

    report.merge(_store_match_results(db, tournament, matches))
    db.commit()

    report.tournament_id = tournament.id
    report.match_count = len(matches)
    report.poules = sorted({match.poule_name for match in matches})
    report.classifier_version = CLASSIFIER_VERSION
    logger.info(
        f"[IMPORT] {len(matches)} matches imported for category {category.id}, "
        f"T{payload.tournament_number}, season {payload.season} (classifier v{CLASSIFIER_VERSION})"
    )

    report.merge(refresh_tournament(db, category, tournament))
    return report


def import_tournament_results(db: Session, payload: schemas.ResultImport) -> schemas.ImportReport:
    category = get_category_or_raise(db, payload.category_id)
    report = schemas.ImportReport()
    if not payload.results:
        report.warnings.append("No results to import.")
        return report

    licences = [normalize_licence(item.licence) for item in payload.results]
    if len(set(licences)) != len(licences):
        raise ValueError("Each licence may appear only once per tournament.")

    tournament = get_or_create_tournament(db, category, payload)
    _clear_tournament_rows(db, tournament.id)

    rows = [
        models.TournamentResult(
            tournament_id=tournament.id,
            licence=licence,
            player_name=item.player_name,
            match_points=item.match_points,
            points=item.points,
            innings=item.innings,
            average=round(player_average(item.points, item.innings), 4),
            max_series=item.max_series,
            matches_played=item.matches_played,
            best_match_average=item.best_match_average,
            bonus_detail={},
        )
        for licence, item in zip(licences, payload.results)
    ]
    positions = positions_by_performance(rows)
    for row in rows:
        row.position = positions[row.licence]
        if _save_row(db, report, row.licence, lambda row=row: db.add(row)):
            report.created += 1
    db.commit()

    report.tournament_id = tournament.id
    logger.info(f"[IMPORT] {report.created} results imported for tournament {tournament.id}")

    report.merge(refresh_tournament(db, category, tournament))
    return report


# ---------------------------------------------------------------------------
# Per-tournament stages
# ---------------------------------------------------------------------------


def rebuild_positions(db: Session, tournament: models.Tournament) -> schemas.RecomputeReport:
    matches = list_tournament_matches(db, tournament.id)
    if not matches:
        report = schemas.RecomputeReport()
        report.skipped = len(list_tournament_results(db, tournament.id))
        return report

    report = _store_match_results(db, tournament, matches)
    db.commit()
    return report


def assign_position_points(
    db: Session,
    tournament: models.Tournament,
    settings: schemas.OrganizationSettings,
) -> schemas.RecomputeReport:
    report = schemas.RecomputeReport()
    if settings.qualification_mode != "journees":
        return report

    results = list_tournament_results(db, tournament.id)
    if not results:
        return report

    has_brackets = _has_match_records(db, tournament.id)
    if has_brackets:
        positions = {result.licence: result.position for result in results}
    else:
        positions = positions_by_performance(results)

    query = db.query(models.PositionPoints)
    if tournament.organization_id is not None:
        query = query.filter(models.PositionPoints.organization_id == tournament.organization_id)
    lookup = select_lookup(query.all(), len(results))
    if not lookup:
        message = (
            f"No position points configured for organization {tournament.organization_id} "
            f"(players={len(results)}); tournament {tournament.id} left unchanged."
        )
        logger.warning(f"[POS-PTS] {message}")
        report.warnings.append(message)
        report.skipped = len(results)
        return report

    awarded = points_for_positions(positions, lookup, settings.position_points_degradation)
    for result in results:

        def apply(result: models.TournamentResult = result) -> None:
            result.position_points = awarded[result.licence]
            if not has_brackets:
                result.position = positions[result.licence]

        if _save_row(db, report, result.licence, apply):
            report.updated += 1
    db.commit()

    logger.info(
        f"[POS-PTS] Tournament {tournament.id}: {report.updated} players, "
        f"{'bracket positions kept' if has_brackets else 'positions from performance'}"
    )
    return report


def load_scoring_rules(db: Session, organization_id: int | None) -> list[schemas.ScoringRuleConfig]:
    query = db.query(models.ScoringRule)
    if organization_id is not None:
        query = query.filter(models.ScoringRule.organization_id == organization_id)

    rules: list[schemas.ScoringRuleConfig] = []
    for row in query.order_by(models.ScoringRule.rule_type.asc(), models.ScoringRule.display_order.asc()).all():
        if not row.field_1:
            continue
        try:
            rules.append(schemas.ScoringRuleConfig.model_validate(row))
        except ValidationError as exc:
            logger.warning(f"[BONUS] Ignoring invalid scoring rule #{row.id} ({row.rule_type}): {exc.errors()[0]['msg']}")
    return rules


def apply_rule_bonuses(
    db: Session,
    tournament: models.Tournament,
    rules: Sequence[schemas.ScoringRuleConfig],
    thresholds: schemas.CategoryThresholds,
) -> schemas.RecomputeReport:
    report = schemas.RecomputeReport()
    results = list_tournament_results(db, tournament.id)
    if not results:
        return report

    rules_by_type = group_applicable_rules(rules)
    references = thresholds.references()
    for rule_type, type_rules in rules_by_type.items():
        for rule in type_rules:
            if not rule_is_evaluable(rule, references):
                missing = ", ".join(sorted(rule.referenced_thresholds() - references.keys()))
                message = f"Rule {rule_type} #{rule.display_order} skipped: threshold {missing} not configured."
                logger.warning(f"[BONUS] Tournament {tournament.id}: {message}")
                report.warnings.append(message)

    participant_count = len(results)
    for result in results:
        entries = evaluate_rule_bonuses(rules_by_type, result, participant_count, references)
        detail = merge_rule_bonuses(result.bonus_detail, entries)

        def apply(result: models.TournamentResult = result, detail: dict[str, int] = detail) -> None:
            result.bonus_detail = detail
            result.bonus_points = total_bonus(detail)

        if _save_row(db, report, result.licence, apply):
            report.updated += 1
    db.commit()

    awarded = sum(1 for result in results if result.bonus_points > 0)
    logger.info(f"[BONUS] Applied rule bonuses to {awarded}/{len(results)} results for tournament {tournament.id}")
    return report


def apply_average_bonuses(
    db: Session,
    tournament: models.Tournament,
    settings: schemas.OrganizationSettings,
    thresholds: schemas.CategoryThresholds,
) -> schemas.RecomputeReport:
    report = schemas.RecomputeReport()
    results = list_tournament_results(db, tournament.id)
    if not results:
        return report

    enabled = settings.bonus_moyenne_enabled
    if enabled and not thresholds.is_configured:
        message = f"Average bonus enabled but category thresholds missing; clearing it for tournament {tournament.id}."
        logger.warning(f"[BONUS-MOY] {message}")
        report.warnings.append(message)
        enabled = False

    for result in results:
        bonus = None
        if enabled:
            bonus = compute_average_bonus(
                player_average(result.points, result.innings),
                thresholds,
                settings.bonus_moyenne_type,
                settings.average_tiers,
            )
        detail = apply_average_bonus(result.bonus_detail, bonus)

        def apply(result: models.TournamentResult = result, detail: dict[str, int] = detail) -> None:
            result.bonus_detail = detail
            result.bonus_points = total_bonus(detail)

        if _save_row(db, report, result.licence, apply):
            report.updated += 1
    db.commit()

    logger.info(
        f"[BONUS-MOY] Tournament {tournament.id}: scheme={settings.bonus_moyenne_type if enabled else 'off'}, "
        f"{report.updated}/{len(results)} results updated"
    )
    return report


def compute_tournament_bonuses(
    db: Session,
    tournament: models.Tournament,
    settings: schemas.OrganizationSettings,
    thresholds: schemas.CategoryThresholds,
) -> schemas.RecomputeReport:
    report = apply_rule_bonuses(db, tournament, load_scoring_rules(db, tournament.organization_id), thresholds)
    report.merge(apply_average_bonuses(db, tournament, settings, thresholds))
    return report


def refresh_tournament(db: Session, category: models.Category, tournament: models.Tournament) -> schemas.RecomputeReport:
    settings = load_organization_settings(db, category.organization_id)
    if tournament.tournament_number in season_tournament_numbers(settings):
        return recompute_category_season(db, category.id, tournament.season)

    # Outside the season set: the tournament is scored but feeds no ranking.
    thresholds = load_category_thresholds(db, category)
    report = assign_position_points(db, tournament, settings)
    report.merge(compute_tournament_bonuses(db, tournament, settings, thresholds))
    return report


def recompute_tournament(db: Session, tournament_id: int) -> schemas.RecomputeReport:
    tournament = get_tournament_or_raise(db, tournament_id)
    category = get_category_or_raise(db, tournament.category_id)

    report = rebuild_positions(db, tournament)
    report.merge(refresh_tournament(db, category, tournament))
    return report


def set_category_bonuses(
    db: Session, tournament_id: int, payload: schemas.CategoryBonusUpdate
) -> schemas.RecomputeReport:
    tournament = get_tournament_or_raise(db, tournament_id)
    category = get_category_or_raise(db, tournament.category_id)
    report = schemas.RecomputeReport()

    results = {row.licence: row for row in list_tournament_results(db, tournament.id)}
    for item in payload.bonuses:
        licence = normalize_licence(item.licence)
        result = results.get(licence)
        if result is None:
            report.skipped += 1
            report.warnings.append(f"No result for licence {licence} in tournament {tournament.id}.")
            continue

        detail = apply_category_bonus(result.bonus_detail, item.bonus_points)

        def apply(result: models.TournamentResult = result, detail: dict[str, int] = detail) -> None:
            result.bonus_detail = detail
            result.bonus_points = total_bonus(detail)

        if _save_row(db, report, licence, apply):
            report.updated += 1
    db.commit()

    logger.info(f"[BONUS] Tournament {tournament.id}: {report.updated} mixed-category bonuses saved")
    report.merge(refresh_tournament(db, category, tournament))
    return report


# ---------------------------------------------------------------------------
# Season rankings
# ---------------------------------------------------------------------------


def season_tournament_numbers(settings: schemas.OrganizationSettings) -> list[int]:
    if settings.qualification_mode == "journees":
        return list(range(1, settings.journees_count + 1))
    return list(settings.ranking_tournament_numbers)


def list_season_tournaments(
    db: Session,
    category_id: int,
    season: str,
    numbers: Sequence[int],
) -> list[models.Tournament]:
    return (
        db.query(models.Tournament)
        .filter(
            models.Tournament.category_id == category_id,
            models.Tournament.season == season,
            models.Tournament.tournament_number.in_(list(numbers)),
        )
        .order_by(models.Tournament.tournament_number.asc())
        .all()
    )


def _season_entries(db: Session, tournaments: Sequence[models.Tournament]) -> list[SeasonEntry]:
    numbers = {tournament.id: tournament.tournament_number for tournament in tournaments}
    if not numbers:
        return []

    results = (
        db.query(models.TournamentResult)
        .filter(models.TournamentResult.tournament_id.in_(list(numbers)))
        .order_by(models.TournamentResult.tournament_id.asc(), models.TournamentResult.licence.asc())
        .all()
    )
    return [
        SeasonEntry(
            licence=normalize_licence(result.licence),
            player_name=result.player_name or "",
            tournament_number=numbers[result.tournament_id],
            match_points=result.match_points or 0,
            bonus_points=result.bonus_points or 0,
            points=result.points or 0,
            innings=result.innings or 0,
            max_series=result.max_series or 0,
            position_points=result.position_points or 0,
            bonus_detail={key: int(value) for key, value in (result.bonus_detail or {}).items()},
        )
        for result in results
    ]


def build_season_rows(
    entries: Sequence[SeasonEntry],
    settings: schemas.OrganizationSettings,
    thresholds: schemas.CategoryThresholds,
    warnings: list[str],
) -> list[SeasonRow]:
    if settings.qualification_mode != "journees":
        return build_standard_rankings(entries, settings.ranking_tournament_numbers)

    # A per-day average bonus already rewards the same signal.
    apply_season_bonus = settings.average_bonus_tiers and not settings.bonus_moyenne_enabled
    if apply_season_bonus and not thresholds.is_configured:
        message = "Season average bonus enabled but category thresholds missing; no season bonus applied."
        logger.warning(f"[RANKING-J] {message}")
        warnings.append(message)
        apply_season_bonus = False

    return build_journees_rankings(
        entries,
        season_tournament_numbers(settings),
        settings.best_of_count,
        SeasonBonusPolicy(
            enabled=apply_season_bonus,
            thresholds=thresholds,
            scheme=settings.bonus_moyenne_type,
            tiers=settings.average_tiers,
        ),
    )


def replace_season_rankings(
    db: Session,
    category: models.Category,
    season: str,
    rows: Sequence[SeasonRow],
) -> schemas.RecomputeReport:
    report = schemas.RecomputeReport()

    # One transaction per (category, season): lock, delete, insert, commit.
    db.query(models.Category).filter(models.Category.id == category.id).with_for_update().one()
    deleted = (
        db.query(models.SeasonRanking)
        .filter(models.SeasonRanking.category_id == category.id, models.SeasonRanking.season == season)
        .delete(synchronize_session="fetch")
    )

    for row in rows:
        ranking = models.SeasonRanking(
            category_id=category.id,
            season=season,
            licence=row.licence,
            player_name=row.player_name,
            organization_id=category.organization_id,
            rank_position=row.rank_position,
            total_score=row.total_score,
            total_bonus_points=row.total_bonus_points,
            average_bonus=row.average_bonus,
            average=row.average,
            best_series=row.best_series,
            tournament_scores=row.tournament_scores,
            bonus_detail=row.bonus_detail,
            detail=row.detail,
        )
        if _save_row(db, report, row.licence, lambda ranking=ranking: db.add(ranking)):
            report.created += 1
    db.commit()

    logger.info(
        f"[RANKING] Category {category.id}, season {season}: replaced {deleted} rows with "
        f"{report.created}/{len(rows)}"
    )
    return report


def recompute_category_season(db: Session, category_id: int, season: str) -> schemas.RecomputeReport:
    category = get_category_or_raise(db, category_id)
    settings = load_organization_settings(db, category.organization_id)
    thresholds = load_category_thresholds(db, category)
    report = schemas.RecomputeReport()

    tournaments = list_season_tournaments(db, category.id, season, season_tournament_numbers(settings))
    if not tournaments:
        logger.info(f"[RANKING] No tournaments for category {category.id}, season {season}; nothing to do")
        return report

    logger.info(
        f"[RANKING] Recomputing category {category.id}, season {season}, mode={settings.qualification_mode}, "
        f"tournaments={[tournament.tournament_number for tournament in tournaments]}"
    )

    for tournament in tournaments:
        report.merge(assign_position_points(db, tournament, settings))
    for tournament in tournaments:
        report.merge(compute_tournament_bonuses(db, tournament, settings, thresholds))

    entries = _season_entries(db, tournaments)
    if not entries:
        logger.info(f"[RANKING] No players for category {category.id}, season {season}; nothing to do")
        return report

    rows = build_season_rows(entries, settings, thresholds, report.warnings)
    report.merge(replace_season_rankings(db, category, season, rows))
    return report


def recompute_season(db: Session, season: str) -> schemas.RecomputeReport:
    category_ids = [
        category_id
        for (category_id,) in db.query(models.Tournament.category_id)
        .filter(models.Tournament.season == season)
        .distinct()
        .order_by(models.Tournament.category_id.asc())
        .all()
    ]

    report = schemas.RecomputeReport()
    for category_id in category_ids:
        report.merge(recompute_category_season(db, category_id, season))
    logger.info(f"[RANKING] Season {season}: {len(category_ids)} categories recomputed")
    return report


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------


def build_tournament_results(db: Session, tournament_id: int) -> schemas.TournamentResultsView:
    tournament = get_tournament_or_raise(db, tournament_id)
    results = list_tournament_results(db, tournament.id)
    return schemas.TournamentResultsView(
        tournament_id=tournament.id,
        category_id=tournament.category_id,
        tournament_number=tournament.tournament_number,
        season=tournament.season,
        participant_count=len(results),
        results=[serializers.result_to_read(result) for result in results],
    )


def build_season_ranking_view(db: Session, category_id: int, season: str) -> schemas.SeasonRankingView:
    category = get_category_or_raise(db, category_id)
    settings = load_organization_settings(db, category.organization_id)
    numbers = season_tournament_numbers(settings)

    played = {tournament.tournament_number for tournament in list_season_tournaments(db, category.id, season, numbers)}
    rows = (
        db.query(models.SeasonRanking)
        .filter(models.SeasonRanking.category_id == category.id, models.SeasonRanking.season == season)
        .order_by(models.SeasonRanking.rank_position.asc())
        .all()
    )

    seen_types = sorted({rule_type for row in rows for rule_type, points in (row.bonus_detail or {}).items() if points > 0})
    labels: dict[str, str] = {}
    if seen_types:
        query = db.query(models.ScoringRule).filter(
            models.ScoringRule.rule_type.in_(seen_types),
            models.ScoringRule.column_label.isnot(None),
        )
        if category.organization_id is not None:
            query = query.filter(models.ScoringRule.organization_id == category.organization_id)
        for rule in query.order_by(models.ScoringRule.display_order.asc()).all():
            labels.setdefault(rule.rule_type, rule.column_label)

    return schemas.SeasonRankingView(
        category_id=category.id,
        season=season,
        qualification_mode=settings.qualification_mode,
        average_bonus_tiers=settings.qualification_mode == "journees" and settings.average_bonus_tiers,
        tournaments_played={f"t{number}": number in played for number in numbers},
        bonus_columns=[
            schemas.BonusColumn(rule_type=rule_type, label=labels.get(rule_type, rule_type))
            for rule_type in seen_types
        ],
        rankings=[serializers.ranking_to_read(row) for row in rows],
    )
