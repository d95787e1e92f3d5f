from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import crud, schemas
from ..database import get_db

router = APIRouter(tags=["tournaments"])


@router.post("/import-matches", response_model=schemas.ImportReport, status_code=status.HTTP_201_CREATED)
def import_matches(payload: schemas.MatchImport, db: Session = Depends(get_db)) -> schemas.ImportReport:
    try:
        return crud.import_tournament_matches(db, payload)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.post("/import-results", response_model=schemas.ImportReport, status_code=status.HTTP_201_CREATED)
def import_results(payload: schemas.ResultImport, db: Session = Depends(get_db)) -> schemas.ImportReport:
    try:
        return crud.import_tournament_results(db, payload)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get("/{tournament_id}/results", response_model=schemas.TournamentResultsView)
def get_results(tournament_id: int, db: Session = Depends(get_db)) -> schemas.TournamentResultsView:
    try:
        return crud.build_tournament_results(db, tournament_id)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.get("/{tournament_id}/matches", response_model=list[schemas.MatchRead])
def get_matches(tournament_id: int, db: Session = Depends(get_db)) -> list[schemas.MatchRead]:
    try:
        crud.get_tournament_or_raise(db, tournament_id)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return crud.list_tournament_matches(db, tournament_id)


@router.post("/{tournament_id}/recompute", response_model=schemas.RecomputeReport)
def recompute(tournament_id: int, db: Session = Depends(get_db)) -> schemas.RecomputeReport:
    try:
        return crud.recompute_tournament(db, tournament_id)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.post("/{tournament_id}/category-bonus", response_model=schemas.RecomputeReport)
def save_category_bonus(
    tournament_id: int, payload: schemas.CategoryBonusUpdate, db: Session = Depends(get_db)
) -> schemas.RecomputeReport:
    try:
        return crud.set_category_bonuses(db, tournament_id, payload)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
