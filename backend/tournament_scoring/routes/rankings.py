from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from .. import crud, schemas
from ..database import get_db

router = APIRouter(tags=["rankings"])


@router.get("/", response_model=schemas.SeasonRankingView)
def get_season_ranking(
    category_id: int = Query(gt=0),
    season: str = Query(min_length=4, max_length=16),
    db: Session = Depends(get_db),
) -> schemas.SeasonRankingView:
    try:
        return crud.build_season_ranking_view(db, category_id, season)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.post("/recalculate", response_model=schemas.RecomputeReport)
def recalculate(payload: schemas.SeasonRecalculation, db: Session = Depends(get_db)) -> schemas.RecomputeReport:
    try:
        return crud.recompute_category_season(db, payload.category_id, payload.season)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.post("/recalculate-all", response_model=schemas.RecomputeReport)
def recalculate_all(
    season: str = Query(min_length=4, max_length=16),
    db: Session = Depends(get_db),
) -> schemas.RecomputeReport:
    return crud.recompute_season(db, season)
