import logging

from pydantic import ValidationError
from sqlalchemy import func
from sqlalchemy.orm import Session

from . import models, schemas

logger = logging.getLogger(__name__)


def _compact(value: str | None) -> str:
    return "".join((value or "").split()).upper()


def load_organization_settings(db: Session, organization_id: int | None) -> schemas.OrganizationSettings:
    if organization_id is None:
        return schemas.OrganizationSettings()

    rows = (
        db.query(models.OrganizationSetting)
        .filter(models.OrganizationSetting.organization_id == organization_id)
        .all()
    )
    known = schemas.OrganizationSettings.model_fields
    raw = {row.key: row.value for row in rows if row.key in known and row.value not in (None, "")}

    try:
        return schemas.OrganizationSettings.model_validate(raw)
    except ValidationError as exc:
        invalid = {str(error["loc"][0]) for error in exc.errors() if error["loc"]}
        logger.warning(f"[SETTINGS] Organization {organization_id}: ignoring invalid settings {sorted(invalid)}")
        return schemas.OrganizationSettings.model_validate(
            {key: value for key, value in raw.items() if key not in invalid}
        )


def save_organization_setting(db: Session, organization_id: int, key: str, value: str) -> models.OrganizationSetting:
    if key not in schemas.OrganizationSettings.model_fields:
        raise ValueError(f"Unknown organization setting '{key}'.")

    row = (
        db.query(models.OrganizationSetting)
        .filter(
            models.OrganizationSetting.organization_id == organization_id,
            models.OrganizationSetting.key == key,
        )
        .first()
    )
    if row is None:
        row = models.OrganizationSetting(organization_id=organization_id, key=key, value=value)
        db.add(row)
    else:
        row.value = value
    db.commit()
    return row


def load_category_thresholds(db: Session, category: models.Category) -> schemas.CategoryThresholds:
    query = db.query(models.GameParameter).filter(
        func.upper(models.GameParameter.level) == category.level.strip().upper(),
    )
    if category.organization_id is not None:
        query = query.filter(models.GameParameter.organization_id == category.organization_id)

    wanted_mode = _compact(category.game_type)
    for parameter in query.order_by(models.GameParameter.id.asc()).all():
        if _compact(parameter.mode) == wanted_mode:
            return schemas.CategoryThresholds(
                min_average=parameter.min_average,
                max_average=parameter.max_average,
            )

    logger.warning(
        f"[SETTINGS] No average thresholds configured for category {category.display_name} "
        f"({category.game_type} / {category.level})"
    )
    return schemas.CategoryThresholds()
