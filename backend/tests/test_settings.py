import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tournament_scoring import models
from tournament_scoring.database import Base
from tournament_scoring.settings import (
    load_category_thresholds,
    load_organization_settings,
    save_organization_setting,
)


@pytest.fixture()
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.close()


def test_defaults_without_organization(db):
    settings = load_organization_settings(db, None)

    assert settings.qualification_mode == "standard"
    assert settings.bonus_moyenne_enabled is False
    assert settings.ranking_tournament_numbers == [1, 2, 3]
    assert settings.average_tiers == (1, 2, 3)
    assert settings.position_points_degradation == "none"


def test_saved_settings_are_parsed(db):
    save_organization_setting(db, 7, "qualification_mode", "journees")
    save_organization_setting(db, 7, "ranking_tournament_numbers", "3, 1,2,2")
    save_organization_setting(db, 7, "scoring_avg_tier_3", "5")
    save_organization_setting(db, 7, "scoring_avg_tier_3", "4")

    settings = load_organization_settings(db, 7)

    assert settings.qualification_mode == "journees"
    assert settings.ranking_tournament_numbers == [1, 2, 3]
    assert settings.average_tiers == (1, 2, 4)
    assert db.query(models.OrganizationSetting).filter_by(organization_id=7).count() == 3


def test_invalid_values_fall_back_to_defaults(db):
    save_organization_setting(db, 7, "best_of_count", "zero")
    save_organization_setting(db, 7, "journees_count", "4")

    settings = load_organization_settings(db, 7)

    assert settings.best_of_count == 2
    assert settings.journees_count == 4


def test_unknown_setting_is_rejected(db):
    with pytest.raises(ValueError):
        save_organization_setting(db, 7, "colour", "blue")


def test_thresholds_match_mode_ignoring_spaces_and_case(db):
    category = models.Category(game_type="3 Bandes", level="r1", display_name="3 Bandes R1", organization_id=7)
    db.add_all(
        [
            category,
            models.GameParameter(mode="3BANDES", level="R1", min_average=0.45, max_average=0.6, organization_id=7),
            models.GameParameter(mode="LIBRE", level="R1", min_average=5.0, max_average=8.0, organization_id=7),
        ]
    )
    db.commit()

    thresholds = load_category_thresholds(db, category)

    assert thresholds.is_configured
    assert thresholds.references() == {"MOYENNE_MINI": 0.45, "MOYENNE_MAXI": 0.6}


def test_missing_thresholds_are_empty(db):
    category = models.Category(game_type="CADRE", level="N1", display_name="Cadre N1", organization_id=7)
    db.add(category)
    db.commit()

    thresholds = load_category_thresholds(db, category)

    assert not thresholds.is_configured
    assert thresholds.references() == {}
