from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    game_type = Column(String(64), nullable=False)
    level = Column(String(32), nullable=False)
    display_name = Column(String(128), nullable=False)
    organization_id = Column(Integer, nullable=True, index=True)

    tournaments = relationship("Tournament", back_populates="category", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("organization_id", "game_type", "level", name="uq_category_game_level"),
    )


class GameParameter(Base):
    """Average thresholds of one (game mode, level) pair, shared by every matching category."""

    __tablename__ = "game_parameters"

    id = Column(Integer, primary_key=True, index=True)
    mode = Column(String(64), nullable=False)
    level = Column(String(32), nullable=False)
    min_average = Column(Float, nullable=True)
    max_average = Column(Float, nullable=True)
    organization_id = Column(Integer, nullable=True, index=True)

    __table_args__ = (
        UniqueConstraint("organization_id", "mode", "level", name="uq_game_parameter_mode_level"),
        CheckConstraint("min_average is null or min_average >= 0", name="ck_game_parameter_min_nonnegative"),
        CheckConstraint("max_average is null or max_average >= 0", name="ck_game_parameter_max_nonnegative"),
    )


class Tournament(Base):
    __tablename__ = "tournaments"

    id = Column(Integer, primary_key=True, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)
    tournament_number = Column(Integer, nullable=False)
    season = Column(String(16), nullable=False, index=True)
    tournament_date = Column(Date, nullable=True)
    organization_id = Column(Integer, nullable=True, index=True)

    category = relationship("Category", back_populates="tournaments")
    matches = relationship("TournamentMatch", back_populates="tournament", cascade="all, delete-orphan")
    results = relationship("TournamentResult", back_populates="tournament", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("category_id", "tournament_number", "season", name="uq_tournament_number_season"),
        CheckConstraint("tournament_number >= 1", name="ck_tournament_number_positive"),
    )


class TournamentMatch(Base):
    __tablename__ = "tournament_matches"

    id = Column(Integer, primary_key=True, index=True)
    tournament_id = Column(Integer, ForeignKey("tournaments.id"), nullable=False, index=True)

    phase_number = Column(Integer, default=1, nullable=False)
    poule_name = Column(String(100), default="", nullable=False)
    table_name = Column(String(64), default="", nullable=False)

    player1_licence = Column(String(32), nullable=False, index=True)
    player1_name = Column(String(100), default="", nullable=False)
    player1_points = Column(Integer, default=0, nullable=False)
    player1_innings = Column(Integer, default=0, nullable=False)
    player1_series = Column(Integer, default=0, nullable=False)
    player1_match_points = Column(Integer, default=0, nullable=False)
    player1_average = Column(Float, default=0.0, nullable=False)

    player2_licence = Column(String(32), nullable=False, index=True)
    player2_name = Column(String(100), default="", nullable=False)
    player2_points = Column(Integer, default=0, nullable=False)
    player2_innings = Column(Integer, default=0, nullable=False)
    player2_series = Column(Integer, default=0, nullable=False)
    player2_match_points = Column(Integer, default=0, nullable=False)
    player2_average = Column(Float, default=0.0, nullable=False)

    tournament = relationship("Tournament", back_populates="matches")

    __table_args__ = (
        CheckConstraint("player1_licence <> player2_licence", name="ck_match_distinct_players"),
        CheckConstraint("player1_points >= 0 and player2_points >= 0", name="ck_match_points_nonnegative"),
        CheckConstraint("player1_innings >= 0 and player2_innings >= 0", name="ck_match_innings_nonnegative"),
    )


class TournamentResult(Base):
    __tablename__ = "tournament_results"

    id = Column(Integer, primary_key=True, index=True)
    tournament_id = Column(Integer, ForeignKey("tournaments.id"), nullable=False, index=True)
    licence = Column(String(32), nullable=False, index=True)
    player_name = Column(String(100), default="", nullable=False)

    position = Column(Integer, default=0, nullable=False)
    poule_name = Column(String(100), nullable=True)
    poule_rank = Column(Integer, default=0, nullable=False)

    match_points = Column(Integer, default=0, nullable=False)
    points = Column(Integer, default=0, nullable=False)
    innings = Column(Integer, default=0, nullable=False)
    average = Column(Float, default=0.0, nullable=False)
    max_series = Column(Integer, default=0, nullable=False)
    matches_played = Column(Integer, default=0, nullable=False)
    best_match_average = Column(Float, default=0.0, nullable=False)

    position_points = Column(Integer, default=0, nullable=False)
    bonus_points = Column(Integer, default=0, nullable=False)
    bonus_detail = Column(JSON, default=dict, nullable=False)

    tournament = relationship("Tournament", back_populates="results")

    __table_args__ = (
        UniqueConstraint("tournament_id", "licence", name="uq_result_tournament_licence"),
        CheckConstraint("position >= 0", name="ck_result_position_nonnegative"),
        CheckConstraint("innings >= 0", name="ck_result_innings_nonnegative"),
    )


class ScoringRule(Base):
    __tablename__ = "scoring_rules"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, nullable=True, index=True)
    rule_type = Column(String(32), nullable=False, index=True)
    column_label = Column(String(64), nullable=True)

    field_1 = Column(String(32), nullable=True)
    operator_1 = Column(String(2), nullable=True)
    value_1 = Column(String(32), nullable=True)
    logical_op = Column(String(3), nullable=True)
    field_2 = Column(String(32), nullable=True)
    operator_2 = Column(String(2), nullable=True)
    value_2 = Column(String(32), nullable=True)

    points = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    display_order = Column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("organization_id", "rule_type", "display_order", name="uq_rule_type_order"),
        CheckConstraint("display_order >= 0", name="ck_rule_display_order_nonnegative"),
        CheckConstraint(
            "rule_type in ('MOYENNE_BONUS', 'AVERAGE', 'PARTICIPATION', 'SERIES', "
            "'PLACEMENT', 'ATTENDANCE', 'BEST_GAME', 'MIXED_CATEGORY')",
            name="ck_rule_type_valid",
        ),
        CheckConstraint(
            "operator_1 in ('>', '>=', '<', '<=', '=') or operator_1 is null",
            name="ck_rule_operator_1_valid",
        ),
        CheckConstraint(
            "operator_2 in ('>', '>=', '<', '<=', '=') or operator_2 is null",
            name="ck_rule_operator_2_valid",
        ),
        CheckConstraint("logical_op in ('AND', 'OR') or logical_op is null", name="ck_rule_logical_op_valid"),
    )


class PositionPoints(Base):
    __tablename__ = "position_points"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, nullable=True, index=True)
    # 0 or NULL marks the generic table used when no count-specific rows match.
    participant_count = Column(Integer, nullable=True, index=True)
    position = Column(Integer, nullable=False)
    points = Column(Integer, default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint("organization_id", "participant_count", "position", name="uq_position_points_entry"),
        CheckConstraint("position >= 1", name="ck_position_points_position_positive"),
    )


class OrganizationSetting(Base):
    __tablename__ = "organization_settings"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, nullable=False, index=True)
    key = Column(String(64), nullable=False)
    value = Column(String(255), default="", nullable=False)

    __table_args__ = (
        UniqueConstraint("organization_id", "key", name="uq_organization_setting_key"),
    )


class SeasonRanking(Base):
    __tablename__ = "season_rankings"

    id = Column(Integer, primary_key=True, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)
    season = Column(String(16), nullable=False, index=True)
    licence = Column(String(32), nullable=False)
    player_name = Column(String(100), default="", nullable=False)
    organization_id = Column(Integer, nullable=True, index=True)

    rank_position = Column(Integer, nullable=False)
    total_score = Column(Integer, default=0, nullable=False)
    total_bonus_points = Column(Integer, default=0, nullable=False)
    average_bonus = Column(Integer, default=0, nullable=False)
    average = Column(Float, default=0.0, nullable=False)
    best_series = Column(Integer, default=0, nullable=False)

    tournament_scores = Column(JSON, default=dict, nullable=False)
    bonus_detail = Column(JSON, default=dict, nullable=False)
    detail = Column(JSON, default=dict, nullable=False)

    category = relationship("Category")

    __table_args__ = (
        UniqueConstraint("category_id", "season", "licence", name="uq_season_ranking_player"),
        CheckConstraint("rank_position >= 1", name="ck_season_ranking_rank_positive"),
    )
