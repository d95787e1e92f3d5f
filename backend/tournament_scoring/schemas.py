from datetime import date
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ORMBaseModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


RuleField = Literal["MOYENNE", "NB_JOUEURS", "MATCH_POINTS", "SERIE", "POSITION", "PARTIES_MENEES", "MPART"]
RuleOperator = Literal[">", ">=", "<", "<=", "="]
LogicalOp = Literal["AND", "OR"]
BonusCategory = Literal[
    "MOYENNE_BONUS",
    "AVERAGE",
    "PARTICIPATION",
    "SERIES",
    "PLACEMENT",
    "ATTENDANCE",
    "BEST_GAME",
    "MIXED_CATEGORY",
]
QualificationMode = Literal["standard", "journees"]
AverageBonusScheme = Literal["normal", "tiered"]
Degradation = Literal["none", "last_player"]

THRESHOLD_REFS: tuple[str, ...] = ("MOYENNE_MINI", "MOYENNE_MAXI")


def _compact_licence(value: str) -> str:
    licence = "".join(value.split())
    if not licence:
        raise ValueError("Licence cannot be blank.")
    return licence


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class OrganizationSettings(BaseModel):
    qualification_mode: QualificationMode = "standard"
    bonus_moyenne_enabled: bool = False
    bonus_moyenne_type: AverageBonusScheme = "normal"
    scoring_avg_tier_1: int = Field(default=1, ge=0)
    scoring_avg_tier_2: int = Field(default=2, ge=0)
    scoring_avg_tier_3: int = Field(default=3, ge=0)
    average_bonus_tiers: bool = False
    position_points_degradation: Degradation = "none"
    best_of_count: int = Field(default=2, ge=1)
    journees_count: int = Field(default=3, ge=1)
    ranking_tournament_numbers: list[int] = Field(default_factory=lambda: [1, 2, 3])

    @field_validator("ranking_tournament_numbers", mode="before")
    @classmethod
    def _split_numbers(cls, value: object) -> object:
        if isinstance(value, str):
            return sorted({int(part) for part in value.split(",") if part.strip()})
        return value

    @field_validator("position_points_degradation", mode="before")
    @classmethod
    def _empty_degradation(cls, value: object) -> object:
        if value in (None, "", "false"):
            return "none"
        return value

    @property
    def average_tiers(self) -> tuple[int, int, int]:
        return (self.scoring_avg_tier_1, self.scoring_avg_tier_2, self.scoring_avg_tier_3)


class CategoryThresholds(BaseModel):
    min_average: float | None = None
    max_average: float | None = None

    @property
    def is_configured(self) -> bool:
        return self.min_average is not None and self.max_average is not None

    def references(self) -> dict[str, float]:
        refs: dict[str, float] = {}
        if self.min_average is not None:
            refs["MOYENNE_MINI"] = self.min_average
        if self.max_average is not None:
            refs["MOYENNE_MAXI"] = self.max_average
        return refs


class ScoringRuleConfig(ORMBaseModel):
    id: int | None = None
    rule_type: BonusCategory
    column_label: str | None = None

    field_1: RuleField
    operator_1: RuleOperator
    value_1: str = Field(min_length=1)
    logical_op: LogicalOp | None = None
    field_2: RuleField | None = None
    operator_2: RuleOperator | None = None
    value_2: str | None = None

    points: int
    is_active: bool = True
    display_order: int = Field(ge=0)

    @field_validator("value_1", "value_2")
    @classmethod
    def _literal_or_reference(cls, value: str | None) -> str | None:
        if value is None:
            return value
        value = value.strip()
        if value in THRESHOLD_REFS:
            return value
        try:
            float(value)
        except ValueError as exc:
            raise ValueError(f"'{value}' is neither a number nor a threshold reference.") from exc
        return value

    @model_validator(mode="after")
    def _second_condition_complete(self) -> "ScoringRuleConfig":
        if self.field_2 is None:
            return self
        if self.logical_op is None or self.operator_2 is None or self.value_2 is None:
            raise ValueError("A second condition needs a combinator, an operator and a value.")
        return self

    @property
    def has_second_condition(self) -> bool:
        return self.field_2 is not None and self.logical_op is not None

    def referenced_thresholds(self) -> set[str]:
        values = [self.value_1]
        if self.has_second_condition:
            values.append(self.value_2 or "")
        return {value for value in values if value in THRESHOLD_REFS}


# ---------------------------------------------------------------------------
# Import payloads
# ---------------------------------------------------------------------------


class MatchInput(BaseModel):
    phase_number: int = Field(default=1, ge=0)
    poule_name: str = Field(default="", max_length=100)
    table_name: str = Field(default="", max_length=64)

    player1_licence: str = Field(min_length=1, max_length=32)
    player1_name: str = Field(default="", max_length=100)
    player1_points: int = Field(default=0, ge=0)
    player1_innings: int = Field(default=0, ge=0)
    player1_series: int = Field(default=0, ge=0)
    player1_match_points: int = Field(default=0, ge=0)
    player1_average: float = Field(default=0.0, ge=0)

    player2_licence: str = Field(min_length=1, max_length=32)
    player2_name: str = Field(default="", max_length=100)
    player2_points: int = Field(default=0, ge=0)
    player2_innings: int = Field(default=0, ge=0)
    player2_series: int = Field(default=0, ge=0)
    player2_match_points: int = Field(default=0, ge=0)
    player2_average: float = Field(default=0.0, ge=0)

    @field_validator("player1_licence", "player2_licence")
    @classmethod
    def _licence_not_blank(cls, value: str) -> str:
        return _compact_licence(value)


class TournamentKey(BaseModel):
    category_id: int = Field(gt=0)
    tournament_number: int = Field(ge=1)
    season: str = Field(min_length=4, max_length=16)
    tournament_date: date | None = None


class MatchImport(TournamentKey):
    matches: list[MatchInput] = Field(default_factory=list)


class ResultInput(BaseModel):
    licence: str = Field(min_length=1, max_length=32)
    player_name: str = Field(default="", max_length=100)
    match_points: int = Field(default=0, ge=0)
    points: int = Field(default=0, ge=0)
    innings: int = Field(default=0, ge=0)
    max_series: int = Field(default=0, ge=0)
    matches_played: int = Field(default=0, ge=0)
    best_match_average: float = Field(default=0.0, ge=0)

    @field_validator("licence")
    @classmethod
    def _licence_not_blank(cls, value: str) -> str:
        return _compact_licence(value)


class ResultImport(TournamentKey):
    results: list[ResultInput] = Field(default_factory=list)


class CategoryBonusInput(BaseModel):
    licence: str = Field(min_length=1, max_length=32)
    bonus_points: int = Field(ge=0)

    @field_validator("licence")
    @classmethod
    def _licence_not_blank(cls, value: str) -> str:
        return _compact_licence(value)


class CategoryBonusUpdate(BaseModel):
    """Manual bonus for players who played outside their usual category."""

    bonuses: list[CategoryBonusInput] = Field(default_factory=list)


class SeasonRecalculation(BaseModel):
    category_id: int = Field(gt=0)
    season: str = Field(min_length=4, max_length=16)


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


class RowError(BaseModel):
    licence: str
    error: str


class RecomputeReport(BaseModel):
    success: bool = True
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[RowError] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    def merge(self, other: "RecomputeReport") -> None:
        self.success = self.success and other.success
        self.created += other.created
        self.updated += other.updated
        self.skipped += other.skipped
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)


class ImportReport(RecomputeReport):
    tournament_id: int | None = None
    match_count: int = 0
    poules: list[str] = Field(default_factory=list)
    classifier_version: str | None = None


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------


class MatchRead(ORMBaseModel):
    id: int
    phase_number: int
    poule_name: str
    table_name: str

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


class TournamentResultRead(BaseModel):
    id: int
    licence: str
    player_name: str
    position: int
    poule_name: str | None = None
    poule_rank: int

    match_points: int
    points: int
    innings: int
    average: float
    max_series: int
    matches_played: int
    best_match_average: float

    position_points: int
    bonus_points: int
    bonus_detail: dict[str, int] = Field(default_factory=dict)


class TournamentResultsView(BaseModel):
    tournament_id: int
    category_id: int
    tournament_number: int
    season: str
    participant_count: int
    results: list[TournamentResultRead] = Field(default_factory=list)


class SeasonRankingRead(BaseModel):
    rank_position: int
    licence: str
    player_name: str
    total_score: int
    total_bonus_points: int
    average_bonus: int
    average: float
    best_series: int
    tournament_scores: dict[str, int | None] = Field(default_factory=dict)
    bonus_detail: dict[str, int] = Field(default_factory=dict)
    detail: dict[str, object] = Field(default_factory=dict)


class BonusColumn(BaseModel):
    rule_type: str
    label: str


class SeasonRankingView(BaseModel):
    category_id: int
    season: str
    qualification_mode: QualificationMode
    average_bonus_tiers: bool = False
    tournaments_played: dict[str, bool] = Field(default_factory=dict)
    bonus_columns: list[BonusColumn] = Field(default_factory=list)
    rankings: list[SeasonRankingRead] = Field(default_factory=list)
