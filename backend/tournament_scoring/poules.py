"""Poule name classification.

Poule names are typed by hand at the club table, so everything here is a
best-effort parse of human labels. Bump CLASSIFIER_VERSION whenever a
pattern changes so stored results can be traced back to the parser that
produced them.
"""

import re
from dataclasses import dataclass
from typing import Literal

CLASSIFIER_VERSION = "3"

DEFAULT_POULE_NAME = "POULE A"

PouleKind = Literal["regular", "classification"]

_CLASSIFICATION_TOKENS: tuple[str, ...] = (
    "CLASSEMENT",
    "DEMI-FINALE",
    "DEMI FINALE",
    "SEMI-FINAL",
    "FINALE",
    "PETITE FINALE",
    "BARRAGE",
    "PLACE ",
    "PLACES ",
)
_SEMI_FINAL_TOKENS: tuple[str, ...] = ("DEMI-FINALE", "DEMI FINALE", "SEMI-FINAL")

_BRACKET_GROUP = re.compile(r"^G\s*\d+-\d+", re.IGNORECASE)
_BARE_RANGE = re.compile(r"^(\d{2})-(\d{2})$")

_FINALE = re.compile(r"^FINALE\b")
_GROUP_PLACES = re.compile(r"G\s*\d+-\d+\s*-\s*P\s*(\d+)-(\d+)", re.IGNORECASE)
_CLASSEMENT_RANGE = re.compile(r"classement\s+(\d+)\s*-\s*(\d+)", re.IGNORECASE)
_PLACES_RANGE = re.compile(r"places?\s+(\d+)\s*-\s*(\d+)", re.IGNORECASE)
_SINGLE_PLACE = re.compile(r"place\s+(\d+)", re.IGNORECASE)


@dataclass(frozen=True)
class PouleClassification:
    name: str
    kind: PouleKind
    start_position: int | None = None
    is_semi_final: bool = False

    @property
    def is_classification(self) -> bool:
        return self.kind == "classification"

    @property
    def recognized(self) -> bool:
        # A classification poule we can neither place nor deliberately skip.
        if not self.is_classification:
            return True
        return self.is_semi_final or self.start_position is not None


def normalize_poule_name(name: str | None) -> str:
    clean = " ".join((name or "").split())
    return clean or DEFAULT_POULE_NAME


def is_classification_poule(name: str) -> bool:
    upper = name.upper()
    if any(token in upper for token in _CLASSIFICATION_TOKENS):
        return True
    return bool(_BRACKET_GROUP.match(name) or _BARE_RANGE.match(name))


def _start_position(name: str) -> int | None:
    upper = name.upper()

    if "PETITE FINALE" in upper:
        return 3
    if _FINALE.search(upper):
        return 1

    match = _GROUP_PLACES.search(name)
    if match:
        return int(match.group(1))

    match = _CLASSEMENT_RANGE.search(name)
    if match:
        return int(match.group(1))

    match = _PLACES_RANGE.search(name)
    if match:
        return int(match.group(1))

    # "Place 08" decides place 8: the winner takes 7, the loser 8.
    match = _SINGLE_PLACE.search(name)
    if match:
        return max(1, int(match.group(1)) - 1)

    match = _BARE_RANGE.match(name)
    if match:
        return int(match.group(1))

    return None


def classify_poule(name: str | None) -> PouleClassification:
    clean = normalize_poule_name(name)
    if not is_classification_poule(clean):
        return PouleClassification(name=clean, kind="regular")

    upper = clean.upper()
    if any(token in upper for token in _SEMI_FINAL_TOKENS):
        return PouleClassification(name=clean, kind="classification", is_semi_final=True)

    return PouleClassification(
        name=clean,
        kind="classification",
        start_position=_start_position(clean),
    )
