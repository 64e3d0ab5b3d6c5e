# Internal
import typing as T
from datetime import date

# External
from pydantic import Field
from pydantic.dataclasses import dataclass

# Project
from welfare.data_structures.member import Member
from welfare.data_structures.special_date import SpecialDate


@dataclass
class UpcomingCelebration:
    special_date: SpecialDate
    days_until: int
    occurrence: date


@dataclass
class DueCelebration:
    """A special date whose reminder window is open today, with its resolved member."""
    special_date: SpecialDate
    member: Member
    days_until: int
    occurrence: date


@dataclass
class SkippedRecord:
    special_date_id: str
    reason: str


@dataclass
class SelectionResult:
    due: T.List[DueCelebration] = Field(default_factory=list)
    skipped: T.List[SkippedRecord] = Field(default_factory=list)
