# Internal
import typing as T
from datetime import date, datetime
from enum import Enum

# External
from pydantic import Field, field_validator, model_validator
from pydantic.dataclasses import dataclass

# Project
from welfare.engine.constants.constants import (
    DEFAULT_REMINDER_HOURS,
    MAX_LABEL_LENGTH,
    MAX_NOTES_LENGTH,
    MAX_REMINDER_HOURS,
    MIN_REMINDER_HOURS,
)


class EventLabel(str, Enum):
    BIRTHDAY = "Birthday"
    WEDDING_ANNIVERSARY = "Wedding Anniversary"
    WORK_ANNIVERSARY = "Work Anniversary"
    INDUCTION_ANNIVERSARY = "Induction Anniversary"
    OTHER = "Other Celebration"


class RecipientClass(str, Enum):
    MEMBER = "Member"
    WELFARE_OFFICERS = "Welfare Officers"
    ALL_MEMBERS = "All Members"


def default_recipients() -> T.List[RecipientClass]:
    return [RecipientClass.MEMBER, RecipientClass.WELFARE_OFFICERS]


@dataclass
class SpecialDate:
    """
    A birthday, anniversary or other celebration owned by a single member.

    When is_recurring is set only the month and day of event_date matter, the
    occurrence is recomputed every year. Records are never hard-deleted, the
    is_active flag is cleared instead.
    """
    id: str
    member_id: str
    event_label: EventLabel
    event_date: date
    custom_label: T.Optional[str] = None
    is_recurring: bool = True
    send_reminder: bool = True
    reminder_recipients: T.List[RecipientClass] = Field(default_factory=default_recipients)
    reminder_hours_before: int = DEFAULT_REMINDER_HOURS
    notes: T.Optional[str] = None
    is_active: bool = True
    created_by: T.Optional[str] = None
    created_at: T.Optional[datetime] = None
    updated_at: T.Optional[datetime] = None

    @field_validator("reminder_hours_before")
    @classmethod
    def check_reminder_hours(cls, value: int) -> int:
        if not MIN_REMINDER_HOURS <= value <= MAX_REMINDER_HOURS:
            raise ValueError(
                f"reminder_hours_before must be between {MIN_REMINDER_HOURS} and {MAX_REMINDER_HOURS}"
            )
        return value

    @field_validator("custom_label", "notes")
    @classmethod
    def strip_text(cls, value: T.Optional[str]) -> T.Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @model_validator(mode="after")
    def check_consistency(self) -> "SpecialDate":
        if self.event_label == EventLabel.OTHER and not self.custom_label:
            raise ValueError("custom_label is required for 'Other Celebration'")
        if self.event_label != EventLabel.OTHER and self.custom_label:
            raise ValueError("custom_label is only allowed for 'Other Celebration'")
        if self.custom_label and len(self.custom_label) > MAX_LABEL_LENGTH:
            raise ValueError(f"custom_label cannot exceed {MAX_LABEL_LENGTH} characters")
        if self.notes and len(self.notes) > MAX_NOTES_LENGTH:
            raise ValueError(f"notes cannot exceed {MAX_NOTES_LENGTH} characters")
        if self.send_reminder and not self.reminder_recipients:
            raise ValueError("reminder_recipients cannot be empty when send_reminder is enabled")
        return self

    @property
    def display_label(self) -> str:
        if self.event_label == EventLabel.OTHER and self.custom_label:
            return self.custom_label
        return self.event_label.value
