# Internal
import typing as T
from datetime import date, datetime
from enum import Enum

# External
from pydantic import Field
from pydantic.dataclasses import dataclass

# Project
from welfare.data_structures.special_date import RecipientClass
from welfare.engine.constants.constants import DEFAULT_MAX_RETRIES


class DeliveryStatus(str, Enum):
    PENDING = "Pending"
    SENT = "Sent"
    FAILED = "Failed"
    BOUNCED = "Bounced"


class OverallStatus(str, Enum):
    PENDING = "Pending"
    SENT = "Sent"
    PARTIALLY_SENT = "Partially Sent"
    FAILED = "Failed"


@dataclass
class RecipientDelivery:
    email: str
    recipient_type: RecipientClass
    status: DeliveryStatus = DeliveryStatus.PENDING
    sent_at: T.Optional[datetime] = None
    message_id: T.Optional[str] = None
    error: T.Optional[str] = None


@dataclass
class ReminderLog:
    """
    Audit record of the reminder dispatched for one special date on one day.

    sent_on is the operating-timezone calendar day of the first attempt and,
    together with special_date_id, identifies the log: retries mutate the same
    record instead of creating a new one.
    """
    id: str
    special_date_id: str
    member_id: str
    event_label: str
    event_date: date
    sent_at: datetime
    sent_on: date
    recipients: T.List[RecipientDelivery] = Field(default_factory=list)
    overall_status: OverallStatus = OverallStatus.PENDING
    email_subject: T.Optional[str] = None
    email_template: T.Optional[str] = None
    attempt_count: int = 0
    last_attempt_at: T.Optional[datetime] = None
    max_retries: int = DEFAULT_MAX_RETRIES
    will_retry: bool = False
    next_retry_at: T.Optional[datetime] = None
    error_message: T.Optional[str] = None

    @property
    def sent_emails(self) -> T.Set[str]:
        return {
            recipient.email for recipient in self.recipients
            if recipient.status == DeliveryStatus.SENT
        }
