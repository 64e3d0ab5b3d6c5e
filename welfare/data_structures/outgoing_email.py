# External
from pydantic.dataclasses import dataclass

# Project
from welfare.data_structures.special_date import RecipientClass


@dataclass
class Recipient:
    email: str
    recipient_type: RecipientClass


@dataclass
class EmailContent:
    subject: str
    html: str
    text: str
