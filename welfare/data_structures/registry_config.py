# Internal
import re
import typing as T

# External
from pydantic import Field, field_validator
from pydantic.dataclasses import dataclass

# Project
from welfare.engine.constants.constants import (
    DEFAULT_DAILY_TIME,
    DEFAULT_MAX_RETRIES,
    DEFAULT_SEND_DELAY_SECONDS,
    DEFAULT_SEND_TIMEOUT_SECONDS,
    DEFAULT_UTC_OFFSET_HOURS,
)

TIME_OF_DAY_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


@dataclass
class MailSecret:
    provider: T.Literal["smtp", "resend"] = "smtp"
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    mail_from: str = ""
    resend_api_key: str = ""


@dataclass
class ReminderSettings:
    daily_time: str = DEFAULT_DAILY_TIME
    utc_offset_hours: float = DEFAULT_UTC_OFFSET_HOURS
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delay_minutes: int = 60
    retry_sweep_minutes: int = 60
    send_delay_seconds: float = DEFAULT_SEND_DELAY_SECONDS
    send_timeout_seconds: float = DEFAULT_SEND_TIMEOUT_SECONDS
    run_on_startup: bool = False

    @field_validator("daily_time")
    @classmethod
    def check_daily_time(cls, value: str) -> str:
        if not re.fullmatch(TIME_OF_DAY_PATTERN, value):
            raise ValueError(f"daily_time must be HH:MM, got {value!r}")
        return value


@dataclass
class RegistryConfig:
    secrets: MailSecret
    organization_name: str = "Welfare Registry"
    database_path: str = "database/welfare_database.json"
    reminders: ReminderSettings = Field(default_factory=ReminderSettings)
