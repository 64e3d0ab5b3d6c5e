# Internal
from datetime import date, datetime, timedelta, timezone

# Project
from welfare.engine.constants.constants import DEFAULT_UTC_OFFSET_HOURS


class DatetimeManager:
    def __init__(self, utc_offset_hours: float = DEFAULT_UTC_OFFSET_HOURS):
        self.utc_offset_hours = utc_offset_hours
        self.timezone = timezone(timedelta(hours=utc_offset_hours))

    def now(self) -> datetime:
        utc_now = datetime.now(timezone.utc)

        return utc_now.astimezone(self.timezone)

    def today(self) -> date:
        return self.now().date()
