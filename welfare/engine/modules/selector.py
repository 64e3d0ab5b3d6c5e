# Internal
import logging
from datetime import datetime
from typing import Optional

# External
from pydantic import ValidationError

# Project
from welfare.data_structures.celebration import DueCelebration, SelectionResult, SkippedRecord
from welfare.engine.exceptions import StructuralError
from welfare.engine.modules.datetime_manager import DatetimeManager
from welfare.engine.modules.directory import MemberDirectory
from welfare.engine.modules.ledger import ReminderLedger
from welfare.engine.modules.recurrence import is_within_reminder_window, next_occurrence
from welfare.engine.modules.special_dates import SpecialDateManager


class DueSetSelector:
    """
    Picks the special dates whose reminder window is open right now.

    A record is due when 0 <= days_until * 24 <= reminder_hours_before and no
    reminder log exists for it on the current day. Records that are invalid or
    whose member cannot be loaded are reported as skipped and never block the
    others.
    """
    def __init__(
            self,
            special_dates: SpecialDateManager,
            directory: MemberDirectory,
            ledger: ReminderLedger,
            datetime_manager: Optional[DatetimeManager] = None
    ):
        self.special_dates = special_dates
        self.directory = directory
        self.ledger = ledger
        self.datetime_manager = datetime_manager or DatetimeManager()

    def _skip(self, result: SelectionResult, special_date_id: str, error: StructuralError):
        logging.warning(f"Skipping: {error}")
        result.skipped.append(SkippedRecord(special_date_id=special_date_id, reason=str(error)))

    def select(self, now: Optional[datetime] = None) -> SelectionResult:
        now = now or self.datetime_manager.now()
        today = now.date()

        logging.info(f"Checking for upcoming celebrations on {today}")

        special_dates, invalid = self.special_dates.load_active_remindable()
        result = SelectionResult(skipped=list(invalid))

        for special_date in special_dates:
            if not (special_date.is_active and special_date.send_reminder):
                continue

            occurrence = next_occurrence(special_date.event_date, special_date.is_recurring, today)
            days = (occurrence - today).days

            if not is_within_reminder_window(days, special_date.reminder_hours_before):
                continue

            if self.ledger.has_entry_for_day(special_date.id, today):
                logging.info(f"Reminder for special date {special_date.id} already sent today")
                continue

            try:
                member = self.directory.find_member_by_id(special_date.member_id)
            except ValidationError as exc:
                self._skip(result, special_date.id, StructuralError(
                    f"Special date {special_date.id} references invalid member {special_date.member_id}: "
                    f"{exc.error_count()} validation error(s)"
                ))
                continue

            if member is None:
                self._skip(result, special_date.id, StructuralError(
                    f"Special date {special_date.id} references unknown member {special_date.member_id}"
                ))
                continue

            result.due.append(
                DueCelebration(
                    special_date=special_date,
                    member=member,
                    days_until=days,
                    occurrence=occurrence
                )
            )

        result.due.sort(key=lambda celebration: celebration.days_until)

        logging.info(f"Found {len(result.due)} celebrations needing reminders, {len(result.skipped)} skipped")
        return result
