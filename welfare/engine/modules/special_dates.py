# Internal
import logging
from typing import List, Dict, Any, Optional, Tuple
from datetime import date

# External
from pydantic import ValidationError

# Project
from welfare.data_structures.celebration import SkippedRecord, UpcomingCelebration
from welfare.data_structures.special_date import EventLabel, RecipientClass, SpecialDate, default_recipients
from welfare.engine.constants.constants import DEFAULT_REMINDER_HOURS, DEFAULT_UPCOMING_DAYS, SPECIAL_DATES_TABLE
from welfare.engine.exceptions import NotFoundError, StructuralError
from welfare.engine.modules.database import Database, to_document
from welfare.engine.modules.datetime_manager import DatetimeManager
from welfare.engine.modules.recurrence import next_occurrence

UPDATABLE_FIELDS = (
    "event_label",
    "custom_label",
    "event_date",
    "is_recurring",
    "send_reminder",
    "reminder_recipients",
    "reminder_hours_before",
    "notes",
)


class SpecialDateManager:
    """
    Manager class for special dates (birthdays, anniversaries, ...).
    Provides methods to create, read, update and soft-delete special dates and
    to query the ones that are relevant to the reminder engine.
    """

    def __init__(self, database: Database, datetime_manager: Optional[DatetimeManager] = None):
        """
        Initialize the SpecialDateManager.

        Args:
            database: Database instance holding the special dates table
            datetime_manager: Clock in the operating timezone
        """
        self.db = database
        self.datetime_manager = datetime_manager or DatetimeManager()
        self.table_name = SPECIAL_DATES_TABLE

    def add_special_date(self,
                         member_id: str,
                         event_label: EventLabel,
                         event_date: date,
                         custom_label: Optional[str] = None,
                         is_recurring: bool = True,
                         send_reminder: bool = True,
                         reminder_recipients: Optional[List[RecipientClass]] = None,
                         reminder_hours_before: int = DEFAULT_REMINDER_HOURS,
                         notes: Optional[str] = None,
                         created_by: Optional[str] = None) -> SpecialDate:
        """
        Add a new special date for a member.

        Args:
            member_id: ID of the owning member
            event_label: Kind of celebration
            event_date: Date of the event (only month/day matter when recurring)
            custom_label: Label used when event_label is "Other Celebration", dropped otherwise
            is_recurring: Whether the event repeats every year
            send_reminder: Whether reminders are sent for this event
            reminder_recipients: Recipient classes, defaults to member and welfare officers
            reminder_hours_before: Hours before the occurrence that the reminder window opens
            notes: Optional free text
            created_by: ID of the member or admin creating the record

        Returns:
            The created SpecialDate object

        Raises:
            pydantic.ValidationError: If the record breaks a special date invariant
        """
        now = self.datetime_manager.now()
        event_label = EventLabel(event_label)

        special_date = SpecialDate(
            id=self.db.next_id(self.table_name),
            member_id=member_id,
            event_label=event_label,
            event_date=event_date,
            custom_label=custom_label if event_label == EventLabel.OTHER else None,
            is_recurring=is_recurring,
            send_reminder=send_reminder,
            reminder_recipients=default_recipients() if reminder_recipients is None else reminder_recipients,
            reminder_hours_before=reminder_hours_before,
            notes=notes,
            created_by=created_by or member_id,
            created_at=now,
            updated_at=now,
        )

        self.db.insert(self.table_name, to_document(special_date))
        logging.info(f"Special date {special_date.id} ({special_date.display_label}) added for member {member_id}")

        return special_date

    def get_all_special_dates(self) -> List[SpecialDate]:
        items = self.db.get_all(self.table_name)
        return [SpecialDate(**item) for item in items]

    def get_special_date_by_id(self, special_date_id: str) -> Optional[SpecialDate]:
        """
        Get a special date by its ID.

        Args:
            special_date_id: ID of the special date

        Returns:
            SpecialDate object if found, None otherwise
        """
        items = self.db.search(self.table_name, {"id": special_date_id})
        return SpecialDate(**items[0]) if items else None

    def get_special_dates_for_member(self, member_id: str, include_inactive: bool = False) -> List[SpecialDate]:
        items = self.db.search(self.table_name, {"member_id": member_id})
        special_dates = [SpecialDate(**item) for item in items]

        if include_inactive:
            return special_dates

        return [special_date for special_date in special_dates if special_date.is_active]

    def _get_owned(self, special_date_id: str, member_id: str) -> SpecialDate:
        items = self.db.search(self.table_name, {"id": special_date_id, "member_id": member_id})
        if not items:
            raise NotFoundError(f"Special date {special_date_id} not found for member {member_id}")

        return SpecialDate(**items[0])

    def update_special_date(self, special_date_id: str, member_id: str, data: Dict[str, Any]) -> SpecialDate:
        """
        Update a special date owned by member_id.

        Only the fields in UPDATABLE_FIELDS are applied, everything else in data is
        ignored. The merged record is validated again before it is stored.

        Args:
            special_date_id: ID of the special date to update
            member_id: ID of the owning member
            data: Dictionary with fields to update

        Returns:
            The updated SpecialDate

        Raises:
            NotFoundError: If the special date does not exist or belongs to another member
            pydantic.ValidationError: If the update breaks a special date invariant
        """
        current = self._get_owned(special_date_id, member_id)

        document = to_document(current)
        document.update({key: value for key, value in data.items() if key in UPDATABLE_FIELDS})

        if document["event_label"] != EventLabel.OTHER:
            document["custom_label"] = None

        document["updated_at"] = self.datetime_manager.now()
        updated = SpecialDate(**document)

        self.db.update(self.table_name, to_document(updated), {"id": special_date_id})
        return updated

    def delete_special_date(self, special_date_id: str, member_id: str) -> bool:
        """
        Soft delete a special date: it stays stored but is excluded from scheduling.

        Args:
            special_date_id: ID of the special date
            member_id: ID of the owning member

        Returns:
            True if the record was deactivated

        Raises:
            NotFoundError: If the special date does not exist or belongs to another member
        """
        self._get_owned(special_date_id, member_id)

        result = self.db.update(
            self.table_name,
            {"is_active": False, "updated_at": self.datetime_manager.now().isoformat()},
            {"id": special_date_id}
        )
        return len(result) > 0

    def load_active_remindable(self) -> Tuple[List[SpecialDate], List[SkippedRecord]]:
        """
        Parse every active, remindable document on its own.

        Returns:
            The valid special dates, and a SkippedRecord for each stored document
            that no longer passes validation
        """
        special_dates = []
        invalid = []

        for item in self.db.search(self.table_name, {"is_active": True, "send_reminder": True}):
            try:
                special_dates.append(SpecialDate(**item))
            except ValidationError as exc:
                error = StructuralError(
                    f"Special date {item.get('id')} is invalid: {exc.error_count()} validation error(s)"
                )
                logging.warning(f"Skipping: {error}\n{exc}")
                invalid.append(SkippedRecord(special_date_id=str(item.get("id")), reason=str(error)))

        return special_dates, invalid

    def find_active_remindable(self) -> List[SpecialDate]:
        special_dates, _ = self.load_active_remindable()
        return special_dates

    def get_upcoming_celebrations(
            self,
            days_ahead: int = DEFAULT_UPCOMING_DAYS,
            reference_date: Optional[date] = None
    ) -> List[UpcomingCelebration]:
        """
        Get active celebrations happening within the next days_ahead days, soonest first.

        Args:
            days_ahead: Number of days to look ahead
            reference_date: Day to count from, defaults to today

        Returns:
            List of UpcomingCelebration items
        """
        reference_date = reference_date or self.datetime_manager.today()
        upcoming = []

        for item in self.db.search(self.table_name, {"is_active": True}):
            try:
                special_date = SpecialDate(**item)
            except ValidationError as exc:
                logging.warning(f"Ignoring invalid special date {item.get('id')}: {exc.error_count()} validation error(s)")
                continue
            occurrence = next_occurrence(special_date.event_date, special_date.is_recurring, reference_date)
            days = (occurrence - reference_date).days

            if 0 <= days <= days_ahead:
                upcoming.append(
                    UpcomingCelebration(
                        special_date=special_date,
                        days_until=days,
                        occurrence=occurrence
                    )
                )

        return sorted(upcoming, key=lambda item: item.days_until)

    def get_dashboard_counts(self, reference_date: Optional[date] = None) -> Dict[str, int]:
        upcoming = self.get_upcoming_celebrations(DEFAULT_UPCOMING_DAYS, reference_date)

        return {
            "upcoming_events": len(upcoming),
            "today_events": len([item for item in upcoming if item.days_until == 0]),
        }
