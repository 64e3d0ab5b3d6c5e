# Internal
import logging
from datetime import date, datetime, timedelta
from typing import List, Optional

# External
from pydantic import ValidationError

# Project
from welfare.data_structures.celebration import DueCelebration
from welfare.data_structures.outgoing_email import Recipient
from welfare.data_structures.reminder_log import (
    DeliveryStatus,
    OverallStatus,
    RecipientDelivery,
    ReminderLog,
)
from welfare.engine.constants.constants import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY,
    EMAIL_TEMPLATE_NAME,
    REMINDER_LOGS_TABLE,
)
from welfare.engine.modules.database import Database, to_document
from welfare.engine.modules.datetime_manager import DatetimeManager


def compute_overall_status(recipients: List[RecipientDelivery]) -> OverallStatus:
    sent_count = len([recipient for recipient in recipients if recipient.status == DeliveryStatus.SENT])

    if recipients and sent_count == len(recipients):
        return OverallStatus.SENT
    if sent_count > 0:
        return OverallStatus.PARTIALLY_SENT

    return OverallStatus.FAILED


def _merge_deliveries(
        current: List[RecipientDelivery],
        deliveries: List[RecipientDelivery]
) -> List[RecipientDelivery]:
    merged = list(current)
    positions = {recipient.email: index for index, recipient in enumerate(merged)}

    for delivery in deliveries:
        if delivery.email in positions:
            merged[positions[delivery.email]] = delivery
        else:
            positions[delivery.email] = len(merged)
            merged.append(delivery)

    return merged


class ReminderLedger:
    """
    Owner of the reminder_logs table.

    One ReminderLog exists per (special date, operating-timezone day). The
    existence of that log is what tells the selector a reminder has already
    gone out today; retries of a failed dispatch mutate the same log until it
    is fully sent or max_retries attempts have been made.
    """
    def __init__(
            self,
            database: Database,
            datetime_manager: Optional[DatetimeManager] = None,
            max_retries: int = DEFAULT_MAX_RETRIES,
            retry_delay: timedelta = DEFAULT_RETRY_DELAY
    ):
        self.database = database
        self.datetime_manager = datetime_manager or DatetimeManager()
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.table_name = REMINDER_LOGS_TABLE

    def _to_logs(self, items) -> List[ReminderLog]:
        logs = []
        for item in items:
            try:
                logs.append(ReminderLog(**item))
            except ValidationError as exc:
                logging.warning(f"Ignoring invalid reminder log {item.get('id')}: {exc.error_count()} validation error(s)")

        return logs

    def find_by_occurrence_day(self, special_date_id: str, day: date) -> Optional[ReminderLog]:
        items = self.database.search(
            self.table_name,
            {"special_date_id": special_date_id, "sent_on": day.isoformat()}
        )
        return ReminderLog(**items[0]) if items else None

    def has_entry_for_day(self, special_date_id: str, day: date) -> bool:
        items = self.database.search(
            self.table_name,
            {"special_date_id": special_date_id, "sent_on": day.isoformat()}
        )
        return len(items) > 0

    def get_log_by_id(self, log_id: str) -> Optional[ReminderLog]:
        items = self.database.search(self.table_name, {"id": log_id})
        return ReminderLog(**items[0]) if items else None

    def save(self, log: ReminderLog) -> ReminderLog:
        document = to_document(log)

        if self.database.search(self.table_name, {"id": log.id}):
            self.database.update(self.table_name, document, {"id": log.id})
        else:
            self.database.insert(self.table_name, document)

        return log

    def claim(
            self,
            celebration: DueCelebration,
            recipients: List[Recipient],
            subject: str,
            now: Optional[datetime] = None
    ) -> Optional[ReminderLog]:
        """
        Create today's log for a due celebration before anything is sent.

        Returns None when a log for the same special date and day already exists,
        in which case the caller must not dispatch.
        """
        now = now or self.datetime_manager.now()
        special_date = celebration.special_date

        if self.has_entry_for_day(special_date.id, now.date()):
            logging.info(f"Reminder log for special date {special_date.id} on {now.date()} already exists")
            return None

        log = ReminderLog(
            id=self.database.next_id(self.table_name),
            special_date_id=special_date.id,
            member_id=celebration.member.id,
            event_label=special_date.display_label,
            event_date=special_date.event_date,
            sent_at=now,
            sent_on=now.date(),
            recipients=[
                RecipientDelivery(email=recipient.email, recipient_type=recipient.recipient_type)
                for recipient in recipients
            ],
            email_subject=subject,
            email_template=EMAIL_TEMPLATE_NAME,
            max_retries=self.max_retries,
        )

        return self.save(log)

    def record_attempt(
            self,
            log: ReminderLog,
            deliveries: List[RecipientDelivery],
            now: Optional[datetime] = None
    ) -> ReminderLog:
        """
        Apply the outcome of one dispatch attempt (first send or retry) to a log.

        The attempt counter is incremented, the overall status derived from the
        per-recipient statuses, and a retry scheduled retry_delay from now when the
        log is not fully sent and attempts remain.
        """
        now = now or self.datetime_manager.now()

        log.recipients = _merge_deliveries(log.recipients, deliveries)
        log.attempt_count = min(log.attempt_count + 1, log.max_retries)
        log.last_attempt_at = now
        log.overall_status = compute_overall_status(log.recipients)

        errors = [recipient.error for recipient in log.recipients if recipient.error and recipient.status != DeliveryStatus.SENT]
        if log.overall_status == OverallStatus.SENT:
            log.error_message = None
        elif not log.recipients:
            log.error_message = "No recipients could be resolved"
        else:
            log.error_message = "; ".join(errors) or None

        if log.overall_status != OverallStatus.SENT and log.attempt_count < log.max_retries:
            log.will_retry = True
            log.next_retry_at = now + self.retry_delay
        else:
            log.will_retry = False
            log.next_retry_at = None

        logging.info(
            f"Reminder log {log.id}: {log.overall_status.value} after attempt "
            f"{log.attempt_count}/{log.max_retries}"
            + (f", retry at {log.next_retry_at}" if log.will_retry else "")
        )

        return self.save(log)

    def mark_failed(self, log: ReminderLog, reason: str, now: Optional[datetime] = None) -> ReminderLog:
        """
        Record an attempt that broke down before its outcome could be stored.

        The attempt is counted, recipients not known to be Sent stay unsent, and
        a retry is scheduled while attempts remain, so a claimed log is never left
        Pending with nothing to pick it up.
        """
        now = now or self.datetime_manager.now()

        log.attempt_count = min(log.attempt_count + 1, log.max_retries)
        log.last_attempt_at = now
        log.overall_status = compute_overall_status(log.recipients)
        log.error_message = reason

        if log.overall_status != OverallStatus.SENT and log.attempt_count < log.max_retries:
            log.will_retry = True
            log.next_retry_at = now + self.retry_delay
        else:
            log.will_retry = False
            log.next_retry_at = None

        logging.error(f"Reminder log {log.id} marked {log.overall_status.value}: {reason}")

        return self.save(log)

    def cancel_retry(self, log: ReminderLog, reason: str) -> ReminderLog:
        logging.warning(f"Retry cancelled for reminder log {log.id}: {reason}")

        log.will_retry = False
        log.next_retry_at = None
        log.error_message = reason

        return self.save(log)

    def find_due_retries(self, now: Optional[datetime] = None) -> List[ReminderLog]:
        now = now or self.datetime_manager.now()
        logs = self._to_logs(self.database.search(self.table_name, {"will_retry": True}))

        due = [
            log for log in logs
            if log.next_retry_at is not None and log.next_retry_at <= now and log.attempt_count < log.max_retries
        ]

        return sorted(due, key=lambda log: log.next_retry_at)

    def get_logs_for_special_date(self, special_date_id: str) -> List[ReminderLog]:
        logs = self._to_logs(self.database.search(self.table_name, {"special_date_id": special_date_id}))
        return sorted(logs, key=lambda log: log.sent_at, reverse=True)

    def get_logs_for_member(self, member_id: str) -> List[ReminderLog]:
        logs = self._to_logs(self.database.search(self.table_name, {"member_id": member_id}))
        return sorted(logs, key=lambda log: log.sent_at, reverse=True)

    def get_recent_logs(self, limit: int = 50) -> List[ReminderLog]:
        logs = self._to_logs(self.database.get_all(self.table_name))
        return sorted(logs, key=lambda log: log.sent_at, reverse=True)[:limit]
