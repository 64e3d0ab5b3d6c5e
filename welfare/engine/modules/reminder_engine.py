# Internal
import logging
from datetime import datetime
from typing import List, Optional

# Project
from welfare.data_structures.celebration import DueCelebration
from welfare.data_structures.outgoing_email import Recipient
from welfare.data_structures.reminder_log import DeliveryStatus, RecipientDelivery, ReminderLog
from welfare.data_structures.run_summary import RunSummary
from welfare.engine.exceptions import NotFoundError, StructuralError
from welfare.engine.modules.datetime_manager import DatetimeManager
from welfare.engine.modules.directory import MemberDirectory
from welfare.engine.modules.dispatcher import DeliveryDispatcher
from welfare.engine.modules.ledger import ReminderLedger
from welfare.engine.modules.recipients import RecipientResolver
from welfare.engine.modules.recurrence import next_occurrence
from welfare.engine.modules.selector import DueSetSelector
from welfare.engine.modules.special_dates import SpecialDateManager
from welfare.utils.email_templates import render_reminder_email, render_test_email


def _count(deliveries: List[RecipientDelivery], status: DeliveryStatus) -> int:
    return len([delivery for delivery in deliveries if delivery.status == status])


class ReminderEngine:
    """
    The reminder pipeline: select due special dates, resolve recipients, render
    and dispatch the email, and record the outcome in the ledger. Failed logs
    are retried by process_retries once their retry time has come.

    Each special date is processed in isolation: an unexpected error on one
    record is logged and the run moves on to the next.
    """

    def __init__(
            self,
            special_dates: SpecialDateManager,
            directory: MemberDirectory,
            ledger: ReminderLedger,
            dispatcher: DeliveryDispatcher,
            datetime_manager: Optional[DatetimeManager] = None,
            organization_name: str = "Welfare Registry"
    ):
        self.special_dates = special_dates
        self.directory = directory
        self.ledger = ledger
        self.dispatcher = dispatcher
        self.datetime_manager = datetime_manager or DatetimeManager()
        self.organization_name = organization_name

        self.selector = DueSetSelector(special_dates, directory, ledger, self.datetime_manager)
        self.resolver = RecipientResolver(directory)

    async def _send_celebration_reminder(
            self,
            celebration: DueCelebration,
            now: datetime
    ) -> Optional[List[RecipientDelivery]]:
        special_date = celebration.special_date
        logging.info(f"Sending reminder for {celebration.member.full_name} - {special_date.display_label}")

        content = render_reminder_email(celebration, self.organization_name)
        recipients = self.resolver.resolve(special_date, celebration.member)

        log = self.ledger.claim(celebration, recipients, content.subject, now)
        if log is None:
            return None

        attempts_before = log.attempt_count
        try:
            deliveries = await self.dispatcher.dispatch(content, recipients)
            self.ledger.record_attempt(log, deliveries, self.datetime_manager.now())
        except Exception as exc:
            # keep today's claim retryable instead of leaving it Pending
            log.attempt_count = attempts_before
            self.ledger.mark_failed(
                log,
                f"Reminder could not be recorded: {exc}",
                self.datetime_manager.now()
            )
            raise

        return deliveries

    async def _retry_log(self, log: ReminderLog, now: datetime) -> Optional[List[RecipientDelivery]]:
        special_date = self.special_dates.get_special_date_by_id(log.special_date_id)
        if special_date is None or not special_date.is_active or not special_date.send_reminder:
            self.ledger.cancel_retry(log, "Special date is no longer active or has reminders disabled")
            return None

        member = self.directory.find_member_by_id(log.member_id)
        if member is None:
            error = StructuralError(f"Reminder log {log.id} references unknown member {log.member_id}")
            self.ledger.cancel_retry(log, str(error))
            return None

        occurrence = next_occurrence(special_date.event_date, special_date.is_recurring, log.sent_on)
        days = (occurrence - now.date()).days
        if days < 0:
            self.ledger.cancel_retry(log, f"Occurrence on {occurrence} has already passed")
            return None

        celebration = DueCelebration(special_date=special_date, member=member, days_until=days, occurrence=occurrence)
        content = render_reminder_email(celebration, self.organization_name)

        already_sent = log.sent_emails
        pending: List[Recipient] = [
            recipient for recipient in self.resolver.resolve(special_date, member)
            if recipient.email not in already_sent
        ]

        if not pending and log.recipients:
            self.ledger.cancel_retry(log, "No unsent recipient can still be resolved")
            return None

        logging.info(
            f"Retrying reminder log {log.id} (attempt {log.attempt_count + 1}/{log.max_retries}) "
            f"for {len(pending)} recipient(s)"
        )

        deliveries = await self.dispatcher.dispatch(content, pending)
        self.ledger.record_attempt(log, deliveries, self.datetime_manager.now())

        return deliveries

    async def process_retries(self, now: Optional[datetime] = None) -> RunSummary:
        now = now or self.datetime_manager.now()
        summary = RunSummary()

        for log in self.ledger.find_due_retries(now):
            try:
                deliveries = await self._retry_log(log, now)
            except Exception as exc:
                logging.exception(f"Error retrying reminder log {log.id}: {exc}")
                continue

            if deliveries is None:
                continue

            summary.retried += 1
            summary.sent += _count(deliveries, DeliveryStatus.SENT)
            summary.failed += _count(deliveries, DeliveryStatus.FAILED)

        return summary

    async def process_reminders(self) -> RunSummary:
        """
        Run the whole pipeline once: new reminders for today, then due retries.

        Safe to call several times a day, a special date gets at most one
        reminder log per day.

        Returns:
            RunSummary: counters for the run
        """
        now = self.datetime_manager.now()
        logging.info(f"===== REMINDER SERVICE STARTED at {now.isoformat()} =====")

        summary = RunSummary()
        selection = self.selector.select(now)
        summary.skipped = len(selection.skipped)

        for celebration in selection.due:
            try:
                deliveries = await self._send_celebration_reminder(celebration, now)
            except Exception as exc:
                logging.exception(f"Error sending reminder for special date {celebration.special_date.id}: {exc}")
                continue

            if deliveries is None:
                continue

            summary.processed += 1
            summary.sent += _count(deliveries, DeliveryStatus.SENT)
            summary.failed += _count(deliveries, DeliveryStatus.FAILED)

        summary.merge(await self.process_retries(now))

        logging.info(
            f"Summary: {summary.processed} celebrations processed, {summary.sent} emails sent, "
            f"{summary.failed} emails failed, {summary.skipped} skipped, {summary.retried} retried"
        )
        logging.info("===== REMINDER SERVICE COMPLETED =====")

        return summary

    async def send_test_email(self, member_id: str) -> RecipientDelivery:
        """
        Send a test email to a member so they can confirm reminders reach them.

        Raises:
            NotFoundError: If the member does not exist
        """
        member = self.directory.find_member_by_id(member_id)
        if member is None:
            raise NotFoundError(f"Member {member_id} not found")

        content = render_test_email(member, self.organization_name)
        deliveries = await self.dispatcher.dispatch(
            content,
            [Recipient(email=member.email, recipient_type="Member")]
        )

        return deliveries[0]

    async def verify_mail_transport(self) -> bool:
        return await self.dispatcher.mailer.verify()
