from datetime import date, timedelta

import pytest

from welfare.data_structures.celebration import DueCelebration
from welfare.data_structures.outgoing_email import Recipient
from welfare.data_structures.reminder_log import DeliveryStatus, OverallStatus, RecipientDelivery
from welfare.data_structures.special_date import RecipientClass
from welfare.engine.modules.ledger import ReminderLedger, compute_overall_status


def _delivery(email, status, error=None):
    return RecipientDelivery(email=email, recipient_type=RecipientClass.MEMBER, status=status, error=error)


@pytest.fixture
def celebration(birthday_tomorrow, member):
    return DueCelebration(special_date=birthday_tomorrow, member=member, days_until=1, occurrence=date(2025, 6, 15))


@pytest.fixture
def recipients():
    return [
        Recipient(email="ada.obi@example.com", recipient_type=RecipientClass.MEMBER),
        Recipient(email="welfare@example.com", recipient_type=RecipientClass.WELFARE_OFFICERS),
    ]


class TestOverallStatus:
    def test_all_sent(self):
        deliveries = [_delivery("a@x.com", DeliveryStatus.SENT), _delivery("b@x.com", DeliveryStatus.SENT)]
        assert compute_overall_status(deliveries) == OverallStatus.SENT

    def test_some_sent(self):
        deliveries = [_delivery("a@x.com", DeliveryStatus.SENT), _delivery("b@x.com", DeliveryStatus.FAILED)]
        assert compute_overall_status(deliveries) == OverallStatus.PARTIALLY_SENT

    def test_none_sent(self):
        deliveries = [_delivery("a@x.com", DeliveryStatus.FAILED), _delivery("b@x.com", DeliveryStatus.BOUNCED)]
        assert compute_overall_status(deliveries) == OverallStatus.FAILED

    def test_no_recipients_is_failed(self):
        assert compute_overall_status([]) == OverallStatus.FAILED


class TestReminderLedger:
    def test_claim_creates_pending_log(self, ledger, celebration, recipients, now):
        log = ledger.claim(celebration, recipients, "📅 Tomorrow: Ada Obi's Birthday", now)

        assert log.sent_on == date(2025, 6, 14)
        assert log.event_label == "Birthday"
        assert log.attempt_count == 0
        assert [r.status for r in log.recipients] == [DeliveryStatus.PENDING, DeliveryStatus.PENDING]
        assert ledger.has_entry_for_day(celebration.special_date.id, date(2025, 6, 14))

    def test_second_claim_same_day_is_refused(self, ledger, celebration, recipients, now):
        assert ledger.claim(celebration, recipients, "subject", now) is not None
        assert ledger.claim(celebration, recipients, "subject", now + timedelta(hours=3)) is None
        assert len(ledger.get_logs_for_special_date(celebration.special_date.id)) == 1

    def test_claim_on_next_day_is_allowed(self, ledger, celebration, recipients, now):
        ledger.claim(celebration, recipients, "subject", now)

        assert ledger.claim(celebration, recipients, "subject", now + timedelta(days=1)) is not None

    def test_full_success_clears_retry(self, ledger, celebration, recipients, now):
        log = ledger.claim(celebration, recipients, "subject", now)

        log = ledger.record_attempt(
            log,
            [_delivery("ada.obi@example.com", DeliveryStatus.SENT), _delivery("welfare@example.com", DeliveryStatus.SENT)],
            now,
        )

        assert log.overall_status == OverallStatus.SENT
        assert log.attempt_count == 1
        assert not log.will_retry
        assert log.next_retry_at is None
        assert log.error_message is None

    def test_partial_failure_schedules_retry(self, ledger, celebration, recipients, now):
        log = ledger.claim(celebration, recipients, "subject", now)

        log = ledger.record_attempt(
            log,
            [
                _delivery("ada.obi@example.com", DeliveryStatus.SENT),
                _delivery("welfare@example.com", DeliveryStatus.FAILED, error="Mailbox unavailable"),
            ],
            now,
        )

        assert log.overall_status == OverallStatus.PARTIALLY_SENT
        assert log.will_retry
        assert log.next_retry_at == now + timedelta(hours=1)
        assert log.error_message == "Mailbox unavailable"

        stored = ledger.get_log_by_id(log.id)
        assert stored.next_retry_at == now + timedelta(hours=1)
        assert stored.overall_status == OverallStatus.PARTIALLY_SENT

    def test_attempts_never_exceed_max_retries(self, ledger, celebration, recipients, now):
        log = ledger.claim(celebration, recipients, "subject", now)
        failed = [_delivery("ada.obi@example.com", DeliveryStatus.FAILED, error="down")]

        for attempt in range(5):
            log = ledger.record_attempt(log, failed, now + timedelta(hours=attempt))
            assert log.attempt_count <= log.max_retries

        assert log.attempt_count == 3
        assert not log.will_retry
        assert log.next_retry_at is None

    def test_empty_recipient_list_is_failed(self, ledger, celebration, now):
        log = ledger.claim(celebration, [], "subject", now)

        log = ledger.record_attempt(log, [], now)

        assert log.overall_status == OverallStatus.FAILED
        assert log.error_message == "No recipients could be resolved"
        assert log.will_retry

    def test_retry_merges_into_existing_recipients(self, ledger, celebration, recipients, now):
        log = ledger.claim(celebration, recipients, "subject", now)
        log = ledger.record_attempt(
            log,
            [
                _delivery("ada.obi@example.com", DeliveryStatus.SENT),
                _delivery("welfare@example.com", DeliveryStatus.FAILED, error="down"),
            ],
            now,
        )

        log = ledger.record_attempt(log, [_delivery("welfare@example.com", DeliveryStatus.SENT)], now + timedelta(hours=1))

        assert [r.email for r in log.recipients] == ["ada.obi@example.com", "welfare@example.com"]
        assert log.overall_status == OverallStatus.SENT
        assert log.attempt_count == 2

    def test_find_due_retries_respects_next_retry_at(self, ledger, celebration, recipients, now):
        log = ledger.claim(celebration, recipients, "subject", now)
        ledger.record_attempt(log, [_delivery("ada.obi@example.com", DeliveryStatus.FAILED, error="down")], now)

        assert ledger.find_due_retries(now + timedelta(minutes=59)) == []
        assert [log.id for log in ledger.find_due_retries(now + timedelta(hours=1))] == [log.id]

    def test_cancel_retry(self, ledger, celebration, recipients, now):
        log = ledger.claim(celebration, recipients, "subject", now)
        log = ledger.record_attempt(log, [_delivery("ada.obi@example.com", DeliveryStatus.FAILED, error="down")], now)

        ledger.cancel_retry(log, "Special date was deleted")

        assert ledger.find_due_retries(now + timedelta(days=1)) == []
        assert ledger.get_log_by_id(log.id).error_message == "Special date was deleted"

    def test_custom_retry_policy(self, database, clock, celebration, recipients, now):
        ledger = ReminderLedger(database, clock, max_retries=1, retry_delay=timedelta(minutes=15))
        log = ledger.claim(celebration, recipients, "subject", now)

        log = ledger.record_attempt(log, [_delivery("ada.obi@example.com", DeliveryStatus.FAILED, error="down")], now)

        assert log.attempt_count == 1
        assert not log.will_retry

    def test_history_queries(self, ledger, celebration, recipients, now, member):
        ledger.claim(celebration, recipients, "first", now)
        ledger.claim(celebration, recipients, "second", now + timedelta(days=1))

        assert [log.email_subject for log in ledger.get_logs_for_member(member.id)] == ["second", "first"]
        assert [log.email_subject for log in ledger.get_recent_logs(limit=1)] == ["second"]


def test_mark_failed_keeps_a_claimed_log_retryable(ledger, celebration, recipients, now):
    log = ledger.claim(celebration, recipients, "subject", now)

    ledger.mark_failed(log, "Reminder could not be recorded: disk full", now)

    stored = ledger.get_log_by_id(log.id)
    assert stored.overall_status == OverallStatus.FAILED
    assert stored.attempt_count == 1
    assert stored.will_retry
    assert stored.error_message == "Reminder could not be recorded: disk full"
    assert [due.id for due in ledger.find_due_retries(now + timedelta(hours=1))] == [log.id]


def test_invalid_log_documents_do_not_hide_valid_retries(ledger, database, celebration, recipients, now):
    log = ledger.claim(celebration, recipients, "subject", now)
    ledger.record_attempt(log, [_delivery("ada.obi@example.com", DeliveryStatus.FAILED, error="down")], now)
    database.insert("reminder_logs", {"id": "broken", "will_retry": True})

    assert [due.id for due in ledger.find_due_retries(now + timedelta(hours=1))] == [log.id]
