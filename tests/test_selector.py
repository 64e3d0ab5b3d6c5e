from datetime import date

from welfare.data_structures.special_date import EventLabel, RecipientClass
from welfare.engine.modules.recipients import RecipientResolver
from welfare.engine.modules.selector import DueSetSelector


def _selector(special_dates, directory, ledger, clock):
    return DueSetSelector(special_dates, directory, ledger, clock)


def test_birthday_tomorrow_is_due_with_default_window(special_dates, directory, ledger, clock, birthday_tomorrow, member):
    result = _selector(special_dates, directory, ledger, clock).select()

    assert len(result.due) == 1
    assert result.due[0].special_date.id == birthday_tomorrow.id
    assert result.due[0].member.id == member.id
    assert result.due[0].days_until == 1
    assert result.due[0].occurrence == date(2025, 6, 15)
    assert result.skipped == []


def test_event_outside_window_is_not_due(special_dates, directory, ledger, clock, member):
    special_dates.add_special_date(member.id, EventLabel.WORK_ANNIVERSARY, date(2015, 6, 17))

    assert _selector(special_dates, directory, ledger, clock).select().due == []


def test_wider_window_makes_event_due(special_dates, directory, ledger, clock, member):
    special_dates.add_special_date(
        member.id, EventLabel.WORK_ANNIVERSARY, date(2015, 6, 17), reminder_hours_before=72
    )

    result = _selector(special_dates, directory, ledger, clock).select()

    assert [celebration.days_until for celebration in result.due] == [3]


def test_past_one_time_event_is_never_due(special_dates, directory, ledger, clock, member):
    special_dates.add_special_date(member.id, EventLabel.OTHER, date(2025, 6, 13), custom_label="Launch", is_recurring=False)

    assert _selector(special_dates, directory, ledger, clock).select().due == []


def test_disabled_and_inactive_records_are_ignored(special_dates, directory, ledger, clock, member):
    special_dates.add_special_date(member.id, EventLabel.BIRTHDAY, date(1990, 6, 15), send_reminder=False)
    inactive = special_dates.add_special_date(member.id, EventLabel.WORK_ANNIVERSARY, date(2015, 6, 15))
    special_dates.delete_special_date(inactive.id, member.id)

    assert _selector(special_dates, directory, ledger, clock).select().due == []


def test_due_list_is_sorted_by_days_until(special_dates, directory, ledger, clock, member):
    special_dates.add_special_date(member.id, EventLabel.WORK_ANNIVERSARY, date(2015, 6, 16), reminder_hours_before=48)
    special_dates.add_special_date(member.id, EventLabel.BIRTHDAY, date(1990, 6, 14))

    result = _selector(special_dates, directory, ledger, clock).select()

    assert [celebration.days_until for celebration in result.due] == [0, 2]


def test_record_with_existing_log_today_is_excluded(special_dates, directory, ledger, clock, birthday_tomorrow, now):
    selector = _selector(special_dates, directory, ledger, clock)
    celebration = selector.select().due[0]
    recipients = RecipientResolver(directory).resolve(celebration.special_date, celebration.member)
    ledger.claim(celebration, recipients, "subject", now)

    assert selector.select().due == []


def test_unknown_member_is_skipped_and_reported(special_dates, directory, ledger, clock, member):
    special_dates.add_special_date("404", EventLabel.BIRTHDAY, date(1990, 6, 15), reminder_recipients=[RecipientClass.MEMBER])
    special_dates.add_special_date(member.id, EventLabel.BIRTHDAY, date(1990, 6, 15))

    result = _selector(special_dates, directory, ledger, clock).select()

    assert len(result.due) == 1
    assert result.due[0].member.id == member.id
    assert len(result.skipped) == 1
    assert "unknown member 404" in result.skipped[0].reason


def test_inactive_member_is_still_reminded(special_dates, directory, ledger, clock, birthday_tomorrow, member):
    directory.deactivate_member(member.id)

    result = _selector(special_dates, directory, ledger, clock).select()

    assert len(result.due) == 1


def test_invalid_stored_record_is_reported_as_skipped(special_dates, directory, ledger, clock, database, birthday_tomorrow):
    database.insert("special_dates", {
        "id": "99",
        "member_id": birthday_tomorrow.member_id,
        "event_label": "Other Celebration",
        "event_date": "1990-06-15",
        "is_active": True,
        "send_reminder": True,
    })

    result = _selector(special_dates, directory, ledger, clock).select()

    assert [celebration.special_date.id for celebration in result.due] == [birthday_tomorrow.id]
    assert [record.special_date_id for record in result.skipped] == ["99"]
    assert "is invalid" in result.skipped[0].reason


def test_invalid_member_is_reported_as_skipped(special_dates, directory, ledger, clock, database, birthday_tomorrow):
    database.insert("members", {"id": "7", "full_name": None, "email": "broken@example.com", "is_active": True})
    broken = special_dates.add_special_date("7", EventLabel.BIRTHDAY, date(1990, 6, 15))

    result = _selector(special_dates, directory, ledger, clock).select()

    assert [celebration.special_date.id for celebration in result.due] == [birthday_tomorrow.id]
    assert [record.special_date_id for record in result.skipped] == [broken.id]
    assert "invalid member 7" in result.skipped[0].reason
