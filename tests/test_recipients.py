from datetime import date

from welfare.data_structures.special_date import EventLabel, RecipientClass
from welfare.engine.modules.recipients import RecipientResolver


def _resolve(directory, special_dates, member, recipient_classes):
    special_date = special_dates.add_special_date(
        member.id, EventLabel.BIRTHDAY, date(1990, 6, 15), reminder_recipients=recipient_classes
    )
    return RecipientResolver(directory).resolve(special_date, member)


def test_member_class_yields_member_email(directory, special_dates, member):
    recipients = _resolve(directory, special_dates, member, [RecipientClass.MEMBER])

    assert [(r.email, r.recipient_type) for r in recipients] == [("ada.obi@example.com", RecipientClass.MEMBER)]


def test_welfare_officers_need_view_members_permission(directory, special_dates, member, officer):
    directory.add_admin("Auditor", "auditor@example.com", permissions=["view_logs"])

    recipients = _resolve(directory, special_dates, member, [RecipientClass.WELFARE_OFFICERS])

    assert [r.email for r in recipients] == ["welfare@example.com"]


def test_inactive_officers_are_excluded(directory, special_dates, member, database):
    admin = directory.add_admin("Retired Officer", "retired@example.com", permissions=["view_members"])
    database.update("admins", {"is_active": False}, {"id": admin.id})

    assert _resolve(directory, special_dates, member, [RecipientClass.WELFARE_OFFICERS]) == []


def test_all_members_class_uses_active_members(directory, special_dates, member):
    directory.add_member("Bola Ade", "bola@example.com")
    gone = directory.add_member("Chidi Eze", "chidi@example.com")
    directory.deactivate_member(gone.id)

    recipients = _resolve(directory, special_dates, member, [RecipientClass.ALL_MEMBERS])

    assert sorted(r.email for r in recipients) == ["ada.obi@example.com", "bola@example.com"]


def test_duplicates_are_removed_and_first_class_wins(directory, special_dates, member):
    directory.add_admin("Ada as officer", "ADA.OBI@example.com", permissions=["view_members"])

    recipients = _resolve(
        directory, special_dates, member, [RecipientClass.MEMBER, RecipientClass.WELFARE_OFFICERS]
    )

    assert len(recipients) == 1
    assert recipients[0].recipient_type == RecipientClass.MEMBER


def test_no_officers_yields_only_member(directory, special_dates, member):
    recipients = _resolve(
        directory, special_dates, member, [RecipientClass.MEMBER, RecipientClass.WELFARE_OFFICERS]
    )

    assert [r.email for r in recipients] == ["ada.obi@example.com"]
