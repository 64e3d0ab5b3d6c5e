# Internal
import logging
from typing import List

# Project
from welfare.data_structures.member import Member
from welfare.data_structures.outgoing_email import Recipient
from welfare.data_structures.special_date import RecipientClass, SpecialDate
from welfare.engine.constants.constants import VIEW_MEMBERS_PERMISSION
from welfare.engine.modules.directory import MemberDirectory
from welfare.utils.text_utils import normalize_email


class RecipientResolver:
    """
    Expands the recipient classes of a special date into concrete addresses.

    Addresses are deduplicated case-insensitively; when one address belongs to
    several classes the first class listed on the special date wins.
    """
    def __init__(self, directory: MemberDirectory, welfare_permission: str = VIEW_MEMBERS_PERMISSION):
        self.directory = directory
        self.welfare_permission = welfare_permission

    def _expand(self, recipient_class: RecipientClass, member: Member) -> List[str]:
        if recipient_class == RecipientClass.MEMBER:
            return [member.email]

        if recipient_class == RecipientClass.WELFARE_OFFICERS:
            officers = self.directory.find_active_admins_with_permission(self.welfare_permission)
            if not officers:
                logging.warning("No active welfare officers found")
            return [officer.email for officer in officers]

        if recipient_class == RecipientClass.ALL_MEMBERS:
            return [active_member.email for active_member in self.directory.find_active_members()]

        return []

    def resolve(self, special_date: SpecialDate, member: Member) -> List[Recipient]:
        recipients = []
        seen = set()

        for recipient_class in special_date.reminder_recipients:
            for email in self._expand(recipient_class, member):
                email = normalize_email(email)
                if not email or email in seen:
                    continue

                seen.add(email)
                recipients.append(Recipient(email=email, recipient_type=recipient_class))

        return recipients
