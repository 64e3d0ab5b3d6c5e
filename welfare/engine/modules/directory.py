# Internal
import logging
from typing import List, Optional

# External
from pydantic import ValidationError

# Project
from welfare.data_structures.member import Admin, Member
from welfare.engine.constants.constants import ADMINS_TABLE, MEMBERS_TABLE
from welfare.engine.modules.database import Database, to_document
from welfare.engine.modules.datetime_manager import DatetimeManager
from welfare.utils.text_utils import normalize_email


def _parse_valid(model, documents) -> list:
    """Build one model per document, dropping (and logging) the ones that fail validation."""
    parsed = []
    for data in documents:
        try:
            parsed.append(model(**data))
        except ValidationError as exc:
            logging.warning(f"Ignoring invalid {model.__name__.lower()} {data.get('id')}: {exc.error_count()} validation error(s)")

    return parsed


class MemberDirectory:
    """
    Read access to members and admins (welfare officers) stored in the registry.

    The reminder engine only ever reads from the directory; the add and
    deactivate helpers exist for seeding and administration.
    """
    def __init__(self, database: Database, datetime_manager: Optional[DatetimeManager] = None):
        """
        Initialize the MemberDirectory.

        Args:
            database (Database): Database instance holding the members and admins tables
            datetime_manager (DatetimeManager, optional): Clock used for registration dates
        """
        self.database = database
        self.datetime_manager = datetime_manager or DatetimeManager()
        self.members_table = MEMBERS_TABLE
        self.admins_table = ADMINS_TABLE

    def add_member(self, full_name: str, email: str, phone_number: Optional[str] = None) -> Member:
        """
        Register a new active member.

        Args:
            full_name (str): Member's full name
            email (str): Member's email address, stored lowercase
            phone_number (str, optional): Member's phone number

        Returns:
            Member: The stored member
        """
        member = Member(
            id=self.database.next_id(self.members_table),
            full_name=full_name.strip(),
            email=normalize_email(email),
            phone_number=phone_number,
            registration_date=self.datetime_manager.now(),
        )
        self.database.insert(self.members_table, to_document(member))
        logging.info(f"Member {member.id} registered: {member.full_name}")

        return member

    def add_admin(
            self,
            full_name: str,
            email: str,
            permissions: Optional[List[str]] = None,
            role: str = "Viewer"
    ) -> Admin:
        admin = Admin(
            id=self.database.next_id(self.admins_table),
            full_name=full_name.strip(),
            email=normalize_email(email),
            role=role,
            permissions=permissions or [],
        )
        self.database.insert(self.admins_table, to_document(admin))
        logging.info(f"Admin {admin.id} created with role {admin.role}")

        return admin

    def find_member_by_id(self, member_id: str) -> Optional[Member]:
        """
        Retrieve a member by id, active or not.

        Args:
            member_id (str): The member id

        Returns:
            Optional[Member]: The member if found, None otherwise
        """
        results = self.database.search(self.members_table, {"id": member_id})
        if results:
            return Member(**results[0])
        return None

    def find_active_members(self) -> List[Member]:
        results = self.database.search(self.members_table, {"is_active": True})
        return _parse_valid(Member, results)

    def find_active_admins_with_permission(self, permission: str) -> List[Admin]:
        """
        Retrieve every active admin holding the given permission.

        Args:
            permission (str): Permission name, e.g. "view_members"

        Returns:
            List[Admin]: Matching admins, possibly empty
        """
        results = self.database.search(self.admins_table, {"is_active": True})
        admins = _parse_valid(Admin, results)

        return [admin for admin in admins if permission in admin.permissions]

    def deactivate_member(self, member_id: str) -> bool:
        result = self.database.update(self.members_table, {"is_active": False}, {"id": member_id})
        return len(result) > 0
