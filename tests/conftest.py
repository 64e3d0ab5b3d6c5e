import asyncio
from datetime import date, datetime, timedelta, timezone

import pytest
from tinydb.storages import MemoryStorage

from welfare.data_structures.special_date import EventLabel, RecipientClass
from welfare.engine.exceptions import TransportError
from welfare.engine.modules.database import Database
from welfare.engine.modules.datetime_manager import DatetimeManager
from welfare.engine.modules.directory import MemberDirectory
from welfare.engine.modules.dispatcher import DeliveryDispatcher
from welfare.engine.modules.ledger import ReminderLedger
from welfare.engine.modules.mailer import Mailer
from welfare.engine.modules.reminder_engine import ReminderEngine
from welfare.engine.modules.scheduler import Scheduler
from welfare.engine.modules.special_dates import SpecialDateManager

OPERATING_TZ = timezone(timedelta(hours=1))


class FrozenDatetimeManager(DatetimeManager):
    """Clock pinned to a fixed instant in the operating timezone."""
    def __init__(self, current: datetime, utc_offset_hours: float = 1):
        super().__init__(utc_offset_hours)
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


class FakeMailer(Mailer):
    def __init__(self, failing=None, fail_all: bool = False, delay: float = 0):
        self.failing = {email.lower() for email in (failing or [])}
        self.fail_all = fail_all
        self.delay = delay
        self.sent = []
        self.attempts = []

    async def send(self, to: str, subject: str, html: str, text: str) -> str:
        self.attempts.append(to)

        if self.delay:
            await asyncio.sleep(self.delay)

        if self.fail_all or to in self.failing:
            raise TransportError(f"Mailbox unavailable: {to}")

        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})
        return f"<msg-{len(self.sent)}@test>"

    async def verify(self) -> bool:
        return not self.fail_all

    def recipients_sent(self):
        return [message["to"] for message in self.sent]


@pytest.fixture
def now():
    return datetime(2025, 6, 14, 8, 0, tzinfo=OPERATING_TZ)


@pytest.fixture
def clock(now):
    return FrozenDatetimeManager(now)


@pytest.fixture
def database():
    db = Database(storage=MemoryStorage)
    yield db
    db.close()


@pytest.fixture
def directory(database, clock):
    return MemberDirectory(database, clock)


@pytest.fixture
def special_dates(database, clock):
    return SpecialDateManager(database, clock)


@pytest.fixture
def ledger(database, clock):
    return ReminderLedger(database, clock)


@pytest.fixture
def member(directory):
    return directory.add_member("Ada Obi", "Ada.Obi@Example.com", "+2348000000001")


@pytest.fixture
def officer(directory):
    return directory.add_admin("Welfare Officer", "welfare@example.com", permissions=["view_members"])


@pytest.fixture
def birthday_tomorrow(special_dates, member):
    return special_dates.add_special_date(
        member_id=member.id,
        event_label=EventLabel.BIRTHDAY,
        event_date=date(1990, 6, 15),
        reminder_recipients=[RecipientClass.MEMBER, RecipientClass.WELFARE_OFFICERS],
    )


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def make_engine(special_dates, directory, ledger, clock):
    def _make(mailer: Mailer, send_timeout: float = 10.0) -> ReminderEngine:
        dispatcher = DeliveryDispatcher(mailer, clock, send_delay=0, send_timeout=send_timeout)
        return ReminderEngine(special_dates, directory, ledger, dispatcher, clock, organization_name="Test Welfare")

    return _make


@pytest.fixture
def engine(make_engine, mailer):
    return make_engine(mailer)


@pytest.fixture
def scheduler(engine, clock):
    return Scheduler(engine, clock, poll_interval=0.01)
