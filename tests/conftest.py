from datetime import date, datetime, timedelta

import pytest

import models  # noqa: F401
from database import Base, build_engine, build_session_factory
from models.prescription import Prescription, SupplyLogEntry
from models.user import User
from models.user_settings import UserSettings
from services.contact_resolver import ContactResolver, from_user_record
from services.errors import DispatchError
from services.idempotency import NotificationLedger
from services.notification_scanner import NotificationScanner
from services.prescription_store import PrescriptionStore

TODAY = date(2026, 3, 15)


def at(day: date, hour: int = 9) -> datetime:
    return datetime(day.year, day.month, day.day, hour, 0)


def days_ago(n: int, hour: int = 9) -> datetime:
    return at(TODAY - timedelta(days=n), hour)


class FakeDispatcher:
    def __init__(self, failing_addresses=()):
        self.sent = []
        self.failing_addresses = set(failing_addresses)

    def dispatch(self, notification):
        if notification.address in self.failing_addresses:
            raise DispatchError(f"boom for {notification.address}")
        self.sent.append(notification)

    def for_address(self, address):
        return [n for n in self.sent if n.address == address]


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def session_factory():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield build_session_factory(engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_user(db):
    def _make(email="pat@example.com", name="Pat", thresholds=None, prescriptions=()):
        user = User(email=email, name=name)
        if thresholds is not None:
            user.settings = UserSettings(default_email_thresholds=thresholds)
        user.prescriptions = list(prescriptions)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


def prescription(name="Rx", daily_dose=1, start_supply=30, started_days_ago=20, deliveries=(), thresholds=None):
    return Prescription(
        name=name,
        daily_dose=daily_dose,
        pack_size=30,
        start_date=days_ago(started_days_ago),
        start_supply=start_supply,
        email_thresholds=thresholds,
        supply_log=[SupplyLogEntry(delivered_at=when, quantity=qty) for when, qty in deliveries],
    )


@pytest.fixture
def dispatcher():
    return FakeDispatcher()


@pytest.fixture
def ledger(session_factory):
    return NotificationLedger(session_factory)


@pytest.fixture
def scanner(session_factory, dispatcher, ledger):
    return NotificationScanner(
        store=PrescriptionStore(session_factory),
        contacts=ContactResolver([("user_record", from_user_record)]),
        dispatcher=dispatcher,
        ledger=ledger,
    )
