from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from config import AppConfig
from conftest import TODAY, FakeDispatcher, prescription
from dependencies import get_current_user
from main import create_app
from models.notification import NotificationKind
from models.prescription import Prescription
from services.contact_resolver import ContactResolver, from_user_record
from services.errors import ScanAbortedError
from services.notification_scanner import NotificationScanner
from services.prescription_store import PrescriptionStore


@pytest.fixture
def app(session_factory):
    return create_app(AppConfig(database_url="sqlite://", job_run_key="secret"), session_factory)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def signed_in(app, make_user, db):
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    user = make_user(
        prescriptions=[
            prescription(name="Levothyroxine", daily_dose=1, start_supply=30, started_days_ago=0),
        ]
    )
    # the router forecasts against the real clock, not TODAY
    user.prescriptions[0].start_date = now - timedelta(days=20)
    db.commit()
    app.dependency_overrides[get_current_user] = lambda: user
    yield user
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/").json()["status"] == "ok"


def test_job_requires_key(client):
    assert client.get("/jobs/run-reorder-check").status_code == 401
    assert client.get("/jobs/run-reorder-check", params={"key": "wrong"}).status_code == 401


def test_job_unavailable_without_configured_key(session_factory):
    app = create_app(AppConfig(database_url="sqlite://"), session_factory)
    assert TestClient(app).get("/jobs/run-reorder-check", params={"key": ""}).status_code == 503


def test_job_runs_scan_for_given_date(app, client, session_factory, make_user):
    dispatcher = FakeDispatcher()
    app.state.scanner = NotificationScanner(
        store=PrescriptionStore(session_factory),
        contacts=ContactResolver([("user_record", from_user_record)]),
        dispatcher=dispatcher,
    )
    make_user(prescriptions=[prescription(daily_dose=2, start_supply=40, started_days_ago=20)])

    resp = client.get("/jobs/run-reorder-check", params={"key": "secret", "run_date": TODAY.isoformat()})

    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True
    assert body["run_date"] == TODAY.isoformat()
    assert body["users_processed"] == 1
    assert body["notifications_sent"] == 1
    assert dispatcher.sent[0].kind.value == "RUN_OUT_TODAY"


def test_job_reports_aborted_run(app, client):
    class Broken:
        def run(self, today=None):
            raise ScanAbortedError("database unavailable")

    app.state.scanner = Broken()
    resp = client.get("/jobs/run-reorder-check", params={"key": "secret"})
    assert resp.status_code == 500
    assert "database unavailable" in resp.json()["detail"]


def test_prescriptions_require_auth(client):
    assert client.get("/prescriptions/").status_code == 401


def test_list_prescriptions_with_supply(client, signed_in):
    resp = client.get("/prescriptions/")

    assert resp.status_code == 200
    [item] = resp.json()
    assert item["name"] == "Levothyroxine"
    assert item["supply"]["current_supply"] == 10
    assert item["supply"]["days_remaining"] == 10


def test_prescription_reports_reminders_sent_today(client, signed_in, ledger):
    rx_id = signed_in.prescriptions[0].id
    assert client.get(f"/prescriptions/{rx_id}").json()["reminders_sent_today"] == []

    ledger.claim(rx_id, datetime.now(timezone.utc).date(), NotificationKind.reorder_due)

    assert client.get(f"/prescriptions/{rx_id}").json()["reminders_sent_today"] == ["REORDER_DUE"]


def test_log_delivery_extends_supply(client, signed_in, db):
    rx_id = signed_in.prescriptions[0].id

    resp = client.post(f"/prescriptions/{rx_id}/deliveries", json={"quantity": 30})

    assert resp.status_code == 200
    body = resp.json()
    assert len(body["supply_log"]) == 1
    assert body["supply"]["days_remaining"] == 40
    assert db.query(Prescription).count() == 1


def test_log_delivery_validates_quantity(client, signed_in):
    rx_id = signed_in.prescriptions[0].id
    assert client.post(f"/prescriptions/{rx_id}/deliveries", json={"quantity": 0}).status_code == 422
    assert client.post("/prescriptions/999/deliveries", json={"quantity": 5}).status_code == 404


def test_email_settings_round_trip(client, signed_in):
    default = client.get("/settings/email").json()
    assert default == {"default_email_thresholds": [10], "is_default": True}

    resp = client.put("/settings/email", json={"default_email_thresholds": [3, 10, 5, 10]})
    assert resp.status_code == 200
    assert resp.json()["default_email_thresholds"] == [10, 5, 3]

    assert client.get("/settings/email").json() == {"default_email_thresholds": [10, 5, 3], "is_default": False}


def test_email_settings_reject_bad_thresholds(client, signed_in):
    assert client.put("/settings/email", json={"default_email_thresholds": []}).status_code == 422
    assert client.put("/settings/email", json={"default_email_thresholds": [0]}).status_code == 422
