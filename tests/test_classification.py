from datetime import timedelta
from types import SimpleNamespace

from conftest import TODAY, at, days_ago, prescription
from models.notification import NotificationKind
from services.notification_scanner import aggregate_decisions, classify_prescription


def _rx(id=1, **kwargs):
    rx = prescription(**kwargs)
    rx.id = id
    return rx


def test_reorder_due_with_default_threshold():
    decision = classify_prescription(_rx(daily_dose=1, start_supply=30, started_days_ago=20), TODAY)

    assert decision.kind == NotificationKind.reorder_due
    assert decision.urgency_threshold_days == 10
    assert decision.supply.reorder_date == TODAY


def test_smallest_satisfied_threshold_is_selected():
    rx = _rx(daily_dose=2, start_supply=26, started_days_ago=10, thresholds=[10, 5, 3])
    decision = classify_prescription(rx, TODAY)

    assert decision.supply.run_out_date == TODAY + timedelta(days=3)
    assert decision.urgency_threshold_days == 3


def test_only_satisfied_thresholds_count():
    # runs out in 6 days: 10 is due, 5 and 3 are not yet
    rx = _rx(daily_dose=1, start_supply=26, started_days_ago=20, thresholds=[3, 10, 5])
    decision = classify_prescription(rx, TODAY)
    assert decision.urgency_threshold_days == 10


def test_no_threshold_reached_means_no_notification():
    rx = _rx(daily_dose=1, start_supply=60, started_days_ago=10)
    assert classify_prescription(rx, TODAY) is None


def test_user_default_thresholds_apply():
    rx = _rx(daily_dose=1, start_supply=34, started_days_ago=20)
    assert classify_prescription(rx, TODAY) is None
    decision = classify_prescription(rx, TODAY, SimpleNamespace(default_email_thresholds=[14]))
    assert decision.urgency_threshold_days == 14


def test_run_out_today_beats_thresholds():
    rx = _rx(daily_dose=1, start_supply=20, started_days_ago=20, thresholds=[10, 5, 1])
    decision = classify_prescription(rx, TODAY)

    assert decision.kind == NotificationKind.run_out_today
    assert decision.urgency_threshold_days is None
    assert decision.supply.run_out_date == TODAY


def test_delivery_logged_today_suppresses_run_out_today():
    # a small top-up logged today still leaves nothing in hand
    rx = _rx(daily_dose=1, start_supply=19.5, started_days_ago=20, deliveries=[(at(TODAY, 18), 0.5)])
    assert classify_prescription(rx, TODAY) is None


def test_delivery_on_another_day_does_not_suppress():
    rx = _rx(daily_dose=1, start_supply=10, started_days_ago=20, deliveries=[(days_ago(1), 10)])
    decision = classify_prescription(rx, TODAY)
    assert decision.kind == NotificationKind.run_out_today


def test_past_run_out_is_skipped():
    rx = _rx(daily_dose=1, start_supply=10, started_days_ago=15)
    assert classify_prescription(rx, TODAY) is None


def test_aggregate_groups_by_kind():
    reorder_a = classify_prescription(_rx(id=1, start_supply=30, started_days_ago=20), TODAY)
    reorder_b = classify_prescription(_rx(id=2, start_supply=25, started_days_ago=20), TODAY)
    run_out = classify_prescription(_rx(id=3, start_supply=20, started_days_ago=20), TODAY)

    grouped = aggregate_decisions([reorder_a, run_out, reorder_b])
    assert list(grouped) == [NotificationKind.reorder_due, NotificationKind.run_out_today]
    assert [d.prescription_id for d in grouped[NotificationKind.reorder_due]] == [1, 2]
    assert [d.prescription_id for d in grouped[NotificationKind.run_out_today]] == [3]
    assert aggregate_decisions([]) == {}
