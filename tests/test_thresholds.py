from types import SimpleNamespace

from services.thresholds import resolve_thresholds, resolve_thresholds_with_source


def test_prescription_thresholds_win():
    rx = SimpleNamespace(email_thresholds=[7, 3])
    settings = SimpleNamespace(default_email_thresholds=[14])
    assert resolve_thresholds_with_source(rx, settings) == ([7, 3], "prescription")


def test_falls_back_to_user_default():
    rx = SimpleNamespace(email_thresholds=None)
    settings = SimpleNamespace(default_email_thresholds=[14, 2])
    assert resolve_thresholds_with_source(rx, settings) == ([14, 2], "user_default")


def test_empty_prescription_list_falls_through():
    rx = SimpleNamespace(email_thresholds=[])
    settings = SimpleNamespace(default_email_thresholds=[5])
    assert resolve_thresholds(rx, settings) == [5]


def test_hardcoded_default_without_settings():
    rx = SimpleNamespace(email_thresholds=None)
    assert resolve_thresholds_with_source(rx, None) == ([10], "hardcoded")
    assert resolve_thresholds(rx, SimpleNamespace(default_email_thresholds=[])) == [10]
