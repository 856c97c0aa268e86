from typing import Callable

DEFAULT_EMAIL_THRESHOLDS = [10]  # days before run-out

ThresholdStrategy = tuple[str, Callable[[object, object], list | None]]


def _from_prescription(prescription, settings) -> list | None:
    return getattr(prescription, "email_thresholds", None)


def _from_user_default(prescription, settings) -> list | None:
    if settings is None:
        return None
    return getattr(settings, "default_email_thresholds", None)


def _hardcoded(prescription, settings) -> list | None:
    return list(DEFAULT_EMAIL_THRESHOLDS)


# Tried in order; the first strategy returning a non-empty list wins.
THRESHOLD_STRATEGIES: list[ThresholdStrategy] = [
    ("prescription", _from_prescription),
    ("user_default", _from_user_default),
    ("hardcoded", _hardcoded),
]


def resolve_thresholds_with_source(prescription, settings=None) -> tuple[list[int], str]:
    for source, strategy in THRESHOLD_STRATEGIES:
        values = strategy(prescription, settings)
        if isinstance(values, (list, tuple)) and len(values) > 0:
            return list(values), source
    return list(DEFAULT_EMAIL_THRESHOLDS), "hardcoded"


def resolve_thresholds(prescription, settings=None) -> list[int]:
    thresholds, _ = resolve_thresholds_with_source(prescription, settings)
    return thresholds
