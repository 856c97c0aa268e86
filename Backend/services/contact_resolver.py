import logging
from dataclasses import dataclass
from typing import Callable

import firebase_admin
from firebase_admin import auth as firebase_auth

logger = logging.getLogger("rxsupply.contacts")


@dataclass(frozen=True)
class Contact:
    address: str
    display_name: str


ContactStrategy = tuple[str, Callable[[object], "Contact | None"]]


def _display_name(name: str | None, email: str) -> str:
    if name and name.strip():
        return name.strip()
    return email.split("@")[0]


def from_firebase_auth(user) -> Contact | None:
    """Look the user up in Firebase Auth by uid."""
    uid = getattr(user, "firebase_uid", None)
    if not uid:
        return None
    if not firebase_admin._apps:
        logger.debug("Firebase Admin is not initialized, skipping auth lookup for %s", uid)
        return None
    record = firebase_auth.get_user(uid)
    if not record.email:
        return None
    return Contact(address=record.email, display_name=_display_name(record.display_name, record.email))


def from_user_record(user) -> Contact | None:
    email = (getattr(user, "email", None) or "").strip()
    if not email:
        return None
    return Contact(address=email, display_name=_display_name(getattr(user, "name", None), email))


DEFAULT_CONTACT_STRATEGIES: list[ContactStrategy] = [
    ("firebase_auth", from_firebase_auth),
    ("user_record", from_user_record),
]


class ContactResolver:
    def __init__(self, strategies: list[ContactStrategy] | None = None):
        self.strategies = list(strategies or DEFAULT_CONTACT_STRATEGIES)

    def resolve(self, user) -> Contact | None:
        if user is None:
            return None
        for name, strategy in self.strategies:
            try:
                contact = strategy(user)
            except Exception as exc:
                logger.warning("Contact strategy %s failed for user %s: %s", name, getattr(user, "id", "?"), exc)
                continue
            if contact:
                return contact
        return None
