import logging

from sqlalchemy.orm import sessionmaker, selectinload

from models.prescription import Prescription
from models.user import User
from models.user_settings import UserSettings

logger = logging.getLogger("rxsupply.store")


class PrescriptionStore:
    """Read-only access to prescriptions, owners and settings.

    Every call opens its own short-lived session so users can be scanned
    from worker threads. Loaded rows are detached; the supply log is
    loaded eagerly so it stays readable after the session closes.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def list_owner_ids(self) -> list[int]:
        db = self.session_factory()
        try:
            rows = db.query(Prescription.user_id).distinct().order_by(Prescription.user_id).all()
            return [row[0] for row in rows]
        finally:
            db.close()

    def get_user(self, user_id: int) -> User | None:
        db = self.session_factory()
        try:
            user = db.query(User).filter(User.id == user_id).first()
            if user:
                db.expunge(user)
            return user
        finally:
            db.close()

    def load_settings(self, user_id: int) -> UserSettings | None:
        db = self.session_factory()
        try:
            settings = db.query(UserSettings).filter(UserSettings.user_id == user_id).first()
            if settings:
                db.expunge(settings)
            return settings
        except Exception as exc:
            logger.warning("Could not read settings for user %s, using defaults: %s", user_id, exc)
            return None
        finally:
            db.close()

    def load_prescriptions(self, user_id: int) -> list[Prescription]:
        db = self.session_factory()
        try:
            rows = (
                db.query(Prescription)
                .options(selectinload(Prescription.supply_log))
                .filter(Prescription.user_id == user_id)
                .order_by(Prescription.id.asc())
                .all()
            )
            db.expunge_all()
            return rows
        finally:
            db.close()
