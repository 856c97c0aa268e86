import logging
from datetime import date

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from models.notification import NotificationKind, NotificationLedgerEntry

logger = logging.getLogger("rxsupply.ledger")


class NotificationLedger:
    """Records which (prescription, day, kind) notifications went out.

    ``claim`` relies on the table's unique constraint, so two concurrent
    runs cannot both claim the same entry.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def claim(self, prescription_id: int, day: date, kind: NotificationKind) -> bool:
        db = self.session_factory()
        try:
            db.add(NotificationLedgerEntry(prescription_id=prescription_id, day=day, kind=kind))
            db.commit()
            return True
        except IntegrityError:
            db.rollback()
            logger.info("Already notified: prescription %s %s on %s", prescription_id, kind.value, day)
            return False
        finally:
            db.close()

    def release(self, prescription_ids: list[int], day: date, kind: NotificationKind) -> None:
        if not prescription_ids:
            return
        db = self.session_factory()
        try:
            (
                db.query(NotificationLedgerEntry)
                .filter(
                    NotificationLedgerEntry.prescription_id.in_(prescription_ids),
                    NotificationLedgerEntry.day == day,
                    NotificationLedgerEntry.kind == kind,
                )
                .delete(synchronize_session=False)
            )
            db.commit()
        finally:
            db.close()

    def was_sent(self, prescription_id: int, day: date, kind: NotificationKind) -> bool:
        db = self.session_factory()
        try:
            return (
                db.query(NotificationLedgerEntry.id)
                .filter(
                    NotificationLedgerEntry.prescription_id == prescription_id,
                    NotificationLedgerEntry.day == day,
                    NotificationLedgerEntry.kind == kind,
                )
                .first()
                is not None
            )
        finally:
            db.close()
