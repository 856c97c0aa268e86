from sqlalchemy import Column, Integer, Date, DateTime, Enum as SAEnum, UniqueConstraint
from sqlalchemy.sql import func
import enum

from database import Base


class NotificationKind(str, enum.Enum):
    reorder_due = "REORDER_DUE"
    run_out_today = "RUN_OUT_TODAY"


class NotificationLedgerEntry(Base):
    """One row per prescription, calendar day and notification kind already sent."""

    __tablename__ = "notification_ledger"
    __table_args__ = (
        UniqueConstraint("prescription_id", "day", "kind", name="uq_notification_ledger_claim"),
    )

    id = Column(Integer, primary_key=True, index=True)
    prescription_id = Column(Integer, nullable=False, index=True)
    day = Column(Date, nullable=False)
    kind = Column(SAEnum(NotificationKind), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
