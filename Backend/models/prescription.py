from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class Prescription(Base):
    __tablename__ = "prescriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    daily_dose = Column(Float, nullable=False, default=1)
    pack_size = Column(Integer, nullable=True)
    start_date = Column(DateTime(timezone=True), nullable=False)
    start_supply = Column(Float, nullable=False, default=0)
    email_thresholds = Column(JSON, nullable=True)   # days before run-out, e.g. [10, 5]
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="prescriptions")
    supply_log = relationship(
        "SupplyLogEntry",
        back_populates="prescription",
        cascade="all, delete-orphan",
        order_by="SupplyLogEntry.delivered_at",
    )


class SupplyLogEntry(Base):
    __tablename__ = "supply_log_entries"

    id = Column(Integer, primary_key=True, index=True)
    prescription_id = Column(Integer, ForeignKey("prescriptions.id"), nullable=False, index=True)
    delivered_at = Column(DateTime(timezone=True), nullable=False)
    quantity = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    prescription = relationship("Prescription", back_populates="supply_log")
