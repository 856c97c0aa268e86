"""Seed a demo user with prescriptions in every reminder state."""

from datetime import datetime, timedelta, timezone

import models  # noqa: F401
from config import load_config
from database import Base, build_engine, build_session_factory
from models.prescription import Prescription, SupplyLogEntry
from models.user import User
from models.user_settings import UserSettings


def seed():
    config = load_config()
    engine = build_engine(config.database_url)
    Base.metadata.create_all(bind=engine)
    db = build_session_factory(engine)()
    now = datetime.now(timezone.utc)
    try:
        if db.query(User).filter(User.email == "demo@rxsupply.local").first():
            print("Seed data already present")
            return
        user = User(email="demo@rxsupply.local", name="Demo Patient")
        user.settings = UserSettings(default_email_thresholds=[10, 5])
        user.prescriptions = [
            # 10 left at 1/day: reorder due today at the 10-day threshold
            Prescription(name="Atorvastatin", daily_dose=1, pack_size=30, start_date=now - timedelta(days=20), start_supply=30),
            # runs out today, nothing delivered
            Prescription(name="Metformin", daily_dose=2, pack_size=56, start_date=now - timedelta(days=28), start_supply=56),
            # plenty left after a delivery
            Prescription(
                name="Levothyroxine",
                daily_dose=1,
                pack_size=28,
                start_date=now - timedelta(days=40),
                start_supply=28,
                email_thresholds=[7, 3],
                supply_log=[SupplyLogEntry(delivered_at=now - timedelta(days=10), quantity=56)],
            ),
        ]
        db.add(user)
        db.commit()
        print(f"Seeded user {user.id} with {len(user.prescriptions)} prescriptions")
    finally:
        db.close()


if __name__ == "__main__":
    seed()
