from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, selectinload

from config import AppConfig
from database import get_db
from dependencies import get_config, get_current_user, get_ledger
from models.notification import NotificationKind
from models.prescription import Prescription, SupplyLogEntry
from models.user import User
from schemas.prescription import DeliveryCreate, PrescriptionOut, SupplyInfoOut, SupplyLogEntryOut
from services.idempotency import NotificationLedger
from services.supply_forecaster import compute_supply_info

router = APIRouter(prefix="/prescriptions", tags=["Prescriptions"])


def _to_out(record: Prescription, config: AppConfig, ledger: NotificationLedger) -> PrescriptionOut:
    today = datetime.now(config.tz).date()
    supply = compute_supply_info(record, today, config.tz)
    return PrescriptionOut(
        id=record.id,
        name=record.name,
        daily_dose=record.daily_dose,
        pack_size=record.pack_size,
        start_date=record.start_date,
        start_supply=record.start_supply,
        email_thresholds=record.email_thresholds,
        supply_log=[SupplyLogEntryOut.model_validate(e) for e in record.supply_log],
        supply=SupplyInfoOut(**supply.to_dict()),
        reminders_sent_today=[kind.value for kind in NotificationKind if ledger.was_sent(record.id, today, kind)],
    )


def _get_owned(db: Session, prescription_id: int, user: User) -> Prescription:
    row = (
        db.query(Prescription)
        .options(selectinload(Prescription.supply_log))
        .filter(Prescription.id == prescription_id, Prescription.user_id == user.id)
        .first()
    )
    if not row:
        raise HTTPException(status_code=404, detail="Prescription not found")
    return row


@router.get("/", response_model=list[PrescriptionOut])
def list_prescriptions(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    config: AppConfig = Depends(get_config),
    ledger: NotificationLedger = Depends(get_ledger),
):
    rows = (
        db.query(Prescription)
        .options(selectinload(Prescription.supply_log))
        .filter(Prescription.user_id == current_user.id)
        .order_by(Prescription.name.asc())
        .all()
    )
    return [_to_out(row, config, ledger) for row in rows]


@router.get("/{prescription_id}", response_model=PrescriptionOut)
def get_prescription(
    prescription_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    config: AppConfig = Depends(get_config),
    ledger: NotificationLedger = Depends(get_ledger),
):
    return _to_out(_get_owned(db, prescription_id, current_user), config, ledger)


@router.post("/{prescription_id}/deliveries", response_model=PrescriptionOut)
def log_delivery(
    prescription_id: int,
    data: DeliveryCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    config: AppConfig = Depends(get_config),
    ledger: NotificationLedger = Depends(get_ledger),
):
    row = _get_owned(db, prescription_id, current_user)
    row.supply_log.append(
        SupplyLogEntry(
            delivered_at=data.delivered_at or datetime.now(config.tz),
            quantity=data.quantity,
        )
    )
    db.commit()
    db.refresh(row)
    return _to_out(row, config, ledger)
