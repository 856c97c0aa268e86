from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


class SupplyInfoOut(BaseModel):
    current_supply: float
    run_out_date: date
    reorder_date: date
    days_remaining: int


class SupplyLogEntryOut(BaseModel):
    id: int
    delivered_at: datetime
    quantity: float

    model_config = ConfigDict(from_attributes=True)


class DeliveryCreate(BaseModel):
    quantity: float = Field(gt=0, le=100000)
    delivered_at: datetime | None = None


class PrescriptionOut(BaseModel):
    id: int
    name: str
    daily_dose: float
    pack_size: int | None
    start_date: datetime
    start_supply: float
    email_thresholds: list[int] | None = None
    supply_log: list[SupplyLogEntryOut] = []
    supply: SupplyInfoOut
    reminders_sent_today: list[str] = []
