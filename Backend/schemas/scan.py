from datetime import date

from pydantic import BaseModel


class ScanSummaryOut(BaseModel):
    ok: bool = True
    run_date: date
    users_processed: int
    users_skipped: int
    notifications_sent: int
    notifications_suppressed: int
    errors: int
    run_time_ms: int
