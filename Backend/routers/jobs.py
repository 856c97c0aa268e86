import hmac
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query

from config import AppConfig
from dependencies import get_config, get_scanner
from schemas.scan import ScanSummaryOut
from services.errors import ScanAbortedError
from services.notification_scanner import NotificationScanner

router = APIRouter(prefix="/jobs", tags=["Jobs"])


@router.get("/run-reorder-check", response_model=ScanSummaryOut)
def run_reorder_check(
    key: str = Query(default=""),
    run_date: date | None = Query(default=None),
    config: AppConfig = Depends(get_config),
    scanner: NotificationScanner = Depends(get_scanner),
):
    """External scheduler hook: runs the daily reorder check for all users."""
    if not config.job_run_key:
        raise HTTPException(status_code=503, detail="JOB_RUN_KEY is not configured")
    if not hmac.compare_digest(key, config.job_run_key):
        raise HTTPException(status_code=401, detail="Invalid job key")
    try:
        summary = scanner.run(today=run_date)
    except ScanAbortedError as exc:
        raise HTTPException(status_code=500, detail=str(exc))
    return ScanSummaryOut(ok=True, **summary.to_dict())
