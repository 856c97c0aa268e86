from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from dependencies import get_current_user
from models.user import User
from models.user_settings import UserSettings
from schemas.settings import EmailSettingsOut, EmailSettingsUpdate
from services.thresholds import DEFAULT_EMAIL_THRESHOLDS

router = APIRouter(prefix="/settings", tags=["Settings"])


@router.get("/email", response_model=EmailSettingsOut)
def get_email_settings(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    row = db.query(UserSettings).filter(UserSettings.user_id == current_user.id).first()
    if not row or not row.default_email_thresholds:
        return EmailSettingsOut(default_email_thresholds=list(DEFAULT_EMAIL_THRESHOLDS), is_default=True)
    return EmailSettingsOut(default_email_thresholds=row.default_email_thresholds, is_default=False)


@router.put("/email", response_model=EmailSettingsOut)
def update_email_settings(
    data: EmailSettingsUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    row = db.query(UserSettings).filter(UserSettings.user_id == current_user.id).first()
    if not row:
        row = UserSettings(user_id=current_user.id)
        db.add(row)
    row.default_email_thresholds = data.default_email_thresholds
    db.commit()
    return EmailSettingsOut(default_email_thresholds=data.default_email_thresholds, is_default=False)
