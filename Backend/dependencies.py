from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from firebase_admin import auth as firebase_auth
from sqlalchemy.orm import Session

from config import AppConfig
from database import get_db
from models.user import User
from services.idempotency import NotificationLedger
from services.notification_scanner import NotificationScanner

bearer_scheme = HTTPBearer(auto_error=False)


def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def get_scanner(request: Request) -> NotificationScanner:
    return request.app.state.scanner


def get_ledger(request: Request) -> NotificationLedger:
    return NotificationLedger(request.app.state.session_factory)


def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Verify a Firebase ID token and return the matching user, creating it on first sight."""
    if not creds or not creds.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    try:
        decoded = firebase_auth.verify_id_token(creds.credentials)
    except Exception:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid Firebase token")

    firebase_uid = decoded["uid"]
    user = db.query(User).filter(User.firebase_uid == firebase_uid).first()
    if not user:
        user = User(firebase_uid=firebase_uid, email=decoded.get("email"), name=decoded.get("name"))
        db.add(user)
        db.commit()
        db.refresh(user)
    return user
