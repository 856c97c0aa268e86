from models.user import User
from models.prescription import Prescription, SupplyLogEntry
from models.user_settings import UserSettings
from models.notification import NotificationKind, NotificationLedgerEntry
from models.webhook_log import WebhookLog

__all__ = [
    "User",
    "Prescription",
    "SupplyLogEntry",
    "UserSettings",
    "NotificationKind",
    "NotificationLedgerEntry",
    "WebhookLog",
]
