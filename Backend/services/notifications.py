import hashlib
import hmac
import json
import logging
import smtplib
from dataclasses import dataclass, field
from datetime import date
from email.mime.text import MIMEText
from typing import Protocol
from urllib import request as urllib_request
from urllib.error import HTTPError, URLError

from sqlalchemy.orm import sessionmaker

from config import AppConfig
from models.notification import NotificationKind
from models.webhook_log import WebhookLog
from services.errors import DispatchError

logger = logging.getLogger("rxsupply.dispatch")


@dataclass(frozen=True)
class NotificationItem:
    prescription_id: int
    prescription_name: str
    run_out_date: date
    current_supply: float
    reorder_date: date | None = None
    urgency_threshold_days: int | None = None

    def to_dict(self) -> dict:
        return {
            "prescription_id": self.prescription_id,
            "prescription_name": self.prescription_name,
            "run_out_date": self.run_out_date.isoformat(),
            "reorder_date": self.reorder_date.isoformat() if self.reorder_date else None,
            "current_supply": self.current_supply,
            "urgency_threshold_days": self.urgency_threshold_days,
        }


@dataclass(frozen=True)
class CombinedNotification:
    address: str
    display_name: str
    kind: NotificationKind
    items: list[NotificationItem] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "display_name": self.display_name,
            "kind": self.kind.value,
            "items": [it.to_dict() for it in self.items],
        }


class NotificationDispatcher(Protocol):
    def dispatch(self, notification: CombinedNotification) -> None:
        ...


def display_date(value: date) -> str:
    return f"{value:%B} {value.day}, {value.year}"


def build_subject(notification: CombinedNotification) -> str:
    count = len(notification.items)
    if notification.kind == NotificationKind.run_out_today:
        if count == 1:
            return f"Run Out Day Reminder: {notification.items[0].prescription_name}"
        return f"Run Out Day Reminders: {count} Prescription(s)"
    if count == 1:
        return f"Reorder Reminder: {notification.items[0].prescription_name}"
    return f"Reorder Reminders: {count} Prescription(s)"


def build_body(notification: CombinedNotification) -> str:
    lines = [f"Hi {notification.display_name or 'there'},", ""]
    if notification.kind == NotificationKind.run_out_today:
        lines.append("The following prescription(s) run out today and no delivery has been logged:")
    else:
        lines.append("It's time to reorder the following prescription(s):")
    lines.append("")
    for it in notification.items:
        lines.append(f"- {it.prescription_name}")
        lines.append(f"  Current supply: {it.current_supply:g}")
        lines.append(f"  Runs out: {display_date(it.run_out_date)}")
        if it.reorder_date:
            lines.append(f"  Reorder by: {display_date(it.reorder_date)}")
        if it.urgency_threshold_days is not None:
            lines.append(f"  Reminder: {it.urgency_threshold_days} day(s) before run-out")
    lines.append("")
    lines.append("Log the delivery once your refill arrives to stop these reminders.")
    return "\n".join(lines)


class EmailDispatcher:
    """Sends plain-text email over SMTP, falling back to the Maileroo HTTP API."""

    def __init__(self, config: AppConfig):
        self.config = config

    def dispatch(self, notification: CombinedNotification) -> None:
        if not self.config.smtp_enabled and not self.config.maileroo_api_key:
            raise DispatchError("Email transport is not configured")
        subject = build_subject(notification)
        try:
            self._send_email(notification.address, subject, build_body(notification))
        except Exception as exc:
            raise DispatchError(f"Email to {notification.address} failed: {exc}") from exc
        logger.info("Email sent to %s: %s", notification.address, subject)

    def _send_email(self, recipient_email: str, subject: str, body: str) -> None:
        cfg = self.config
        msg = MIMEText(body)
        msg["Subject"] = subject
        msg["From"] = cfg.smtp_from_email or cfg.smtp_user
        msg["To"] = recipient_email

        smtp_exc: Exception | None = None
        if cfg.smtp_enabled:
            try:
                self._send_smtp(msg)
                return
            except Exception as exc:
                smtp_exc = exc
                logger.warning("SMTP send failed on %s:%s -> %s", cfg.smtp_host, cfg.smtp_port, exc)
            if not cfg.maileroo_api_key:
                raise smtp_exc
        self._send_email_via_maileroo_api(recipient_email, subject, body)
        if smtp_exc:
            logger.info("Email sent via Maileroo API fallback")

    def _send_smtp(self, msg: MIMEText) -> None:
        cfg = self.config
        if cfg.smtp_port == 465:
            with smtplib.SMTP_SSL(cfg.smtp_host, cfg.smtp_port, timeout=10) as server:
                server.login(cfg.smtp_user, cfg.smtp_password)
                server.send_message(msg)
            return
        with smtplib.SMTP(cfg.smtp_host, cfg.smtp_port, timeout=10) as server:
            server.ehlo()
            if server.has_extn("starttls"):
                server.starttls()
                server.ehlo()
            server.login(cfg.smtp_user, cfg.smtp_password)
            server.send_message(msg)

    def _send_email_via_maileroo_api(self, recipient_email: str, subject: str, body: str) -> None:
        cfg = self.config
        payload = {
            "from": {"address": cfg.smtp_from_email or cfg.smtp_user},
            "to": [{"address": recipient_email}],
            "subject": subject,
            "text": body,
        }
        req = urllib_request.Request(
            cfg.maileroo_api_url,
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={"Content-Type": "application/json", "X-API-Key": cfg.maileroo_api_key},
        )
        try:
            with urllib_request.urlopen(req, timeout=8) as resp:
                status = getattr(resp, "status", None) or resp.getcode()
                if not 200 <= status < 300:
                    raise RuntimeError(f"Maileroo API returned {status}: {resp.read().decode('utf-8', errors='ignore')}")
        except HTTPError as exc:
            details = exc.read().decode("utf-8", errors="ignore")
            raise RuntimeError(f"Maileroo API HTTPError {exc.code}: {details}") from exc
        except URLError as exc:
            raise RuntimeError(f"Maileroo API URLError: {exc}") from exc


class WebhookDispatcher:
    """POSTs each combined notification as signed JSON and logs the attempt."""

    def __init__(self, config: AppConfig, session_factory: sessionmaker):
        self.config = config
        self.session_factory = session_factory

    def dispatch(self, notification: CombinedNotification) -> None:
        cfg = self.config
        if not cfg.webhook_target_url:
            raise DispatchError("WEBHOOK_TARGET_URL is not configured")

        event_type = f"reorder.{notification.kind.value.lower()}"
        payload = notification.to_dict()
        body = json.dumps(payload, ensure_ascii=True).encode("utf-8")
        headers = {"Content-Type": "application/json", "X-Rx-Event": event_type}
        if cfg.webhook_secret:
            signature = hmac.new(cfg.webhook_secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
            headers["X-Rx-Signature"] = f"sha256={signature}"

        req = urllib_request.Request(cfg.webhook_target_url, data=body, headers=headers, method="POST")
        status_code = None
        response_body = None
        error_message = None
        try:
            with urllib_request.urlopen(req, timeout=cfg.webhook_timeout_seconds) as resp:
                status_code = resp.status
                response_body = resp.read().decode("utf-8", errors="ignore")[:2000]
        except HTTPError as exc:
            status_code = exc.code
            response_body = exc.read().decode("utf-8", errors="ignore")[:2000]
            error_message = f"HTTPError: {exc}"
        except Exception as exc:
            error_message = f"RequestError: {exc}"

        self._record(event_type, notification, payload, status_code, response_body, error_message)
        if error_message or status_code is None or not 200 <= status_code < 300:
            raise DispatchError(error_message or f"Webhook returned status {status_code}")

    def _record(self, event_type, notification, payload, status_code, response_body, error_message) -> None:
        db = self.session_factory()
        try:
            db.add(
                WebhookLog(
                    event_type=event_type,
                    recipient=notification.address,
                    item_count=len(notification.items),
                    target_url=self.config.webhook_target_url,
                    payload=json.dumps(payload, ensure_ascii=True),
                    response_status=status_code,
                    response_body=response_body,
                    error_message=error_message,
                )
            )
            db.commit()
        finally:
            db.close()


def build_dispatcher(config: AppConfig, session_factory: sessionmaker) -> NotificationDispatcher:
    if config.notification_channel == "webhook":
        return WebhookDispatcher(config, session_factory)
    return EmailDispatcher(config)
