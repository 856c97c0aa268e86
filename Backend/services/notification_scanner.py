"""
Daily reorder check.

For every user who owns a prescription:
  1. resolve where to reach them (skip the user if nobody answers),
  2. forecast each prescription and classify it,
  3. fold the results into at most one "reorder due" and one
     "runs out today" notification,
  4. claim each prescription in the ledger and dispatch.

Classification precedence for a fixed day:
  RUN_OUT_TODAY      run-out date is today and no delivery was logged today
  PAST_OR_EXHAUSTED  run-out date already passed or nothing left, no alert
  THRESHOLD_SCAN     smallest satisfied threshold becomes the urgency

A failure for one prescription or one user is counted and logged; only a
failure to enumerate owners aborts the run.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, asdict
from datetime import date, datetime, timedelta, timezone, tzinfo

from langfuse.decorators import observe, langfuse_context
from sqlalchemy.orm import sessionmaker

from config import AppConfig
from models.notification import NotificationKind
from services.contact_resolver import Contact, ContactResolver
from services.errors import ScanAbortedError
from services.idempotency import NotificationLedger
from services.notifications import (
    CombinedNotification,
    NotificationDispatcher,
    NotificationItem,
    build_dispatcher,
)
from services.prescription_store import PrescriptionStore
from services.supply_forecaster import SupplyInfo, compute_supply_info, normalize_date
from services.thresholds import resolve_thresholds

logger = logging.getLogger("rxsupply.scan")


# ━━━ DATA STRUCTURES ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass(frozen=True)
class NotificationDecision:
    prescription_id: int
    prescription_name: str
    kind: NotificationKind
    supply: SupplyInfo
    urgency_threshold_days: int | None = None

    def to_item(self) -> NotificationItem:
        reorder_date = self.supply.reorder_date if self.kind == NotificationKind.reorder_due else None
        return NotificationItem(
            prescription_id=self.prescription_id,
            prescription_name=self.prescription_name,
            run_out_date=self.supply.run_out_date,
            current_supply=self.supply.current_supply,
            reorder_date=reorder_date,
            urgency_threshold_days=self.urgency_threshold_days,
        )


@dataclass
class UserScanResult:
    user_id: int
    processed: bool = False
    skipped: bool = False
    notifications_sent: int = 0
    notifications_suppressed: int = 0
    errors: int = 0


@dataclass
class ScanSummary:
    run_date: date
    users_processed: int = 0
    users_skipped: int = 0
    notifications_sent: int = 0
    notifications_suppressed: int = 0
    errors: int = 0
    run_time_ms: int = 0

    def add(self, result: UserScanResult) -> None:
        self.users_processed += int(result.processed)
        self.users_skipped += int(result.skipped)
        self.notifications_sent += result.notifications_sent
        self.notifications_suppressed += result.notifications_suppressed
        self.errors += result.errors

    def to_dict(self):
        data = asdict(self)
        data["run_date"] = self.run_date.isoformat()
        return data


# ━━━ CLASSIFICATION ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def has_delivery_on(prescription, day: date, tz: tzinfo = timezone.utc) -> bool:
    for entry in prescription.supply_log or []:
        try:
            if normalize_date(entry.delivered_at, tz) == day:
                return True
        except (TypeError, ValueError) as exc:
            logger.warning("Ignoring malformed delivery on prescription %s: %s", prescription.id, exc)
    return False


def classify_prescription(
    prescription,
    today: date,
    settings=None,
    tz: tzinfo = timezone.utc,
) -> NotificationDecision | None:
    supply = compute_supply_info(prescription, today, tz)

    # A delivery logged today means the refill already arrived; one that
    # has not been logged yet must not hide the alert.
    if supply.run_out_date == today:
        if has_delivery_on(prescription, today, tz):
            return None
        return NotificationDecision(
            prescription_id=prescription.id,
            prescription_name=prescription.name,
            kind=NotificationKind.run_out_today,
            supply=supply,
        )

    if supply.run_out_date < today or supply.current_supply <= 0:
        return None

    # Ascending: the first hit is the smallest satisfied threshold.
    for threshold in sorted({int(t) for t in resolve_thresholds(prescription, settings)}):
        if supply.run_out_date - timedelta(days=threshold) <= today:
            return NotificationDecision(
                prescription_id=prescription.id,
                prescription_name=prescription.name,
                kind=NotificationKind.reorder_due,
                supply=supply,
                urgency_threshold_days=threshold,
            )
    return None


def aggregate_decisions(decisions: list[NotificationDecision]) -> dict[NotificationKind, list[NotificationDecision]]:
    grouped: dict[NotificationKind, list[NotificationDecision]] = {}
    for kind in (NotificationKind.reorder_due, NotificationKind.run_out_today):
        group = [d for d in decisions if d.kind == kind]
        if group:
            grouped[kind] = group
    return grouped


# ━━━ SCANNER ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class NotificationScanner:
    def __init__(
        self,
        store: PrescriptionStore,
        contacts: ContactResolver,
        dispatcher: NotificationDispatcher,
        ledger: NotificationLedger | None = None,
        tz: tzinfo = timezone.utc,
        max_workers: int = 1,
    ):
        self.store = store
        self.contacts = contacts
        self.dispatcher = dispatcher
        self.ledger = ledger
        self.tz = tz
        self.max_workers = max(max_workers, 1)

    @classmethod
    def from_config(cls, config: AppConfig, session_factory: sessionmaker) -> "NotificationScanner":
        return cls(
            store=PrescriptionStore(session_factory),
            contacts=ContactResolver(),
            dispatcher=build_dispatcher(config, session_factory),
            ledger=NotificationLedger(session_factory),
            tz=config.tz,
            max_workers=config.scan_max_workers,
        )

    def today(self) -> date:
        return datetime.now(self.tz).date()

    @observe(name="reorder_full_scan")
    def run(self, today: date | None = None) -> ScanSummary:
        t0 = time.time()
        today = today or self.today()
        logger.info("Starting reorder check for %s", today.isoformat())

        try:
            owner_ids = self.store.list_owner_ids()
        except Exception as exc:
            logger.exception("Could not enumerate prescription owners")
            raise ScanAbortedError(f"Could not enumerate prescription owners: {exc}") from exc

        logger.info("Found %d user(s) with prescriptions", len(owner_ids))
        summary = ScanSummary(run_date=today)

        if self.max_workers > 1 and len(owner_ids) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                results = list(pool.map(lambda uid: self._scan_user_safely(uid, today), owner_ids))
        else:
            results = [self._scan_user_safely(uid, today) for uid in owner_ids]

        for result in results:
            summary.add(result)
        summary.run_time_ms = int((time.time() - t0) * 1000)

        logger.info(
            "Reorder check completed. Users: %d, skipped: %d, notifications sent: %d, suppressed: %d, errors: %d",
            summary.users_processed,
            summary.users_skipped,
            summary.notifications_sent,
            summary.notifications_suppressed,
            summary.errors,
        )
        _out(summary.to_dict())
        return summary

    def _scan_user_safely(self, user_id: int, today: date) -> UserScanResult:
        try:
            return self.scan_user(user_id, today)
        except Exception:
            logger.exception("Unexpected failure while scanning user %s", user_id)
            return UserScanResult(user_id=user_id, errors=1)

    @observe(name="reorder_scan_user")
    def scan_user(self, user_id: int, today: date) -> UserScanResult:
        result = UserScanResult(user_id=user_id)

        try:
            user = self.store.get_user(user_id)
        except Exception:
            logger.exception("Could not load user %s", user_id)
            result.errors += 1
            return result

        contact = self.contacts.resolve(user)
        if not contact:
            logger.info("No email found for user %s, skipping", user_id)
            result.skipped = True
            return result

        settings = self.store.load_settings(user_id)
        try:
            prescriptions = self.store.load_prescriptions(user_id)
        except Exception:
            logger.exception("Could not load prescriptions for user %s", user_id)
            result.errors += 1
            return result
        result.processed = True

        decisions: list[NotificationDecision] = []
        for prescription in prescriptions:
            try:
                decision = classify_prescription(prescription, today, settings, self.tz)
            except Exception as exc:
                logger.warning("Skipping prescription %s: %s", prescription.id, exc)
                result.errors += 1
                continue
            if decision:
                decisions.append(decision)

        for kind, group in aggregate_decisions(decisions).items():
            self._send(contact, kind, group, today, result)

        _out({
            "user_id": user_id,
            "prescriptions": len(prescriptions),
            "decisions": [{"id": d.prescription_id, "kind": d.kind.value, "threshold": d.urgency_threshold_days} for d in decisions],
            "sent": result.notifications_sent,
        })
        return result

    def _send(
        self,
        contact: Contact,
        kind: NotificationKind,
        group: list[NotificationDecision],
        today: date,
        result: UserScanResult,
    ) -> None:
        claimed: list[NotificationDecision] = []
        try:
            for decision in group:
                if self._claim(decision, today):
                    claimed.append(decision)
        except Exception:
            logger.exception("Could not claim %s notification for user %s", kind.value, result.user_id)
            result.errors += 1
            self._release(claimed, today, kind)
            return
        result.notifications_suppressed += len(group) - len(claimed)
        if not claimed:
            return

        notification = CombinedNotification(
            address=contact.address,
            display_name=contact.display_name,
            kind=kind,
            items=[d.to_item() for d in claimed],
        )
        try:
            self.dispatcher.dispatch(notification)
        except Exception as exc:
            logger.error("Error sending %s notification to %s: %s", kind.value, contact.address, exc)
            result.errors += 1
            self._release(claimed, today, kind)
            return
        result.notifications_sent += 1
        logger.info("%s notification sent to %s for %d prescription(s)", kind.value, contact.address, len(claimed))

    def _claim(self, decision: NotificationDecision, today: date) -> bool:
        if self.ledger is None:
            return True
        return self.ledger.claim(decision.prescription_id, today, decision.kind)

    def _release(self, claimed: list[NotificationDecision], today: date, kind: NotificationKind) -> None:
        # Undelivered claims are dropped so a re-run the same day can retry.
        if self.ledger is None:
            return
        try:
            self.ledger.release([d.prescription_id for d in claimed], today, kind)
        except Exception:
            logger.exception("Could not release %s claims for %s", kind.value, today.isoformat())


# ━━━ HELPER ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _out(d):
    try:
        langfuse_context.update_current_observation(output=d)
    except Exception:
        pass
