"""
Appointment Reminder Worker
Sends a reminder the day before an appointment and another shortly before it starts
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from ..config import BUSINESS_TIMEZONE, REMINDER_INTERVAL_MINUTES
from ..database import SessionLocal
from ..models_appointment import Appointment
from ..services.notification_service import Notifier
from ..shared.validators import time_to_minutes

logger = logging.getLogger(__name__)

REMINDER_STATUSES = ["confirmed", "pending"]

# Minutes before start during which the "starts soon" reminder fires
SHORT_REMINDER_WINDOW_MINUTES = 90


def _claim(db: Session, appointment_id: int, flag, day) -> bool:
    """
    Set a reminder flag only if the appointment still qualifies: flag unset, still on
    `day` and in a reminder status. False means another sweep won or the appointment
    changed since it was selected.
    """
    claimed = (
        db.query(Appointment)
        .filter(
            Appointment.id == appointment_id,
            Appointment.date == day,
            Appointment.status.in_(REMINDER_STATUSES),
            flag.is_(False),
        )
        .update({flag: True}, synchronize_session=False)
    )
    return claimed == 1


def _send(
    db: Session, notifier: Notifier, appointment_id: int, customer_id: int, flag, day, title: str, message: str
) -> bool:
    """
    Claim the flag and record the notification in one commit.
    Returns True when this sweep sent the reminder.
    """
    if not _claim(db, appointment_id, flag, day):
        db.rollback()
        logger.info(f"⏭️ Reminder for appointment {appointment_id} already claimed or no longer due")
        return False

    # notify() commits the claimed flag together with the notification, or rolls both back
    notification = notifier.notify(
        customer_id,
        title,
        message,
        category="appointments",
        related_id=appointment_id,
        related_type="appointment",
        deep_link=f"appointments/{appointment_id}",
    )
    if notification is None:
        raise RuntimeError("notification could not be stored")
    return True


def send_appointment_reminders(
    db: Session, notifier: Optional[Notifier] = None, now: Optional[datetime] = None, tz: str = BUSINESS_TIMEZONE
) -> dict:
    """
    Run both reminder passes once.

    24h pass: appointments dated tomorrow (business-local) without a 24h reminder.
    1h pass: appointments today with a start time 1-90 minutes away without a 1h reminder.

    Returns:
        Summary dict with sent_24h, sent_1h, checked_1h and failed counts
    """
    notifier = notifier or Notifier(db)
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = now.astimezone(ZoneInfo(tz))
    today = local.date()
    tomorrow = today + timedelta(days=1)
    current_minutes = local.hour * 60 + local.minute

    summary = {"sent_24h": 0, "sent_1h": 0, "checked_1h": 0, "failed": 0}

    # 24h reminders
    try:
        candidates = [
            (a.id, a.customer_id, a.title, a.start_time)
            for a in db.query(Appointment)
            .filter(
                Appointment.date == tomorrow,
                Appointment.status.in_(REMINDER_STATUSES),
                Appointment.reminder_sent_24h.is_(False),
            )
            .order_by(Appointment.id)
            .all()
        ]

        for appointment_id, customer_id, title, start_time in candidates:
            try:
                when = f" at {start_time[:5]}" if start_time else ""
                if _send(
                    db,
                    notifier,
                    appointment_id,
                    customer_id,
                    Appointment.reminder_sent_24h,
                    tomorrow,
                    "Appointment reminder",
                    f"Tomorrow{when}: {title}",
                ):
                    summary["sent_24h"] += 1
                    logger.info(f"🔔 24h reminder sent for appointment {appointment_id} to user {customer_id}")
            except Exception as e:
                db.rollback()
                summary["failed"] += 1
                logger.error(f"❌ Failed to send 24h reminder for appointment {appointment_id}: {e}")
    except Exception as e:
        db.rollback()
        logger.error(f"❌ 24h reminder pass failed: {e}")

    # 1h reminders
    try:
        candidates = [
            (a.id, a.customer_id, a.title, a.start_time)
            for a in db.query(Appointment)
            .filter(
                Appointment.date == today,
                Appointment.status.in_(REMINDER_STATUSES),
                Appointment.start_time.isnot(None),
                Appointment.reminder_sent_1h.is_(False),
            )
            .order_by(Appointment.id)
            .all()
        ]
        summary["checked_1h"] = len(candidates)

        for appointment_id, customer_id, title, start_time in candidates:
            try:
                diff = time_to_minutes(start_time) - current_minutes
                if not 0 < diff <= SHORT_REMINDER_WINDOW_MINUTES:
                    continue

                if _send(
                    db,
                    notifier,
                    appointment_id,
                    customer_id,
                    Appointment.reminder_sent_1h,
                    today,
                    "Appointment starting soon",
                    f"In about {diff} minutes: {title}",
                ):
                    summary["sent_1h"] += 1
                    logger.info(f"🔔 1h reminder sent for appointment {appointment_id} ({diff} min ahead)")
            except Exception as e:
                db.rollback()
                summary["failed"] += 1
                logger.error(f"❌ Failed to send 1h reminder for appointment {appointment_id}: {e}")
    except Exception as e:
        db.rollback()
        logger.error(f"❌ 1h reminder pass failed: {e}")

    if summary["sent_24h"] or summary["sent_1h"] or summary["failed"]:
        logger.info(
            f"📊 Appointment reminders: {summary['sent_24h']} x 24h, {summary['sent_1h']} x 1h "
            f"(checked {summary['checked_1h']}), {summary['failed']} failed"
        )
    return summary


async def process_appointment_reminders() -> Optional[dict]:
    """One sweep with its own session"""
    logger.info("🔄 Checking appointment reminders...")

    db = SessionLocal()
    try:
        return send_appointment_reminders(db)
    except Exception as e:
        logger.error(f"❌ Error in process_appointment_reminders: {e}")
        return None
    finally:
        db.close()


async def run_reminder_worker():
    """
    Main worker loop - runs every REMINDER_INTERVAL_MINUTES
    """
    logger.info(f"🚀 Starting appointment reminder worker (every {REMINDER_INTERVAL_MINUTES} min)...")

    while True:
        try:
            await process_appointment_reminders()
        except Exception as e:
            logger.error(f"❌ Error in reminder worker loop: {e}")
        await asyncio.sleep(REMINDER_INTERVAL_MINUTES * 60)
